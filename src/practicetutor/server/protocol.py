"""JSON-lines protocol messages for the practice bridge."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


def _default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, tuple)):
        return list(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def dumps_line(payload: dict) -> str:
    return json.dumps(payload, default=_default) + "\n"


@dataclass
class Request:
    """Incoming request: one JSON object per line."""
    id: int
    method: str
    params: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> Request:
        if not isinstance(data, dict):
            raise ValueError("Request must be a JSON object")
        if not isinstance(data.get("method"), str):
            raise ValueError("Request is missing a method")
        params = data.get("params") or {}
        if not isinstance(params, dict):
            raise ValueError("Request params must be an object")
        return cls(id=data.get("id", 0), method=data["method"], params=params)


@dataclass
class Response:
    """Outgoing response: exactly one of result or error."""
    id: int
    result: Optional[dict] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, req_id: int, exc: BaseException) -> Response:
        return cls(id=req_id, error=str(exc) or type(exc).__name__)

    def to_json_line(self) -> str:
        d: dict = {"id": self.id}
        if self.error is not None:
            d["error"] = self.error
        else:
            d["result"] = self.result
        return dumps_line(d)
