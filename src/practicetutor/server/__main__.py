"""PracticeTutor JSON-lines server entry point.

Usage: python -m practicetutor.server

Reads JSON requests from stdin (one per line), writes JSON responses to stdout.
All logging goes to stderr to keep the protocol clean.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

from .handler import ServerHandler
from .protocol import Response

logger = logging.getLogger("practicetutor.server")


async def handle_line(handler: ServerHandler, raw: str) -> Response:
    """Turn one request line into exactly one response. Never raises."""
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError as e:
        return Response(id=0, error=f"Invalid JSON: {e}")

    req_id = msg.get("id", 0) if isinstance(msg, dict) else 0
    try:
        return Response(id=req_id, result=await handler.dispatch(msg))
    except Exception as e:
        logger.error("request %s failed: %s", req_id, e)
        return Response.failure(req_id, e)


async def serve(handler: ServerHandler) -> None:
    reader = asyncio.StreamReader()
    await asyncio.get_running_loop().connect_read_pipe(
        lambda: asyncio.StreamReaderProtocol(reader), sys.stdin,
    )
    logger.info("practicetutor-server: ready")

    try:
        while True:
            line = await reader.readline()
            if not line:
                break  # stdin closed
            raw = line.decode("utf-8", errors="replace").strip()
            if raw:
                response = await handle_line(handler, raw)
                sys.stdout.write(response.to_json_line())
                sys.stdout.flush()
    finally:
        await handler.shutdown()


def main() -> None:
    logging.basicConfig(
        stream=sys.stderr, level=logging.INFO, format="%(name)s: %(levelname)s %(message)s",
    )
    asyncio.run(serve(ServerHandler()))


if __name__ == "__main__":
    main()
