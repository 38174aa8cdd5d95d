"""Configuration model for PracticeTutor."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from practicetutor.engine.sampler import SamplerConfig


class SamplerSettings(BaseModel):
    session_size: int = Field(default=20, ge=1)
    unanswered_share: float = Field(default=0.7, ge=0.0, le=1.0)
    weight_base: float = Field(default=3.0, gt=0.0)
    weight_slope: float = Field(default=2.5, ge=0.0)

    @model_validator(mode="after")
    def check_weights_positive(self) -> "SamplerSettings":
        # weight at 100% accuracy is base - slope
        if self.weight_base - self.weight_slope <= 0:
            raise ValueError("sampler.weight_base must be greater than sampler.weight_slope")
        return self

    def to_config(self) -> SamplerConfig:
        return SamplerConfig(
            session_size=self.session_size,
            unanswered_share=self.unanswered_share,
            weight_base=self.weight_base,
            weight_slope=self.weight_slope,
        )


class WeakTopicSettings(BaseModel):
    min_attempts: int = Field(default=3, ge=1)
    max_accuracy: float = Field(default=0.6, ge=0.0, le=1.0)


class ValidationSettings(BaseModel):
    default_tolerance: float = Field(default=0.001, ge=0.0)


class Settings(BaseModel):
    sampler: SamplerSettings = Field(default_factory=SamplerSettings)
    weak_topics: WeakTopicSettings = Field(default_factory=WeakTopicSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    bank_dir: Optional[Path] = None
    data_dir: Path = Path.home() / ".practicetutor"

    def get_bank_dir(self) -> Optional[Path]:
        env = os.environ.get("PRACTICETUTOR_BANK_DIR")
        return Path(env) if env else self.bank_dir

    def get_data_dir(self) -> Path:
        env = os.environ.get("PRACTICETUTOR_DATA_DIR")
        return Path(env) if env else self.data_dir

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        config_path = config_path or Path.home() / ".practicetutor" / "config.yaml"
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        return cls()

    def save(self) -> None:
        data_dir = self.get_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        config_path = data_dir / "config.yaml"
        with open(config_path, "w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)
