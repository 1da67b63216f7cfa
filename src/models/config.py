"""Configuration models for the visual regression core."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from src.models.visual import BaselineVariant

DEFAULT_BASELINE_KEY = "default"

DEFAULT_BASELINE_PATHS: dict[str, str] = {
    DEFAULT_BASELINE_KEY: "tests/test-data/baseline-images/baseline_homepage_logo.png",
    "webkit:mobile": "tests/test-data/baseline-images/baseline_homepage_logo_Webkit_Mobile.png",
}


class PerformanceBudget(BaseModel):
    acceptable_action_duration_ms: float = 3000.0
    mark_prefix: str = "action"


class VisualRegressionConfig(BaseModel):
    # Identity used in temp-file names
    project_name: str = "ui-regression"

    # Comparison
    threshold: float = Field(default=0.19, ge=0.0, le=1.0)

    # Baselines
    baseline_paths: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_BASELINE_PATHS))
    baseline_root: Optional[str] = None

    # Storage
    temp_dir: Optional[str] = None  # OS temp dir when unset
    artifacts_dir: str = "./test-artifacts"

    # Network
    fetch_timeout_seconds: float = 30.0

    # Performance capture
    performance: PerformanceBudget = Field(default_factory=PerformanceBudget)

    @field_validator("baseline_paths")
    @classmethod
    def validate_baseline_keys(cls, v: dict[str, str]) -> dict[str, str]:
        for key in v:
            if key == DEFAULT_BASELINE_KEY:
                continue
            try:
                BaselineVariant.from_key(key)
            except ValueError:
                raise ValueError(
                    f"Unknown baseline key '{key}'; use '{DEFAULT_BASELINE_KEY}' "
                    "or '<chromium|firefox|webkit>:<desktop|mobile>'"
                ) from None
        return v

    @classmethod
    def load(cls, path: str | Path) -> "VisualRegressionConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
