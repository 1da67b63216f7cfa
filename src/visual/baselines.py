"""Baseline resolution: a closed, validated table from variant to baseline PNG."""

from __future__ import annotations

import logging
from pathlib import Path

from src.errors import BaselineConfigError
from src.models.config import DEFAULT_BASELINE_KEY, VisualRegressionConfig
from src.models.visual import BaselineVariant

logger = logging.getLogger(__name__)


class BaselineResolver:
    """Maps every (engine, mobile) variant to exactly one baseline file.

    The full table is built and checked up front, so a missing asset shows up
    when the suite starts instead of in the middle of a comparison.
    """

    def __init__(
        self,
        baseline_paths: dict[str, str],
        baseline_root: str | Path | None = None,
        check_exists: bool = True,
    ):
        self.baseline_root = Path(baseline_root) if baseline_root else None
        self._table = self._build_table(baseline_paths, check_exists)

    @classmethod
    def from_config(cls, config: VisualRegressionConfig, check_exists: bool = True) -> "BaselineResolver":
        return cls(config.baseline_paths, config.baseline_root, check_exists=check_exists)

    def _absolute(self, raw: str) -> Path:
        path = Path(raw)
        if self.baseline_root is not None and not path.is_absolute():
            return self.baseline_root / path
        return path

    def _build_table(self, baseline_paths: dict[str, str], check_exists: bool) -> dict[BaselineVariant, Path]:
        problems: list[str] = []
        known_keys = {v.key for v in BaselineVariant.all()} | {DEFAULT_BASELINE_KEY}
        for key in baseline_paths:
            if key not in known_keys:
                problems.append(f"unknown variant key '{key}'")

        table: dict[BaselineVariant, Path] = {}
        for variant in BaselineVariant.all():
            raw = baseline_paths.get(variant.key, baseline_paths.get(DEFAULT_BASELINE_KEY))
            if raw is None:
                problems.append(f"no baseline for {variant.key}")
                continue
            path = self._absolute(raw)
            if check_exists and not path.is_file():
                problems.append(f"baseline for {variant.key} not found: {path}")
                continue
            table[variant] = path

        if problems:
            message = "; ".join(problems)
            logger.error("Invalid baseline configuration: %s", message)
            raise BaselineConfigError(f"Invalid baseline configuration: {message}")

        logger.debug("Baseline table: %s", {v.key: str(p) for v, p in table.items()})
        return table

    def resolve(self, variant: BaselineVariant) -> Path:
        return self._table[variant]

    def table(self) -> dict[str, Path]:
        return {variant.key: path for variant, path in self._table.items()}
