"""Performance capture data structures."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from src.storage.temp_files import TempFileStore


class PerformanceCapture(BaseModel):
    browser_name: str
    action_duration_ms: float
    budget_ms: float
    artifacts: dict[str, str] = Field(default_factory=dict)  # artifact name -> temp file path

    def within_budget(self, limit_ms: Optional[float] = None) -> bool:
        limit = self.budget_ms if limit_ms is None else limit_ms
        return self.action_duration_ms <= limit

    def cleanup(self, store: TempFileStore) -> None:
        """Delete every temp file this capture produced."""
        for path in self.artifacts.values():
            store.delete(path)
