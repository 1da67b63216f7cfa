"""Artifact collector: keeps copies of images attached to a test report."""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
from pathlib import Path
from typing import Optional, Protocol

from pydantic import BaseModel

from src.errors import FilesystemError

logger = logging.getLogger(__name__)


class Artifact(BaseModel):
    name: str
    path: str
    content_type: str = "image/png"
    source_path: Optional[str] = None


class ArtifactSink(Protocol):
    """Anything that can take a file attachment and return where it now lives."""

    async def attach(self, name: str, path: Path, content_type: str = "image/png") -> str:
        ...


class ArtifactCollector:
    """Copies attachments into a directory and records them in a manifest."""

    def __init__(self, artifacts_dir: Path):
        self.artifacts_dir = artifacts_dir
        self.artifacts_dir.mkdir(parents=True, exist_ok=True)
        self.artifacts: list[Artifact] = []

    def _destination(self, name: str) -> Path:
        dest = self.artifacts_dir / name
        if not dest.exists():
            return dest
        stem, suffix = dest.stem, dest.suffix
        index = 1
        while (self.artifacts_dir / f"{stem}_{index}{suffix}").exists():
            index += 1
        return self.artifacts_dir / f"{stem}_{index}{suffix}"

    async def attach(self, name: str, path: Path, content_type: str = "image/png") -> str:
        """Copy ``path`` under ``name`` and return the copy's location."""
        dest = self._destination(name)
        try:
            await asyncio.to_thread(shutil.copyfile, path, dest)
        except OSError as e:
            logger.error("Failed to attach %s: %s", path, e)
            raise FilesystemError(f"Could not attach {path}: {e}") from e

        self.artifacts.append(Artifact(
            name=dest.name,
            path=str(dest),
            content_type=content_type,
            source_path=str(path),
        ))
        logger.debug("Attached %s as %s", path, dest)
        return str(dest)

    def save_manifest(self) -> Path:
        """Persist the artifact list to ``artifacts.json``."""
        manifest_path = self.artifacts_dir / "artifacts.json"
        with open(manifest_path, "w") as f:
            json.dump([a.model_dump() for a in self.artifacts], f, indent=2)
        return manifest_path
