"""Temp-file store: unique naming plus read/write/delete in the OS temp dir."""

from __future__ import annotations

import asyncio
import logging
import tempfile
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from src.errors import FilesystemError
from src.models.visual import TestIdentity

logger = logging.getLogger(__name__)


class TempFileStore:
    """Creates collision-resistant temp paths and moves byte buffers in and out.

    Names combine the test's project identity, a millisecond timestamp and a
    logical file name. That is enough to keep concurrently running tests of
    one run apart; it is not meant to be unique across processes.
    """

    def __init__(self, temp_dir: str | Path | None = None):
        self.temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())

    def unique_name(self, identity: TestIdentity, logical_name: str) -> str:
        timestamp = time.time_ns() // 1_000_000
        return f"{identity.project}_{timestamp}_{logical_name}"

    def temp_path(self, name: str) -> Path:
        return self.temp_dir / name

    def new_temp_path(self, identity: TestIdentity, logical_name: str) -> Path:
        return self.temp_path(self.unique_name(identity, logical_name))

    def exists(self, path: str | Path) -> bool:
        try:
            return Path(path).exists()
        except OSError as e:
            logger.warning("Error while checking the file existence of %s: %s", path, e)
            return False

    def delete(self, path: str | Path) -> None:
        """Remove a file; failures are logged and never raised."""
        try:
            Path(path).unlink()
        except FileNotFoundError:
            logger.debug("Temp file already gone: %s", path)
        except OSError as e:
            logger.warning("Error while deleting the file %s: %s", path, e)

    async def read_bytes(self, path: str | Path) -> bytes:
        try:
            return await asyncio.to_thread(Path(path).read_bytes)
        except OSError as e:
            logger.error("Error while reading the file %s: %s", path, e)
            raise FilesystemError(f"Could not read {path}: {e}") from e

    async def write_bytes(self, path: str | Path, data: bytes) -> Path:
        path = Path(path)
        try:
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as e:
            logger.error("Error while writing the file %s: %s", path, e)
            raise FilesystemError(f"Could not write {path}: {e}") from e
        return path

    @asynccontextmanager
    async def scoped(self, path: str | Path, keep: bool = False) -> AsyncIterator[Path]:
        """Hold a temp file for the duration of a block.

        The file is removed if the block raises or is cancelled. On a clean
        exit it is removed too, unless ``keep`` is set.
        """
        path = Path(path)
        completed = False
        try:
            yield path
            completed = True
        finally:
            if not (completed and keep):
                self.delete(path)
