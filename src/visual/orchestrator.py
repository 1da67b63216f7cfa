"""Visual regression orchestrator: baseline selection, normalize, compare, attach, clean up."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from playwright.async_api import Page

from src.errors import ComparisonError, VisualRegressionError
from src.imaging import comparator
from src.imaging.normalizer import decode_png, normalize
from src.models.config import VisualRegressionConfig
from src.models.visual import (
    BaselineVariant,
    ComparisonOutcome,
    ComparisonResult,
    RasterImage,
    TestIdentity,
)
from src.reporter.artifacts import ArtifactCollector, ArtifactSink
from src.storage.temp_files import TempFileStore
from src.visual.baselines import BaselineResolver

logger = logging.getLogger(__name__)

DIFF_IMAGE_NAME = "difference_between_baseline_and_actual_screenshot.png"
ACTUAL_SCREENSHOT_NAME = "actual_screenshot.png"


class VisualRegressionOrchestrator:
    """Compares actual screenshots against the baseline for their variant."""

    def __init__(
        self,
        config: VisualRegressionConfig,
        store: Optional[TempFileStore] = None,
        sink: Optional[ArtifactSink] = None,
        resolver: Optional[BaselineResolver] = None,
    ):
        self.config = config
        self.store = store or TempFileStore(config.temp_dir)
        self.sink = sink or ArtifactCollector(Path(config.artifacts_dir))
        self.resolver = resolver or BaselineResolver.from_config(config)

    async def compare_against_baseline(
        self,
        actual_path: str | Path,
        variant: BaselineVariant,
        identity: TestIdentity,
    ) -> ComparisonOutcome:
        """Compare the screenshot at ``actual_path`` with the variant's baseline.

        The screenshot is a temp file owned by this call and is deleted on every
        path. Failures come back as ``ComparisonOutcome(error=...)`` so a caller
        can tell "could not compare" apart from "compared, N pixels differ".
        """
        actual_path = Path(actual_path)
        try:
            result = await self._compare(actual_path, variant, identity)
            logger.info(
                "Visual comparison for %s (%s): %d mismatched pixels",
                identity.title or identity.project, variant.key, result.mismatched_pixel_count,
            )
            return ComparisonOutcome(result=result)
        except VisualRegressionError as e:
            logger.error("Error while comparing actual screenshot against a baseline: %s", e)
            return ComparisonOutcome(error=e)
        except Exception as e:
            logger.exception("Unexpected error while comparing %s against a baseline", actual_path)
            error = ComparisonError(f"Comparison of {actual_path} failed: {e}")
            error.__cause__ = e
            return ComparisonOutcome(error=error)
        finally:
            self.store.delete(actual_path)

    async def _compare(self, actual_path: Path, variant: BaselineVariant, identity: TestIdentity) -> ComparisonResult:
        baseline_path = self.resolver.resolve(variant)
        expected = await asyncio.to_thread(decode_png, await self.store.read_bytes(baseline_path))
        actual = await normalize(actual_path, expected, self.store)

        pixel_diff = await asyncio.to_thread(comparator.compare, expected, actual, self.config.threshold)
        if pixel_diff.mismatched_pixel_count == 0:
            return ComparisonResult(mismatched_pixel_count=0)

        diff_attachment = await self._attach_artifacts(baseline_path, actual_path, pixel_diff.diff, identity)
        return ComparisonResult(
            mismatched_pixel_count=pixel_diff.mismatched_pixel_count,
            diff_image_path=diff_attachment,
        )

    async def _attach_artifacts(
        self,
        baseline_path: Path,
        actual_path: Path,
        diff: RasterImage,
        identity: TestIdentity,
    ) -> str:
        diff_path = self.store.new_temp_path(identity, DIFF_IMAGE_NAME)
        async with self.store.scoped(diff_path):
            await self.store.write_bytes(diff_path, await asyncio.to_thread(diff.to_png_bytes))
            await self.sink.attach(baseline_path.name, baseline_path)
            await self.sink.attach(actual_path.name, actual_path)
            return await self.sink.attach(diff_path.name, diff_path)

    async def capture_and_compare(
        self,
        page: Page,
        variant: BaselineVariant,
        identity: TestIdentity,
        selector: Optional[str] = None,
        full_page: bool = False,
    ) -> ComparisonOutcome:
        """Screenshot the page (or one element of it) and compare it to the baseline."""
        actual_path = self.store.new_temp_path(identity, ACTUAL_SCREENSHOT_NAME)
        try:
            if selector:
                await page.locator(selector).screenshot(path=str(actual_path))
            else:
                await page.screenshot(path=str(actual_path), full_page=full_page)
        except Exception as e:
            logger.warning("Screenshot failed: %s", e)
            self.store.delete(actual_path)
            error = ComparisonError(f"Could not capture screenshot: {e}")
            error.__cause__ = e
            return ComparisonOutcome(error=error)
        return await self.compare_against_baseline(actual_path, variant, identity)
