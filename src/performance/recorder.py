"""Performance recorder: User Timing, tracing and CDP metrics around a page action."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Awaitable, Callable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from src.models.config import PerformanceBudget
from src.models.performance import PerformanceCapture
from src.models.visual import BrowserEngine, TestIdentity
from src.storage.temp_files import TempFileStore

logger = logging.getLogger(__name__)

_MARK_JS = "(name) => { performance.clearMarks(name); performance.mark(name); }"
_MEASURE_JS = """([name, start, end]) => {
    performance.clearMeasures(name);
    performance.measure(name, start, end);
    const entries = performance.getEntriesByName(name, 'measure');
    return entries[entries.length - 1].duration;
}"""
_ENTRIES_JS = "(type) => performance.getEntriesByType(type).map((entry) => entry.toJSON())"


def _to_json(data: object) -> bytes:
    return json.dumps(data, indent=2).encode()


def _metrics_by_name(response: dict) -> dict[str, float]:
    return {m["name"]: m["value"] for m in response.get("metrics", [])}


class PerformanceRecorder:
    """Measures how long a page action takes and keeps the raw timing data.

    Every browser gets User Timing marks and measures. Chromium additionally
    gets a performance trace and the change in Chrome DevTools Protocol
    metrics across the action. Everything is written to temp files; the
    returned capture lists them and can delete them again.
    """

    def __init__(self, store: TempFileStore, budget: Optional[PerformanceBudget] = None):
        self.store = store
        self.budget = budget or PerformanceBudget()

    async def measure(
        self,
        page: Page,
        action: Callable[[], Awaitable[object]],
        identity: TestIdentity,
        browser_name: Optional[str] = None,
    ) -> PerformanceCapture:
        if browser_name is None:
            browser = page.context.browser
            browser_name = browser.browser_type.name if browser else BrowserEngine.CHROMIUM.value
        chromium = browser_name == BrowserEngine.CHROMIUM.value
        # Persistent contexts have no Browser handle, and tracing lives on the Browser.
        tracer = page.context.browser if chromium else None
        if chromium and tracer is None:
            logger.warning("No browser handle for this context, skipping Chromium tracing")

        prefix = self.budget.mark_prefix
        start_mark, end_mark, measure_name = f"{prefix}-start", f"{prefix}-end", f"{prefix}-duration"
        artifacts: dict[str, str] = {}
        cdp = None

        try:
            metrics_before: dict[str, float] = {}
            trace: Optional[bytes] = None
            if chromium:
                cdp = await page.context.new_cdp_session(page)
                await cdp.send("Performance.enable")
                metrics_before = _metrics_by_name(await cdp.send("Performance.getMetrics"))
            if tracer is not None:
                await tracer.start_tracing(page=page, screenshots=True)

            await page.evaluate(_MARK_JS, start_mark)
            started = time.perf_counter()
            try:
                await action()
            finally:
                wall_ms = (time.perf_counter() - started) * 1000
                if tracer is not None:
                    trace = await tracer.stop_tracing()
            await page.evaluate(_MARK_JS, end_mark)

            duration_ms = await self._measured_duration(page, measure_name, start_mark, end_mark, wall_ms)

            marks = await page.evaluate(_ENTRIES_JS, "mark")
            await self._write(identity, "marks_info", _to_json(marks), artifacts)
            measures = await page.evaluate(_ENTRIES_JS, "measure")
            await self._write(identity, "measures_info", _to_json(measures), artifacts)

            if chromium:
                metrics_after = _metrics_by_name(await cdp.send("Performance.getMetrics"))
                metrics_diff = {
                    name: value - metrics_before.get(name, 0.0)
                    for name, value in metrics_after.items()
                }
                await self._write(identity, "metrics_diff", _to_json(metrics_diff), artifacts)
            if tracer is not None:
                await self._write(identity, "traces", trace or b"", artifacts)
            if cdp is not None:
                await cdp.detach()
        except BaseException:
            for path in artifacts.values():
                self.store.delete(path)
            if cdp is not None:
                try:
                    await cdp.detach()
                except PlaywrightError as e:
                    logger.debug("CDP session already closed: %s", e)
            raise

        logger.info("Action took %.1f ms on %s (budget %.0f ms)",
                    duration_ms, browser_name, self.budget.acceptable_action_duration_ms)
        return PerformanceCapture(
            browser_name=browser_name,
            action_duration_ms=duration_ms,
            budget_ms=self.budget.acceptable_action_duration_ms,
            artifacts=artifacts,
        )

    async def _measured_duration(
        self, page: Page, name: str, start_mark: str, end_mark: str, fallback_ms: float,
    ) -> float:
        # Navigation inside the action replaces the document and drops the start mark.
        try:
            return float(await page.evaluate(_MEASURE_JS, [name, start_mark, end_mark]))
        except PlaywrightError as e:
            logger.debug("User Timing measure unavailable (%s), using wall clock", e)
            return fallback_ms

    async def _write(self, identity: TestIdentity, key: str, data: bytes, artifacts: dict[str, str]) -> Path:
        path = self.store.new_temp_path(identity, f"{key}.json")
        await self.store.write_bytes(path, data)
        artifacts[key] = str(path)
        return path
