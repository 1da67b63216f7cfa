"""Pytest configuration and shared fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock, Mock

import numpy as np
import pytest
from PIL import Image
from playwright.async_api import BrowserContext, Page

from src.models.config import PerformanceBudget, VisualRegressionConfig
from src.models.visual import BaselineVariant, BrowserEngine, RasterImage, TestIdentity
from src.reporter.artifacts import ArtifactCollector
from src.storage.temp_files import TempFileStore


# ============================================================================
# Image Helpers
# ============================================================================


def _solid_pixels(width: int, height: int, color=(128, 128, 128, 255)) -> np.ndarray:
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[...] = color
    return pixels


def _two_tone_pixels(width: int, height: int) -> np.ndarray:
    pixels = _solid_pixels(width, height, (60, 60, 60, 255))
    pixels[:, width // 2:] = (200, 200, 200, 255)
    return pixels


def _write_png(path: Path, pixels: np.ndarray) -> Path:
    Image.fromarray(pixels).save(path, format="PNG")
    return path


@pytest.fixture
def solid_pixels():
    """Factory for (h, w, 4) RGBA arrays filled with one colour."""
    return _solid_pixels


@pytest.fixture
def two_tone_pixels():
    """Factory for arrays that are dark gray on the left half, light gray on the right."""
    return _two_tone_pixels


@pytest.fixture
def write_png():
    """Fixture that saves an RGBA array as a PNG file and returns its path."""
    return _write_png


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Stand-in for the OS temp directory."""
    path = tmp_path / "tmp"
    path.mkdir()
    return path


@pytest.fixture
def baseline_dir(tmp_path: Path) -> Path:
    """Directory holding a default and a webkit mobile baseline."""
    path = tmp_path / "baseline-images"
    path.mkdir()
    _write_png(path / "baseline_homepage_logo.png", _two_tone_pixels(40, 20))
    _write_png(path / "baseline_homepage_logo_Webkit_Mobile.png", _solid_pixels(20, 10, (30, 90, 200, 255)))
    return path


@pytest.fixture
def vr_config(tmp_path: Path, temp_dir: Path, baseline_dir: Path) -> VisualRegressionConfig:
    """Create a test configuration rooted in tmp_path."""
    return VisualRegressionConfig(
        project_name="chromium-desktop",
        threshold=0.19,
        baseline_paths={
            "default": "baseline_homepage_logo.png",
            "webkit:mobile": "baseline_homepage_logo_Webkit_Mobile.png",
        },
        baseline_root=str(baseline_dir),
        temp_dir=str(temp_dir),
        artifacts_dir=str(tmp_path / "artifacts"),
        performance=PerformanceBudget(acceptable_action_duration_ms=2000),
    )


@pytest.fixture
def temp_config_file(vr_config: VisualRegressionConfig, tmp_path: Path) -> Path:
    """Create a temporary config file."""
    config_file = tmp_path / "vr-config.json"
    vr_config.save(config_file)
    return config_file


# ============================================================================
# Core Object Fixtures
# ============================================================================


@pytest.fixture
def store(temp_dir: Path) -> TempFileStore:
    return TempFileStore(temp_dir)


@pytest.fixture
def identity() -> TestIdentity:
    return TestIdentity(project="chromium-desktop", title="Homepage logo matches baseline")


@pytest.fixture
def desktop_variant() -> BaselineVariant:
    return BaselineVariant(engine=BrowserEngine.CHROMIUM, is_mobile=False)


@pytest.fixture
def webkit_mobile_variant() -> BaselineVariant:
    return BaselineVariant(engine=BrowserEngine.WEBKIT, is_mobile=True)


@pytest.fixture
def collector(tmp_path: Path) -> ArtifactCollector:
    return ArtifactCollector(tmp_path / "artifacts")


@pytest.fixture
def gray_raster() -> RasterImage:
    return RasterImage.from_array(_solid_pixels(10, 10))


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_page() -> AsyncMock:
    """Create a mock Playwright page."""
    page = AsyncMock(spec=Page)
    page.url = "https://www.google.com"
    page.screenshot = AsyncMock()
    page.evaluate = AsyncMock()
    page.locator = Mock(return_value=AsyncMock())
    page.context = AsyncMock(spec=BrowserContext)
    page.context.browser = AsyncMock()
    return page
