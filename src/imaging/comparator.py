"""Pixel comparator: perceptual per-pixel diff between two equally sized rasters.

Colour distance is measured in YIQ space, the NTSC transmission encoding that
separates luma (Y) from chroma (I, Q). Pixels are first alpha-blended over
white so transparent regions compare the way they render. A pixel counts as
mismatched when its weighted YIQ delta exceeds ``MAX_YIQ_DELTA * threshold**2``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from src.models.visual import RasterImage

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.19

# Largest weighted YIQ delta between any two RGB colours.
MAX_YIQ_DELTA = 35215.0

DIFF_COLOR = np.array([255, 0, 0, 255], dtype=np.uint8)
MATCHED_PIXEL_ALPHA = 0.1


@dataclass
class PixelDiff:
    mismatched_pixel_count: int
    diff: Optional[RasterImage] = None


def _blend_over_white(pixels: np.ndarray) -> np.ndarray:
    rgb = pixels[..., :3].astype(np.float64)
    alpha = pixels[..., 3:4].astype(np.float64) / 255.0
    return 255.0 + (rgb - 255.0) * alpha


def _luma(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.29889531 + rgb[..., 1] * 0.58662247 + rgb[..., 2] * 0.11448223


def color_delta(expected: np.ndarray, actual: np.ndarray) -> np.ndarray:
    """Weighted squared YIQ distance for every pixel of two (h, w, 4) arrays."""
    a = _blend_over_white(expected)
    b = _blend_over_white(actual)

    y = _luma(a) - _luma(b)
    i = (
        (a[..., 0] - b[..., 0]) * 0.59597799
        - (a[..., 1] - b[..., 1]) * 0.27417610
        - (a[..., 2] - b[..., 2]) * 0.32180189
    )
    q = (
        (a[..., 0] - b[..., 0]) * 0.21147017
        - (a[..., 1] - b[..., 1]) * 0.52261711
        + (a[..., 2] - b[..., 2]) * 0.31114694
    )
    return 0.5053 * y * y + 0.299 * i * i + 0.1957 * q * q


def _render_diff(expected: np.ndarray, mismatched: np.ndarray) -> np.ndarray:
    # Matched pixels: baseline luma faded towards white so red marks stand out.
    alpha = MATCHED_PIXEL_ALPHA * expected[..., 3].astype(np.float64) / 255.0
    gray = 255.0 + (_luma(expected.astype(np.float64)) - 255.0) * alpha
    gray = np.clip(np.rint(gray), 0, 255).astype(np.uint8)

    diff = np.empty_like(expected)
    diff[..., 0] = gray
    diff[..., 1] = gray
    diff[..., 2] = gray
    diff[..., 3] = 255
    diff[mismatched] = DIFF_COLOR
    return diff


def compare(expected: RasterImage, actual: RasterImage, threshold: float = DEFAULT_THRESHOLD) -> PixelDiff:
    """Count pixels whose perceptual distance exceeds ``threshold``.

    Both rasters must have the same dimensions. A diff raster is produced only
    when at least one pixel differs.

    There is no anti-aliasing detection: anti-aliased edge pixels are counted
    like any other pixel, so a shifted antialiased edge shows up as a mismatch
    wherever it exceeds the threshold.
    """
    if expected.size != actual.size:
        raise ValueError(
            f"Image sizes do not match: expected {expected.width}x{expected.height}, "
            f"actual {actual.width}x{actual.height}"
        )
    if not 0.0 <= threshold <= 1.0:
        raise ValueError("Threshold must be between 0.0 and 1.0")

    expected_px = expected.to_array()
    actual_px = actual.to_array()

    identical = np.all(expected_px == actual_px, axis=2)
    if identical.all():
        return PixelDiff(mismatched_pixel_count=0)

    max_delta = MAX_YIQ_DELTA * threshold * threshold
    mismatched = (color_delta(expected_px, actual_px) > max_delta) & ~identical
    count = int(mismatched.sum())

    logger.debug(
        "Compared %dx%d images: %d mismatched pixels (threshold %.2f)",
        expected.width, expected.height, count, threshold,
    )
    if count == 0:
        return PixelDiff(mismatched_pixel_count=0)
    return PixelDiff(mismatched_pixel_count=count, diff=RasterImage.from_array(_render_diff(expected_px, mismatched)))
