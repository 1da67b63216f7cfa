"""Image normalizer: decodes PNG screenshots and resamples them to the baseline size."""

from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from src.errors import DecodeError
from src.models.visual import RasterImage
from src.storage.temp_files import TempFileStore

logger = logging.getLogger(__name__)


def _open_png(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Could not decode image: {e}") from e
    if image.format != "PNG":
        raise DecodeError(f"Expected PNG data, got {image.format or 'unknown format'}")
    return image


def decode_png(data: bytes) -> RasterImage:
    """Decode PNG bytes into an RGBA raster."""
    return RasterImage.from_pil(_open_png(data))


def resample(image: Image.Image, width: int, height: int) -> RasterImage:
    """Resize to ``width`` x ``height`` with Lanczos filtering."""
    rgba = image if image.mode == "RGBA" else image.convert("RGBA")
    return RasterImage.from_pil(rgba.resize((width, height), Image.Resampling.LANCZOS))


async def normalize(actual_path: str | Path, expected: RasterImage, store: TempFileStore) -> RasterImage:
    """Load the actual screenshot, resampled to the expected raster's dimensions if they differ."""
    image = await asyncio.to_thread(_open_png, await store.read_bytes(actual_path))
    if image.size == expected.size:
        return await asyncio.to_thread(RasterImage.from_pil, image)

    logger.info(
        "Screenshot size %dx%d differs from baseline %dx%d, resizing",
        image.width, image.height, expected.width, expected.height,
    )
    return await asyncio.to_thread(resample, image, expected.width, expected.height)
