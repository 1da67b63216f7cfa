"""Visual regression data structures."""

from __future__ import annotations

import io
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
from PIL import Image
from pydantic import BaseModel, ConfigDict, PositiveInt, model_validator

from src.errors import VisualRegressionError


class BrowserEngine(str, Enum):
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class BaselineVariant(BaseModel):
    """The (browser engine, mobile flag) pair that selects a baseline."""

    model_config = ConfigDict(frozen=True)

    engine: BrowserEngine
    is_mobile: bool = False

    @property
    def key(self) -> str:
        return f"{self.engine.value}:{'mobile' if self.is_mobile else 'desktop'}"

    @classmethod
    def all(cls) -> list["BaselineVariant"]:
        return [
            cls(engine=engine, is_mobile=is_mobile)
            for engine in BrowserEngine
            for is_mobile in (False, True)
        ]

    @classmethod
    def from_key(cls, key: str) -> "BaselineVariant":
        engine, _, device = key.partition(":")
        if device not in ("mobile", "desktop"):
            raise ValueError(f"Unknown baseline variant key: {key!r}")
        return cls(engine=BrowserEngine(engine), is_mobile=device == "mobile")


class TestIdentity(BaseModel):
    """Identifies the running test for temp-file naming."""

    __test__ = False  # not a pytest test class

    project: str
    title: str = ""


class RasterImage(BaseModel):
    """Decoded RGBA image. ``data`` always holds width * height * 4 bytes."""

    model_config = ConfigDict(frozen=True)

    width: PositiveInt
    height: PositiveInt
    data: bytes

    @model_validator(mode="after")
    def _check_buffer_length(self) -> "RasterImage":
        expected = self.width * self.height * 4
        if len(self.data) != expected:
            raise ValueError(
                f"Pixel buffer holds {len(self.data)} bytes, expected {expected} "
                f"for {self.width}x{self.height} RGBA"
            )
        return self

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def to_array(self) -> np.ndarray:
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "RasterImage":
        if array.ndim != 3 or array.shape[2] != 4:
            raise ValueError(f"Expected an (h, w, 4) array, got shape {array.shape}")
        height, width = array.shape[:2]
        return cls(width=width, height=height, data=np.ascontiguousarray(array, dtype=np.uint8).tobytes())

    @classmethod
    def from_pil(cls, image: Image.Image) -> "RasterImage":
        rgba = image if image.mode == "RGBA" else image.convert("RGBA")
        return cls(width=rgba.width, height=rgba.height, data=rgba.tobytes())

    def to_pil(self) -> Image.Image:
        return Image.frombytes("RGBA", self.size, self.data)

    def to_png_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self.to_pil().save(buffer, format="PNG")
        return buffer.getvalue()


class ComparisonResult(BaseModel):
    mismatched_pixel_count: int
    diff_image_path: Optional[str] = None  # attached diff, only when pixels differ

    @model_validator(mode="after")
    def _check_diff_path(self) -> "ComparisonResult":
        if self.mismatched_pixel_count < 0:
            raise ValueError("mismatched_pixel_count must be non-negative")
        if self.mismatched_pixel_count == 0 and self.diff_image_path is not None:
            raise ValueError("diff_image_path must be empty when no pixels differ")
        if self.mismatched_pixel_count > 0 and not self.diff_image_path:
            raise ValueError("diff_image_path is required when pixels differ")
        return self

    @property
    def matches(self) -> bool:
        return self.mismatched_pixel_count == 0


@dataclass
class ComparisonOutcome:
    """Either a completed comparison or the error that stopped it."""

    result: Optional[ComparisonResult] = None
    error: Optional[VisualRegressionError] = None

    def __post_init__(self) -> None:
        if (self.result is None) == (self.error is None):
            raise ValueError("ComparisonOutcome needs exactly one of result or error")

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def mismatched_pixel_count(self) -> Optional[int]:
        return self.result.mismatched_pixel_count if self.result else None

    def unwrap(self) -> ComparisonResult:
        if self.error is not None:
            raise self.error
        return self.result
