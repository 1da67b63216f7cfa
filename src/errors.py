"""Error taxonomy for the visual regression core."""

from __future__ import annotations

from typing import Optional


class VisualRegressionError(Exception):
    """Base class for every failure raised by this package."""


class FetchError(VisualRegressionError):
    """Remote image answered with a non-2xx status or a non-image content type."""

    def __init__(self, url: str, status_code: int, content_type: Optional[str] = None):
        self.url = url
        self.status_code = status_code
        self.content_type = content_type
        super().__init__(
            f"Failed to download image from {url}, status code: {status_code}, "
            f"content-type: {content_type or 'missing'}"
        )


class StreamError(VisualRegressionError):
    """Network or disk failure while streaming a download to disk."""


class DecodeError(VisualRegressionError):
    """Input bytes are not a decodable PNG image."""


class FilesystemError(VisualRegressionError):
    """Reading, writing or copying a file failed."""


class BaselineConfigError(VisualRegressionError):
    """Baseline table is incomplete or points at missing files."""


class ComparisonError(VisualRegressionError):
    """Unexpected failure inside the comparison pipeline."""
