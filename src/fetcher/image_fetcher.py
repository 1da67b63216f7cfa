"""Remote image fetcher: streams an image URL into the temp-file store."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import re
from pathlib import Path
from typing import Optional

import httpx

from src.errors import FetchError, StreamError
from src.models.visual import TestIdentity
from src.storage.temp_files import TempFileStore

logger = logging.getLogger(__name__)

_IMAGE_CONTENT_TYPE = re.compile(r"^image/", re.IGNORECASE)


def _extension_for(content_type: str) -> str:
    mime = content_type.split(";", 1)[0].strip().lower()
    return mimetypes.guess_extension(mime) or ".img"


class ImageFetcher:
    """Downloads images over HTTPS without buffering whole bodies in memory."""

    def __init__(
        self,
        store: TempFileStore,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        default_identity: Optional[TestIdentity] = None,
    ):
        self.store = store
        self.client = client
        self.timeout = timeout
        self.default_identity = default_identity or TestIdentity(project="download")

    async def fetch(self, url: str, identity: Optional[TestIdentity] = None) -> Path:
        """Download ``url`` into a new temp file and return its path.

        Raises:
            FetchError: status outside 2xx or a non-image content type.
            StreamError: the connection or the disk failed during transfer.
        """
        identity = identity or self.default_identity
        if self.client is not None:
            return await self._fetch_with(self.client, url, identity)
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            return await self._fetch_with(client, url, identity)

    async def _fetch_with(self, client: httpx.AsyncClient, url: str, identity: TestIdentity) -> Path:
        logger.debug("Fetching image %s", url)
        try:
            async with client.stream("GET", url) as response:
                content_type = response.headers.get("content-type", "")
                if not (200 <= response.status_code < 300) or not _IMAGE_CONTENT_TYPE.match(content_type):
                    logger.error(
                        "Rejected download from %s (status %d, content-type %r)",
                        url, response.status_code, content_type,
                    )
                    raise FetchError(url, response.status_code, content_type or None)

                path = self.store.new_temp_path(identity, f"downloaded_image{_extension_for(content_type)}")
                async with self.store.scoped(path, keep=True):
                    await self._stream_to_file(response, path)
        except httpx.HTTPError as e:
            logger.error("Error while downloading image from %s: %s", url, e)
            raise StreamError(f"Download of {url} failed: {e}") from e
        except OSError as e:
            logger.error("Error while writing image from %s to disk: %s", url, e)
            raise StreamError(f"Could not store download of {url}: {e}") from e

        logger.info("Downloaded %s to %s", url, path)
        return path

    @staticmethod
    async def _stream_to_file(response: httpx.Response, path: Path) -> None:
        fh = await asyncio.to_thread(open, path, "wb")
        try:
            async for chunk in response.aiter_bytes():
                await asyncio.to_thread(fh.write, chunk)
        finally:
            await asyncio.to_thread(fh.close)
