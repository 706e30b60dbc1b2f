"""
Local cache for artwork photos referenced by import records.

Photos are stored under the SHA-1 of their URL so repeated runs reuse
earlier downloads. A photo that cannot be fetched never fails a record; the
exporter turns PhotoDownloadError into a photo warning.
"""

import hashlib
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests

from .domain.errors import PhotoDownloadError
from .utils import ensure_directory

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_MAX_BYTES = 15 * 1024 * 1024

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class PhotoCache:
    """Download-once photo store keyed by URL hash."""

    def __init__(
        self,
        cache_dir: Path,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_bytes: int = DEFAULT_MAX_BYTES,
        session: Optional[requests.Session] = None,
    ):
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.session = session or requests.Session()

    @staticmethod
    def cache_key(url: str) -> str:
        return hashlib.sha1(url.encode("utf-8")).hexdigest()

    def cached_path(self, url: str) -> Optional[Path]:
        """Existing cached file for ``url``, if any."""
        if not self.cache_dir.exists():
            return None
        matches = sorted(self.cache_dir.glob(f"{self.cache_key(url)}.*"))
        return matches[0] if matches else None

    def fetch(self, url: str) -> Path:
        """
        Return a local copy of the photo, downloading it on a cache miss.

        Raises:
            PhotoDownloadError: On bad URLs, network errors, non-image content
                or bodies larger than ``max_bytes``
        """
        if urlparse(url).scheme not in ("http", "https"):
            raise PhotoDownloadError(f"Unsupported photo URL: {url}")

        cached = self.cached_path(url)
        if cached:
            logger.debug(f"Photo cache hit for {url}")
            return cached

        try:
            response = self.session.get(url, timeout=self.timeout, stream=True)
        except requests.RequestException as e:
            raise PhotoDownloadError(f"Failed to download {url}: {e}")

        try:
            if not response.ok:
                raise PhotoDownloadError(f"Failed to download {url}: HTTP {response.status_code}")

            content_type = (response.headers.get("Content-Type") or "").split(";")[0].strip().lower()
            if not content_type.startswith("image/"):
                raise PhotoDownloadError(f"{url} is not an image (content-type '{content_type}')")

            chunks = []
            size = 0
            for chunk in response.iter_content(chunk_size=64 * 1024):
                size += len(chunk)
                if size > self.max_bytes:
                    raise PhotoDownloadError(f"{url} exceeds {self.max_bytes} bytes")
                chunks.append(chunk)
        except requests.RequestException as e:
            raise PhotoDownloadError(f"Failed to download {url}: {e}")
        finally:
            response.close()

        target = ensure_directory(self.cache_dir) / f"{self.cache_key(url)}{_EXTENSIONS.get(content_type, '.img')}"
        target.write_bytes(b"".join(chunks))
        logger.debug(f"Cached {url} as {target.name} ({size} bytes)")
        return target
