"""
HTTP client for the destination artwork platform.

Wraps the two endpoints the pipeline needs:
- GET  /api/artworks/nearby   existing artworks around a point (duplicate check)
- POST /api/mass-import       create one artwork from an import record

The client satisfies the NearbyArtworkLookup protocol, so it can be handed
to the DataPipeline directly. Failed calls raise, they are never retried.
"""

import json
import logging
from typing import Any, Optional

import requests

from . import __version__
from .domain.errors import DuplicateCheckError, ExportError
from .domain.models import ExistingArtwork
from .utils import MinIntervalThrottle

logger = logging.getLogger(__name__)

NEARBY_ENDPOINT = "/api/artworks/nearby"
CREATE_ENDPOINT = "/api/mass-import"
NEARBY_LIMIT = 50


def _error_message(response: requests.Response) -> str:
    """Best error text from a failed response: JSON error/message, else body."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
    text = (response.text or "").strip()
    return text[:300] if text else f"HTTP {response.status_code}"


def _parse_tags(value: Any) -> dict[str, str]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return {}
    if not isinstance(value, dict):
        return {}
    tags = {}
    for key, tag_value in value.items():
        if tag_value is None:
            continue
        if isinstance(tag_value, (dict, list)):
            tags[str(key)] = json.dumps(tag_value, sort_keys=True)
        else:
            tags[str(key)] = str(tag_value)
    return tags


def _parse_artists(artwork: dict[str, Any]) -> list[str]:
    for key in ("artists", "artist_names"):
        value = artwork.get(key)
        if isinstance(value, list):
            names = []
            for item in value:
                name = item.get("name") if isinstance(item, dict) else item
                if isinstance(name, str) and name.strip():
                    names.append(name.strip())
            return names
        if isinstance(value, str) and value.strip():
            return [name.strip() for name in value.split(",") if name.strip()]

    created_by = artwork.get("created_by")
    if isinstance(created_by, str):
        return [name.strip() for name in created_by.split(",") if name.strip()]
    return []


def parse_existing_artwork(artwork: dict[str, Any]) -> Optional[ExistingArtwork]:
    """Convert one nearby-lookup item; None when it has no id or coordinates."""
    lat = artwork.get("lat", artwork.get("latitude"))
    lon = artwork.get("lon", artwork.get("longitude"))
    if artwork.get("id") is None or lat is None or lon is None:
        return None
    try:
        return ExistingArtwork(
            id=str(artwork["id"]),
            title=artwork.get("title"),
            artists=_parse_artists(artwork),
            lat=float(lat),
            lon=float(lon),
            tags=_parse_tags(artwork.get("tags_parsed") or artwork.get("tags")),
        )
    except (TypeError, ValueError):
        return None


class ArtworkApiClient:
    """
    Session-based client for the artwork platform API.

    Args:
        base_url: Platform root URL, e.g. https://publicartregistry.com
        token: Bearer token for authenticated endpoints
        timeout: Seconds before a request is abandoned
        request_delay: Minimum seconds between any two requests
        session: Pre-built requests.Session, mainly for tests
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        request_delay: float = 0.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.throttle = MinIntervalThrottle(request_delay)
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"artimport/{__version__}",
        })
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def find_nearby(
        self,
        lat: float,
        lon: float,
        radius_m: float,
        limit: int = NEARBY_LIMIT,
    ) -> list[ExistingArtwork]:
        """
        Existing artworks within ``radius_m`` of a point.

        Raises:
            DuplicateCheckError: On network failure, non-2xx status or bad JSON
        """
        params = {"lat": lat, "lon": lon, "radius": int(round(radius_m)), "limit": limit}
        self.throttle.wait()
        try:
            response = self.session.get(
                f"{self.base_url}{NEARBY_ENDPOINT}", params=params, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise DuplicateCheckError(f"Nearby lookup failed: {e}")

        if not response.ok:
            raise DuplicateCheckError(
                f"Nearby lookup returned {response.status_code}: {_error_message(response)}"
            )
        try:
            body = response.json()
        except ValueError:
            raise DuplicateCheckError("Nearby lookup returned invalid JSON")

        items: list = []
        if isinstance(body, dict):
            if isinstance(body.get("artworks"), list):
                items = body["artworks"]
            elif isinstance(body.get("data"), dict) and isinstance(body["data"].get("artworks"), list):
                items = body["data"]["artworks"]
        elif isinstance(body, list):
            items = body

        artworks = [a for a in (parse_existing_artwork(item) for item in items if isinstance(item, dict)) if a]
        logger.debug(f"Found {len(artworks)} artworks within {radius_m:.0f}m of {lat},{lon}")
        return artworks

    def create_artwork(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Submit one artwork.

        Returns:
            The ``data`` object of the response (contains ``artwork_id``)

        Raises:
            ExportError: On network failure, non-2xx status or an unsuccessful body
        """
        self.throttle.wait()
        try:
            response = self.session.post(
                f"{self.base_url}{CREATE_ENDPOINT}", json=payload, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise ExportError(f"Request failed: {e}")

        if not response.ok:
            raise ExportError(_error_message(response), status_code=response.status_code)

        try:
            body = response.json()
        except ValueError:
            raise ExportError("Destination returned invalid JSON", status_code=response.status_code)

        if isinstance(body, dict) and body.get("success") is False:
            raise ExportError(_error_message(response), status_code=response.status_code)

        data = body.get("data") if isinstance(body, dict) else None
        return data if isinstance(data, dict) else (body if isinstance(body, dict) else {})

    def close(self) -> None:
        self.session.close()
