"""Client for the ad research API."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from models import AdCreative, Advertiser, CountryCode, ImageAsset, Platform, VideoAsset

LOGGER = logging.getLogger(__name__)

API_URL = os.getenv("AD_RESEARCH_API_URL", "https://ad-research-api.onrender.com")
HTTP_TIMEOUT = float(os.getenv("AD_RESEARCH_HTTP_TIMEOUT", "30.0"))

SEARCH_PATH = "/api/search-advertisers"
PAGE_ADS_PATH = "/api/page-ads/{page_id}"

SEARCH_FAILED_MESSAGE = "Failed to fetch data"
ADS_FAILED_MESSAGE = "Failed to fetch ads"

_VERIFIED_BADGE = "blue_verified"
_KNOWN_PLATFORMS = {platform.value: platform for platform in Platform}


class ApiError(Exception):
    """Raised when a lookup against the research API fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class SearchFailed(ApiError):
    """The advertiser search did not produce results."""


class AdsFetchFailed(ApiError):
    """The page-ads lookup did not produce results."""


def _first_or_none(values: Any) -> Optional[Dict[str, Any]]:
    """Return the first element of a list-like value, if there is one."""

    if isinstance(values, (list, tuple)) and values:
        first = values[0]
        return first if isinstance(first, dict) else None
    return None


def _html_of(body: Any) -> Optional[str]:
    """Pull the rendered HTML out of a snapshot body, if present."""

    if not isinstance(body, dict):
        return None
    markup = body.get("markup")
    if not isinstance(markup, dict):
        return None
    return markup.get("__html") or None


def _flatten(results: List[Any]) -> List[Any]:
    """Flatten one level of nesting; non-list members are kept as they are."""

    flat: List[Any] = []
    for item in results:
        if isinstance(item, list):
            flat.extend(item)
        else:
            flat.append(item)
    return flat


def _parse_advertiser(record: Dict[str, Any]) -> Advertiser:
    """Convert a raw search result into an Advertiser."""

    return Advertiser(
        id=str(record["id"]),
        name=record.get("name") or "",
        category=record.get("category") or None,
        verified=record.get("verification") == _VERIFIED_BADGE,
        image_url=record.get("imageURI") or None,
        facebook_likes=record.get("likes") or 0,
        instagram_followers=record.get("igFollowers") or 0,
        instagram_username=record.get("igUsername") or None,
    )


def _parse_ad(record: Dict[str, Any]) -> AdCreative:
    """Convert a raw page-ads entry into an AdCreative."""

    snapshot = record.get("snapshot") or {}
    body_html = _html_of(snapshot.get("body"))

    platforms = record.get("publisherPlatform") or []
    if not isinstance(platforms, list):
        platforms = [platforms]

    images: List[ImageAsset] = []
    image = _first_or_none(snapshot.get("images"))
    if image is not None and image.get("original_image_url"):
        images.append(ImageAsset(original_image_url=image["original_image_url"]))

    videos: List[VideoAsset] = []
    video = _first_or_none(snapshot.get("videos"))
    if video is not None:
        videos.append(
            VideoAsset(
                preview_image_url=video.get("video_preview_image_url"),
                sd_url=video.get("video_sd_url"),
            )
        )

    return AdCreative(
        archive_id=str(record["adArchiveID"]),
        platforms=frozenset(
            _KNOWN_PLATFORMS[name] for name in platforms if name in _KNOWN_PLATFORMS
        ),
        start_epoch_seconds=record.get("startDate") or 0,
        title=snapshot.get("title") or body_html or None,
        body_html=body_html,
        cta_text=snapshot.get("cta_text") or None,
        cta_link_url=snapshot.get("link_url") or None,
        images=images,
        videos=videos,
    )


class AdResearchClient:
    """Stateless access to the two research lookups.

    Each call opens its own HTTP client, so one instance may be shared by any
    number of concurrent callers. Failures are raised as ``ApiError``
    subclasses carrying a message fit for display; nothing is retried.
    """

    def __init__(self, base_url: str = API_URL, timeout: float = HTTP_TIMEOUT) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _get(self, path: str, params: Dict[str, str]) -> httpx.Response:
        start_time = time.perf_counter()
        status_code: Optional[int] = None
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}{path}", params=params)
            status_code = response.status_code
            return response
        finally:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            LOGGER.info(
                "Research request path=%s status=%s duration_ms=%s",
                path,
                status_code,
                duration_ms,
            )

    async def search_advertisers(self, query: str, country: CountryCode) -> List[Advertiser]:
        """Search advertiser pages by name within a country."""

        query = query.strip()
        if not query:
            raise ValueError("query must not be empty")
        params = {"query": query, "country_code": CountryCode(country).value}

        try:
            response = await self._get(SEARCH_PATH, params)
        except httpx.HTTPError as exc:
            LOGGER.warning("Advertiser search failed query=%s error=%s", query, exc)
            raise SearchFailed(SEARCH_FAILED_MESSAGE) from exc

        if response.status_code != httpx.codes.OK:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            message = payload.get("error") if isinstance(payload, dict) else None
            if not isinstance(message, str) or not message:
                message = SEARCH_FAILED_MESSAGE
            raise SearchFailed(message)

        try:
            payload = response.json()
            results = payload.get("results") or []
            return [_parse_advertiser(record) for record in results]
        except (ValueError, AttributeError, KeyError, TypeError) as exc:
            LOGGER.warning("Malformed advertiser search response query=%s error=%s", query, exc)
            raise SearchFailed(SEARCH_FAILED_MESSAGE) from exc

    async def fetch_page_ads(self, page_id: str, country: CountryCode) -> List[AdCreative]:
        """Fetch every creative a page runs on Facebook and Instagram."""

        if not page_id or not str(page_id).strip():
            raise ValueError("page_id must not be empty")
        params = {
            "country_code": CountryCode(country).value,
            "platform": "facebook,instagram",
            "media_types": "all",
            "active_status": "all",
        }
        path = PAGE_ADS_PATH.format(page_id=quote(str(page_id), safe=""))

        try:
            response = await self._get(path, params)
        except httpx.HTTPError as exc:
            LOGGER.warning("Page ads lookup failed page_id=%s error=%s", page_id, exc)
            raise AdsFetchFailed(ADS_FAILED_MESSAGE) from exc

        if response.status_code != httpx.codes.OK:
            raise AdsFetchFailed(ADS_FAILED_MESSAGE)

        try:
            payload = response.json()
            results = payload["results"]
            if not isinstance(results, list):
                raise TypeError("results is not a list")
            return [_parse_ad(record) for record in _flatten(results)]
        except (ValueError, AttributeError, KeyError, TypeError) as exc:
            LOGGER.warning("Malformed page ads response page_id=%s error=%s", page_id, exc)
            raise AdsFetchFailed(ADS_FAILED_MESSAGE) from exc
