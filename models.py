"""Pydantic models for the ad research dashboard."""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Dict, FrozenSet, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


class CountryCode(str, Enum):
    """Countries the research API can be queried for."""

    US = "US"
    PL = "PL"
    GB = "GB"


COUNTRIES: Dict[CountryCode, str] = {
    CountryCode.US: "United States",
    CountryCode.PL: "Poland",
    CountryCode.GB: "United Kingdom",
}

DEFAULT_COUNTRY = CountryCode.US


class Platform(str, Enum):
    """Publisher platforms an ad creative can run on."""

    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"


class SearchQuery(BaseModel):
    """Search box contents as typed by the user."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    text: str = ""
    country: CountryCode = DEFAULT_COUNTRY

    @property
    def is_submittable(self) -> bool:
        """Only a non-blank query is worth a network call."""

        return bool(self.text)


class Advertiser(BaseModel):
    """A page returned by the advertiser search."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: Optional[str] = None
    verified: bool = False
    image_url: Optional[str] = None
    facebook_likes: int = 0
    instagram_followers: int = 0
    instagram_username: Optional[str] = None


class ImageAsset(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_image_url: str


class VideoAsset(BaseModel):
    model_config = ConfigDict(frozen=True)

    preview_image_url: Optional[str] = None
    sd_url: Optional[str] = None


class AdCreative(BaseModel):
    """A single active ad served by a page."""

    model_config = ConfigDict(frozen=True)

    archive_id: str
    platforms: FrozenSet[Platform] = frozenset()
    start_epoch_seconds: int
    title: Optional[str] = None
    body_html: Optional[str] = None
    cta_text: Optional[str] = None
    cta_link_url: Optional[str] = None
    images: List[ImageAsset] = Field(default_factory=list)
    videos: List[VideoAsset] = Field(default_factory=list)

    @property
    def started_on(self) -> date:
        """Calendar day (UTC) the ad started running."""

        return datetime.fromtimestamp(self.start_epoch_seconds, tz=timezone.utc).date()


class AdStats(BaseModel):
    """Platform breakdown of a page's creatives."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    facebook_count: int = 0
    instagram_count: int = 0

    @classmethod
    def from_ads(cls, ads: Iterable[AdCreative]) -> "AdStats":
        total = facebook = instagram = 0
        for ad in ads:
            total += 1
            if Platform.FACEBOOK in ad.platforms:
                facebook += 1
            if Platform.INSTAGRAM in ad.platforms:
                instagram += 1
        return cls(total=total, facebook_count=facebook, instagram_count=instagram)


class _State(BaseModel):
    model_config = ConfigDict(frozen=True)


class Idle(_State):
    kind: Literal["idle"] = "idle"
    query: str = ""
    country: CountryCode = DEFAULT_COUNTRY


class Searching(_State):
    kind: Literal["searching"] = "searching"
    query: str
    country: CountryCode


class SearchError(_State):
    kind: Literal["search_error"] = "search_error"
    query: str
    country: CountryCode
    message: str


class SearchResults(_State):
    kind: Literal["search_results"] = "search_results"
    query: str
    country: CountryCode
    advertisers: List[Advertiser] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_empty(self) -> bool:
        return not self.advertisers


class LoadingAds(_State):
    kind: Literal["loading_ads"] = "loading_ads"
    page: Advertiser
    country: CountryCode


class AdsError(_State):
    kind: Literal["ads_error"] = "ads_error"
    page: Advertiser
    country: CountryCode
    message: str


class AdsView(_State):
    kind: Literal["ads_view"] = "ads_view"
    page: Advertiser
    country: CountryCode
    ads: List[AdCreative] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def stats(self) -> AdStats:
        """Derived from ``ads`` on every access; never stored."""

        return AdStats.from_ads(self.ads)


ViewState = Annotated[
    Union[Idle, Searching, SearchError, SearchResults, LoadingAds, AdsError, AdsView],
    Field(discriminator="kind"),
]


class SearchRequest(BaseModel):
    """Body of a search action."""

    model_config = ConfigDict(str_strip_whitespace=True)

    query: str = Field(..., description="Advertiser name to search for.")
    country: Optional[CountryCode] = Field(
        default=None,
        description="Country to search in; defaults to the session's country.",
    )


class CountryRequest(BaseModel):
    """Body of a country change."""

    country: CountryCode


class CountryOption(BaseModel):
    code: CountryCode
    name: str


class SessionSnapshot(BaseModel):
    """API response payload: everything a view needs to render a session."""

    session_id: str
    country: CountryCode
    state: ViewState
