"""Tests for the dashboard data model."""

from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import pytest
from pydantic import TypeAdapter, ValidationError

sys.path.append(str(Path(__file__).resolve().parents[1]))

from models import (
    AdCreative,
    AdStats,
    AdsView,
    Advertiser,
    CountryCode,
    Idle,
    Platform,
    SearchQuery,
    SearchResults,
    ViewState,
)


def _ad(archive_id: str, *platforms: str) -> AdCreative:
    return AdCreative(archive_id=archive_id, platforms=platforms, start_epoch_seconds=0)


def test_stats_count_creatives_on_both_platforms_twice() -> None:
    ads = [_ad("a", "facebook"), _ad("b", "instagram"), _ad("c", "facebook", "instagram")]

    assert AdStats.from_ads(ads) == AdStats(total=3, facebook_count=2, instagram_count=2)


def test_stats_of_no_ads_are_zero() -> None:
    assert AdStats.from_ads([]) == AdStats(total=0, facebook_count=0, instagram_count=0)


def test_ads_view_serialises_derived_stats() -> None:
    view = AdsView(
        page=Advertiser(id="1", name="Acme"),
        country=CountryCode.US,
        ads=[_ad("a", "facebook"), _ad("b", "facebook", "instagram")],
    )

    dumped = view.model_dump(mode="json")

    assert dumped["kind"] == "ads_view"
    assert dumped["stats"] == {"total": 2, "facebook_count": 2, "instagram_count": 1}


def test_started_on_converts_epoch_seconds() -> None:
    ad = AdCreative(archive_id="a", start_epoch_seconds=1714521600)

    assert ad.start_epoch_seconds == 1714521600
    assert ad.started_on == date(2024, 5, 1)


def test_creative_platforms_are_a_set() -> None:
    ad = _ad("a", "instagram", "instagram")

    assert ad.platforms == frozenset({Platform.INSTAGRAM})


def test_search_query_strips_text() -> None:
    assert SearchQuery(text="  acme ").text == "acme"
    assert SearchQuery(text="   ").is_submittable is False
    assert SearchQuery(text="acme").country == CountryCode.US


def test_country_code_rejects_unsupported_values() -> None:
    with pytest.raises(ValidationError):
        SearchQuery(text="acme", country="DE")


def test_states_are_immutable() -> None:
    state = Idle()

    with pytest.raises(ValidationError):
        state.query = "acme"


def test_view_state_round_trips_through_discriminator() -> None:
    adapter = TypeAdapter(ViewState)
    results = SearchResults(
        query="acme",
        country=CountryCode.GB,
        advertisers=[Advertiser(id="1", name="Acme")],
    )

    parsed = adapter.validate_python(results.model_dump(exclude={"is_empty"}))

    assert parsed == results
