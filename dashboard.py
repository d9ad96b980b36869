"""View-state machine driving the search and drill-down screens."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Coroutine, Optional, Set

from models import (
    AdsError,
    AdsView,
    Advertiser,
    CountryCode,
    Idle,
    LoadingAds,
    SearchError,
    SearchQuery,
    SearchResults,
    Searching,
    ViewState,
)
from research_client import AdResearchClient, AdsFetchFailed, SearchFailed

LOGGER = logging.getLogger(__name__)

_SEARCHABLE = (Idle, Searching, SearchError, SearchResults)
_SELECTABLE = (SearchResults, LoadingAds, AdsView, AdsError)
_DRILLED_DOWN = (LoadingAds, AdsView, AdsError)


class DashboardController:
    """Owns one session's view state and sequences its lookups.

    Actions that hit the network apply their loading state immediately and
    return the ``asyncio.Task`` carrying the request, or ``None`` when the
    action does not apply to the current state. Every request remembers the
    generation it was issued under; a response arriving after a newer request
    or a ``go_back`` is dropped instead of being applied.
    """

    def __init__(
        self,
        client: AdResearchClient,
        country: CountryCode = CountryCode.US,
        on_change: Optional[Callable[[ViewState], None]] = None,
    ) -> None:
        self._client = client
        self._on_change = on_change
        self._draft = SearchQuery(country=country)
        self._state: ViewState = Idle(country=self._draft.country)
        self._results: Optional[SearchResults] = None
        self._generation = 0
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def draft(self) -> SearchQuery:
        """Search box contents that the next search or selection will use."""

        return self._draft

    @property
    def country(self) -> CountryCode:
        return self._draft.country

    @property
    def last_results(self) -> Optional[SearchResults]:
        return self._results

    @property
    def closed(self) -> bool:
        return self._closed

    def update_query(self, text: str) -> None:
        self._draft = SearchQuery(text=text, country=self._draft.country)
        self._refresh_idle()

    def set_country(self, country: CountryCode) -> None:
        """Change the country used by the next search or page selection.

        Whatever is on screen is left alone; nothing is refetched.
        """

        self._draft = SearchQuery(text=self._draft.text, country=CountryCode(country))
        self._refresh_idle()

    def submit_search(
        self, text: Optional[str] = None, country: Optional[CountryCode] = None
    ) -> Optional[asyncio.Task]:
        """Search for advertisers, by default with the current draft query."""

        if not self._accepts("submit_search", _SEARCHABLE):
            return None
        query = SearchQuery(
            text=self._draft.text if text is None else text,
            country=country or self._draft.country,
        )
        if not query.is_submittable:
            return None
        self._draft = query
        return self._start_search(query.text, query.country)

    def select_page(
        self, page: Advertiser, country: Optional[CountryCode] = None
    ) -> Optional[asyncio.Task]:
        """Drill into the ads of one advertiser page."""

        if not self._accepts("select_page", _SELECTABLE):
            return None
        return self._start_ads(page, country or self._draft.country)

    def go_back(self) -> ViewState:
        """Return to the search results the drill-down was entered from."""

        if self._accepts("go_back", _DRILLED_DOWN) and self._results is not None:
            self._generation += 1
            self._set_state(self._results)
        return self._state

    def retry(self) -> Optional[asyncio.Task]:
        """Re-issue the request behind the current error state."""

        state = self._state
        if self._closed:
            return None
        if isinstance(state, SearchError):
            return self._start_search(state.query, state.country)
        if isinstance(state, AdsError):
            return self._start_ads(state.page, state.country)
        LOGGER.debug("Ignoring retry in state=%s", state.kind)
        return None

    async def wait(self) -> None:
        """Wait until every request issued so far has completed."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def close(self) -> None:
        """End the session; responses still in flight are never applied."""

        self._closed = True
        self._generation += 1
        for task in list(self._tasks):
            task.cancel()

    def _accepts(self, action: str, states: tuple) -> bool:
        if self._closed:
            LOGGER.debug("Ignoring %s on closed session", action)
            return False
        if not isinstance(self._state, states):
            LOGGER.debug("Ignoring %s in state=%s", action, self._state.kind)
            return False
        return True

    def _refresh_idle(self) -> None:
        if isinstance(self._state, Idle):
            self._set_state(Idle(query=self._draft.text, country=self._draft.country))

    def _set_state(self, state: ViewState) -> None:
        LOGGER.debug("Transition %s -> %s", self._state.kind, state.kind)
        self._state = state
        if self._on_change is not None:
            self._on_change(state)

    def _issue(self, state: ViewState, request: Coroutine) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        self._generation += 1
        self._set_state(state)
        task = loop.create_task(request)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def _start_search(self, text: str, country: CountryCode) -> asyncio.Task:
        generation = self._generation + 1
        return self._issue(
            Searching(query=text, country=country),
            self._run_search(generation, text, country),
        )

    def _start_ads(self, page: Advertiser, country: CountryCode) -> asyncio.Task:
        generation = self._generation + 1
        return self._issue(
            LoadingAds(page=page, country=country),
            self._run_ads(generation, page, country),
        )

    async def _run_search(self, generation: int, text: str, country: CountryCode) -> None:
        try:
            advertisers = await self._client.search_advertisers(text, country)
        except SearchFailed as exc:
            outcome: ViewState = SearchError(query=text, country=country, message=exc.message)
        else:
            outcome = SearchResults(query=text, country=country, advertisers=advertisers)

        if not self._is_current(generation):
            LOGGER.info("Discarding stale search response query=%s country=%s", text, country.value)
            return
        if isinstance(outcome, SearchResults):
            self._results = outcome
        self._set_state(outcome)

    async def _run_ads(self, generation: int, page: Advertiser, country: CountryCode) -> None:
        try:
            ads = await self._client.fetch_page_ads(page.id, country)
        except AdsFetchFailed as exc:
            outcome: ViewState = AdsError(page=page, country=country, message=exc.message)
        else:
            outcome = AdsView(page=page, country=country, ads=ads)

        if not self._is_current(generation):
            LOGGER.info("Discarding stale ads response page_id=%s", page.id)
            return
        self._set_state(outcome)
