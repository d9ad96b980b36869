"""FastAPI application hosting one dashboard session per user."""

from __future__ import annotations

import logging
import uuid
from typing import Dict, List, Optional

from fastapi import FastAPI, Response, status
from fastapi.responses import JSONResponse

from dashboard import DashboardController
from models import COUNTRIES, CountryOption, CountryRequest, SearchRequest, SessionSnapshot
from research_client import AdResearchClient

logging.basicConfig(level=logging.INFO)
LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Ad Research Dashboard API")

research_client = AdResearchClient()
sessions: Dict[str, DashboardController] = {}


def _unknown_session() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "Unknown session"},
    )


def _snapshot(session_id: str, controller: DashboardController) -> SessionSnapshot:
    return SessionSnapshot(
        session_id=session_id,
        country=controller.country,
        state=controller.state,
    )


def _lookup(session_id: str) -> Optional[DashboardController]:
    return sessions.get(session_id)


@app.get("/countries", response_model=List[CountryOption])
async def list_countries() -> List[CountryOption]:
    """Countries a search can be run in."""

    return [CountryOption(code=code, name=name) for code, name in COUNTRIES.items()]


@app.post("/sessions", response_model=SessionSnapshot, status_code=status.HTTP_201_CREATED)
async def create_session() -> SessionSnapshot:
    """Start a new dashboard session on the search screen."""

    session_id = uuid.uuid4().hex
    sessions[session_id] = DashboardController(research_client)
    LOGGER.info("Session started session_id=%s", session_id)
    return _snapshot(session_id, sessions[session_id])


@app.get("/sessions/{session_id}", response_model=SessionSnapshot)
async def get_session(session_id: str) -> SessionSnapshot:
    controller = _lookup(session_id)
    if controller is None:
        return _unknown_session()
    return _snapshot(session_id, controller)


@app.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def end_session(session_id: str) -> Response:
    """End a session and drop any lookups still in flight."""

    controller = sessions.pop(session_id, None)
    if controller is None:
        return _unknown_session()
    controller.close()
    LOGGER.info("Session ended session_id=%s", session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.put("/sessions/{session_id}/country", response_model=SessionSnapshot)
async def set_country(session_id: str, body: CountryRequest) -> SessionSnapshot:
    controller = _lookup(session_id)
    if controller is None:
        return _unknown_session()
    controller.set_country(body.country)
    return _snapshot(session_id, controller)


@app.post(
    "/sessions/{session_id}/search",
    response_model=SessionSnapshot,
    status_code=status.HTTP_202_ACCEPTED,
)
async def submit_search(session_id: str, body: SearchRequest) -> SessionSnapshot:
    """Start an advertiser search; poll the session for its outcome."""

    controller = _lookup(session_id)
    if controller is None:
        return _unknown_session()
    controller.submit_search(body.query, body.country)
    return _snapshot(session_id, controller)


@app.post(
    "/sessions/{session_id}/pages/{page_id}",
    response_model=SessionSnapshot,
    status_code=status.HTTP_202_ACCEPTED,
)
async def select_page(session_id: str, page_id: str) -> SessionSnapshot:
    """Drill into the ads of a page from the current search results."""

    controller = _lookup(session_id)
    if controller is None:
        return _unknown_session()
    results = controller.last_results
    page = None
    if results is not None:
        page = next((item for item in results.advertisers if item.id == page_id), None)
    if page is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "Page not in search results"},
        )
    controller.select_page(page)
    return _snapshot(session_id, controller)


@app.post("/sessions/{session_id}/back", response_model=SessionSnapshot)
async def go_back(session_id: str) -> SessionSnapshot:
    controller = _lookup(session_id)
    if controller is None:
        return _unknown_session()
    controller.go_back()
    return _snapshot(session_id, controller)


@app.post(
    "/sessions/{session_id}/retry",
    response_model=SessionSnapshot,
    status_code=status.HTTP_202_ACCEPTED,
)
async def retry(session_id: str) -> SessionSnapshot:
    """Re-issue the lookup behind the session's current error."""

    controller = _lookup(session_id)
    if controller is None:
        return _unknown_session()
    controller.retry()
    return _snapshot(session_id, controller)
