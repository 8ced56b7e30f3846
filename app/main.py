"""
app/main.py
-----------------------------------------------------------------------------
FastAPI application entrypoint for the Chevening Course Finder.

This module is a **thin routing layer**.  The whole submission pipeline
lives in the application controller and the modules it drives:

Domain modules
~~~~~~~~~~~~~~
- ``app.course_finder``   – Application controller (validate → call → render).
- ``app.ui_state``        – View-state machine, loading rotator, countdown.
- ``app.file_encoder``    – Upload → base64 inline data.
- ``app.prompting``       – Static instruction, user message, response schema.
- ``app.gemini_client``   – Async HTTP wrapper around Gemini generateContent.
- ``app.response_parser`` – Raw text → ResultDocument.
- ``app.renderer``        – ResultDocument → escaped HTML fragments.
- ``app.schema``          – Pydantic v2 models.
- ``app.errors``          – Error taxonomy.

Run with:
    uvicorn app.main:app --reload --host 127.0.0.1 --port 8243

Endpoints
---------
GET  /                     → serves index.html (or the configuration error panel)
POST /api/recommend        → run one CV submission, return rendered results
GET  /api/state            → current view state, loading message and countdown
GET  /api/response-schema  → the declarative output schema sent to Gemini

Architecture notes
------------------
- The ``CourseFinder`` controller is built in the lifespan handler and kept
  on ``app.state``; its countdown task runs for the life of the process.
- Static files are served by Starlette's StaticFiles middleware.
- Jinja2Templates renders index.html (single page; the JS takes over).
"""

from __future__ import annotations

import tomllib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.requests import Request

from app.course_finder import ALLOWED_MIME_TYPES, CourseFinder, build_course_finder
from app.errors import ConfigurationError
from app.prompting import RESPONSE_SCHEMA
from app.schema import RecommendationResponse, StateSnapshot, SubmissionFields
from app.ui_state import InvalidTransition

# -----------------------------------------------------------------------------
# Bootstrap
# -----------------------------------------------------------------------------

load_dotenv()

# Resolve paths relative to this file so the app works regardless of the
# working directory from which uvicorn is launched.
_HERE = Path(__file__).parent
_TEMPLATES_DIR = _HERE / "templates"
_STATIC_DIR = _HERE / "static"

# Read version from pyproject.toml (single source of truth).
_PYPROJECT = _HERE.parent / "pyproject.toml"
with open(_PYPROJECT, "rb") as _f:
    _APP_VERSION: str = tomllib.load(_f)["project"]["version"]

# HTTP status for each error kind.  All kinds render the same error panel
# in the page; the status only matters to API clients.
_ERROR_STATUS: dict[str, int] = {
    "validation": 400,
    "service": 502,
    "parse": 502,
    "configuration": 503,
    "unexpected": 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    finder = build_course_finder()
    app.state.finder = finder
    finder.start()
    try:
        yield
    finally:
        await app.state.finder.stop()


# -----------------------------------------------------------------------------
# FastAPI app + middleware
# -----------------------------------------------------------------------------

app = FastAPI(
    title="Chevening Course Finder",
    description=(
        "Single-page tool that sends a CV and a few preferences to Gemini and "
        "renders Chevening-eligible UK master's course recommendations."
    ),
    version=_APP_VERSION,
    lifespan=lifespan,
)

# Serve everything under /static/ directly from the filesystem.
app.mount("/static", StaticFiles(directory=str(_STATIC_DIR)), name="static")

# Jinja2 for the single HTML page.
templates = Jinja2Templates(directory=str(_TEMPLATES_DIR))


def _finder(request: Request) -> CourseFinder:
    return request.app.state.finder


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------


@app.get("/", response_class=HTMLResponse, include_in_schema=False)
def index(request: Request) -> HTMLResponse:
    """
    Serve the single-page application shell.

    When the Gemini credential is missing the template replaces the whole
    input form with a static configuration error panel; there is no retry
    path short of restarting with the key set.
    """
    snapshot = _finder(request).ui.snapshot()
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "snapshot": snapshot,
            "accept": ",".join(sorted(ALLOWED_MIME_TYPES)),
            "app_version": _APP_VERSION,
        },
    )


@app.post(
    "/api/recommend",
    response_model=RecommendationResponse,
    summary="Recommend Chevening-eligible courses for an uploaded CV",
)
async def recommend(
    request: Request,
    cv_file: UploadFile | None = File(default=None),
    target_fields: str = Form(default=""),
    preferred_locations: str = Form(default=""),
    start_year: str = Form(default=""),
    impact_statement: str = Form(default=""),
) -> RecommendationResponse:
    """
    Core endpoint: validate the upload, call Gemini, render the sections.

    Parameters
    ----------
    cv_file             : The CV (PDF or DOCX), multipart form data.
    target_fields       : Subject areas of interest.
    preferred_locations : Preferred UK locations.
    start_year          : Year of the autumn intake.
    impact_statement    : Country-impact one-liner.

    Returns
    -------
    RecommendationResponse with the rendered HTML and the parsed document.

    Raises
    ------
    HTTPException(400) for a missing file or disallowed MIME type.
    HTTPException(409) if a submission is already in flight.
    HTTPException(502) if Gemini fails or its response does not parse.
    HTTPException(503) if the Gemini credential is not configured.
    HTTPException(500) for any other failure.
    """
    finder = _finder(request)
    fields = SubmissionFields(
        target_fields=target_fields,
        preferred_locations=preferred_locations,
        start_year=start_year,
        impact_statement=impact_statement,
    )

    try:
        snapshot = await finder.submit(cv_file, fields)
    except ConfigurationError as exc:
        raise HTTPException(status_code=503, detail=exc.message) from exc
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    if snapshot.state == "error" or finder.last_result is None:
        raise HTTPException(
            status_code=_ERROR_STATUS.get(snapshot.error_kind or "unexpected", 500),
            detail=snapshot.error_message,
        )

    return RecommendationResponse(
        results_html=snapshot.results_html or "",
        result=finder.last_result,
        snapshot=snapshot,
    )


@app.get("/api/state", response_model=StateSnapshot, summary="Current view state")
def get_state(request: Request) -> StateSnapshot:
    """
    Return the UI state snapshot.

    The page polls this while a submission is in flight to show the rotating
    loading message, and once a second for the deadline countdown.
    """
    return _finder(request).ui.snapshot()


@app.get("/api/response-schema", summary="Return the output schema sent to Gemini")
def get_response_schema() -> dict:
    return RESPONSE_SCHEMA
