"""
app/course_finder.py
-----------------------------------------------------------------------------
Application controller: runs one submission through the whole pipeline.

    validate → LOADING → encode file → compose request → Gemini
             → parse → render → RESULTS            (ERROR on any failure)

``CourseFinder`` is created once at startup and owns the Gemini client, the
UI state controller and the deadline countdown.  Nothing here is a module
global: the FastAPI lifespan builds it with :func:`build_course_finder`,
starts it, and stops it on shutdown.

A missing credential does not prevent startup.  The controller is built in
a permanent configuration-error mode instead: the page replaces the form
with a static error panel and every submission is refused.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime

from dotenv import load_dotenv
from fastapi import UploadFile

from app.errors import ConfigurationError, CourseFinderError, ValidationError
from app.file_encoder import encode_upload
from app.gemini_client import GeminiClient
from app.prompting import compose_request
from app.renderer import render_results
from app.response_parser import parse_response
from app.schema import ResultDocument, StateSnapshot, SubmissionFields
from app.ui_state import (
    DEFAULT_DEADLINE,
    DeadlineCountdown,
    InvalidTransition,
    UIStateController,
    ViewState,
)

load_dotenv()

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
ALLOWED_MIME_TYPES: frozenset[str] = frozenset({PDF_MIME_TYPE, DOCX_MIME_TYPE})

MISSING_FILE_MESSAGE = "Please upload your CV file."
INVALID_TYPE_MESSAGE = "Invalid file type. Please upload a PDF or DOCX file."
FALLBACK_ERROR_MESSAGE = "Could not process the file or parse the response from the model."


def validate_upload(upload: UploadFile | None) -> UploadFile:
    """
    Pre-submit gate: a file must be present and be a PDF or DOCX.

    Browsers send an empty file part (no filename) when nothing is selected,
    so that counts as missing too.

    Raises
    ------
    ValidationError : With the user-facing message for the failed check.
    """
    if upload is None or not upload.filename:
        raise ValidationError(MISSING_FILE_MESSAGE)
    if upload.content_type not in ALLOWED_MIME_TYPES:
        raise ValidationError(INVALID_TYPE_MESSAGE)
    return upload


class CourseFinder:
    def __init__(
        self,
        client: GeminiClient | None,
        *,
        countdown: DeadlineCountdown | None = None,
        configuration_error: str | None = None,
    ) -> None:
        if client is None and configuration_error is None:
            raise ValueError("either a client or a configuration error is required")
        self.client = client
        self.countdown = countdown or DeadlineCountdown()
        self.ui = UIStateController(
            countdown=self.countdown,
            configuration_error=configuration_error,
        )
        self.last_result: ResultDocument | None = None

    @property
    def configuration_error(self) -> str | None:
        return self.ui.configuration_error

    # -- lifecycle ------------------------------------------------------------

    def start(self) -> None:
        """Start the deadline countdown (runs whatever the form state)."""
        self.countdown.start()

    async def stop(self) -> None:
        await self.ui.rotator.stop()
        await self.countdown.stop()

    # -- submission -----------------------------------------------------------

    async def submit(self, upload: UploadFile | None, fields: SubmissionFields) -> StateSnapshot:
        """
        Run one submission and return the resulting view state.

        Validation failures go straight to ERROR without touching the model
        client.  Everything after that runs inside LOADING; whatever happens,
        leaving LOADING stops the rotator and re-enables submit.

        Raises
        ------
        ConfigurationError : If the controller was built without a credential.
        InvalidTransition  : If another submission is still in flight.
        """
        if self.configuration_error is not None:
            raise ConfigurationError(self.configuration_error)
        if self.ui.state is ViewState.LOADING:
            raise InvalidTransition("A submission is already in progress.")

        try:
            upload = validate_upload(upload)
        except ValidationError as exc:
            self.ui.show_error(exc.message, exc.kind)
            return self.ui.snapshot()

        self.ui.begin_loading()
        self.last_result = None
        try:
            encoded = await encode_upload(upload)
            payload = compose_request(fields)
            raw_text = await self.client.submit(encoded, payload)
            result = parse_response(raw_text)
            self.ui.show_results(str(render_results(result)))
            self.last_result = result
        except CourseFinderError as exc:
            self.ui.show_error(exc.message, exc.kind)
        except Exception as exc:
            logger.exception("Unexpected failure while processing submission")
            self.ui.show_error(str(exc) or FALLBACK_ERROR_MESSAGE)
        finally:
            await self.ui.finish_loading()
        return self.ui.snapshot()


# -----------------------------------------------------------------------------
# Construction from the environment
# -----------------------------------------------------------------------------


def deadline_from_env() -> datetime:
    """Read ``APPLICATION_DEADLINE`` (ISO-8601); fall back to the default."""
    raw = os.getenv("APPLICATION_DEADLINE")
    if not raw:
        return DEFAULT_DEADLINE
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        logger.warning("Ignoring unparseable APPLICATION_DEADLINE=%r", raw)
        return DEFAULT_DEADLINE


def build_course_finder() -> CourseFinder:
    """
    Build the application controller from environment variables.

    A missing credential is logged and turns into configuration-error mode
    rather than a crash, so the page can still explain what is wrong.
    """
    countdown = DeadlineCountdown(deadline_from_env())
    try:
        client = GeminiClient.from_env()
    except ConfigurationError as exc:
        logger.error("Gemini API key is not configured; the form is disabled")
        return CourseFinder(None, countdown=countdown, configuration_error=exc.message)
    return CourseFinder(client, countdown=countdown)
