"""
app/ui_state.py
-----------------------------------------------------------------------------
UI State Controller and its two scheduled tasks.

View states
-----------
INPUT    – resting state; the form is interactive.
LOADING  – a submission is in flight; submit is disabled and a status
           message rotates every few seconds.
RESULTS  – the last submission rendered successfully.
ERROR    – the last submission (or its pre-submit validation) failed.

Transitions::

    INPUT / RESULTS / ERROR ──begin_loading──▶ LOADING
    LOADING ──show_results──▶ RESULTS
    LOADING ──show_error────▶ ERROR
    INPUT / RESULTS / ERROR ──show_error──▶ ERROR   (validation failures)

RESULTS and ERROR keep the input form visible, so they double as resting
states for the next submission.

Timers
------
``LoadingMessageRotator`` runs only while LOADING; ``DeadlineCountdown`` runs
for the lifetime of the process and stops itself once the deadline passes.
Both are plain asyncio tasks with explicit ``start()`` / ``stop()``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from enum import Enum

from app.schema import StateSnapshot

logger = logging.getLogger(__name__)

LOADING_MESSAGES: tuple[str, ...] = (
    "Analyzing your CV against Chevening criteria...",
    "Searching the official course database...",
    "Scoring and ranking top matches...",
    "Compiling your personalized strategy...",
    "This may take a moment. Great recommendations are on their way!",
)
LOADING_ROTATION_SECONDS = 3.0

DEFAULT_DEADLINE = datetime(2025, 10, 7, 12, 0, tzinfo=timezone.utc)
DEADLINE_PASSED_MESSAGE = "The deadline has passed."
COUNTDOWN_TICK_SECONDS = 1.0


class ViewState(str, Enum):
    INPUT = "input"
    LOADING = "loading"
    RESULTS = "results"
    ERROR = "error"


class InvalidTransition(RuntimeError):
    """Raised when a transition is requested from a state that forbids it."""


# -----------------------------------------------------------------------------
# Loading message rotation
# -----------------------------------------------------------------------------


class LoadingMessageRotator:
    """Cycles through a fixed list of status messages on a timer."""

    def __init__(
        self,
        messages: Sequence[str] = LOADING_MESSAGES,
        interval: float = LOADING_ROTATION_SECONDS,
    ) -> None:
        if not messages:
            raise ValueError("messages must contain at least one entry")
        self.messages = tuple(messages)
        self.interval = interval
        self.index = 0
        self._task: asyncio.Task | None = None

    @property
    def current(self) -> str:
        return self.messages[self.index]

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def advance(self) -> str:
        self.index = (self.index + 1) % len(self.messages)
        return self.current

    def start(self) -> None:
        """Reset to the first message and start rotating.  Needs a running loop."""
        self.index = 0
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.advance()


# -----------------------------------------------------------------------------
# Deadline countdown
# -----------------------------------------------------------------------------


def format_remaining(seconds: float) -> str:
    """Format a positive duration as ``"{d}d {h}h {m}m {s}s"``."""
    total = int(seconds)
    days, rest = divmod(total, 86_400)
    hours, rest = divmod(rest, 3_600)
    minutes, secs = divmod(rest, 60)
    return f"{days}d {hours}h {minutes}m {secs}s"


class DeadlineCountdown:
    """
    Counts down to a fixed deadline, once per ``interval`` seconds.

    Once the deadline is reached the text freezes on
    ``DEADLINE_PASSED_MESSAGE`` and the task ends; later ``tick()`` calls do
    not change it.  ``now`` is injectable so tests can drive the clock.
    """

    def __init__(
        self,
        deadline: datetime = DEFAULT_DEADLINE,
        *,
        interval: float = COUNTDOWN_TICK_SECONDS,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=timezone.utc)
        self.deadline = deadline
        self.interval = interval
        self._now = now or (lambda: datetime.now(timezone.utc))
        self.text = ""
        self.passed = False
        self.ticks = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> str:
        """Refresh ``text`` from the clock and return it."""
        if self.passed:
            return self.text
        self.ticks += 1
        remaining = (self.deadline - self._now()).total_seconds()
        if remaining <= 0:
            self.passed = True
            self.text = DEADLINE_PASSED_MESSAGE
            logger.info("Application deadline %s has passed", self.deadline.isoformat())
        else:
            self.text = format_remaining(remaining)
        return self.text

    def start(self) -> None:
        """Tick once immediately, then every ``interval`` until the deadline."""
        self.tick()
        if self.passed or self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while not self.passed:
            await asyncio.sleep(self.interval)
            self.tick()


# -----------------------------------------------------------------------------
# State controller
# -----------------------------------------------------------------------------


class UIStateController:
    """
    Owns the mutually exclusive view state and the loading-message rotator.

    The deadline countdown is passed in only so it can be reported in
    snapshots; its lifecycle belongs to the application controller.
    """

    def __init__(
        self,
        *,
        rotator: LoadingMessageRotator | None = None,
        countdown: DeadlineCountdown | None = None,
        configuration_error: str | None = None,
    ) -> None:
        self.rotator = rotator or LoadingMessageRotator()
        self.countdown = countdown
        self.configuration_error = configuration_error
        self.state = ViewState.INPUT
        self.submit_enabled = configuration_error is None
        self.results_html: str | None = None
        self.error_message: str | None = None
        self.error_kind: str | None = None

    @property
    def input_visible(self) -> bool:
        return self.configuration_error is None and self.state is not ViewState.LOADING

    def begin_loading(self) -> None:
        """
        Enter LOADING: disable submit, clear prior output, start the rotator.

        Raises
        ------
        InvalidTransition : If a submission is already in flight, or the
                            form is disabled by a configuration error.
        """
        if self.configuration_error is not None:
            raise InvalidTransition("The form is disabled by a configuration error.")
        if self.state is ViewState.LOADING:
            raise InvalidTransition("A submission is already in progress.")
        self.state = ViewState.LOADING
        self.submit_enabled = False
        self.results_html = None
        self.error_message = None
        self.error_kind = None
        self.rotator.start()
        logger.info("View state -> loading")

    def show_results(self, results_html: str) -> None:
        if self.state is not ViewState.LOADING:
            raise InvalidTransition(f"Cannot show results from state '{self.state.value}'.")
        self.state = ViewState.RESULTS
        self.results_html = results_html
        logger.info("View state -> results")

    def show_error(self, message: str, kind: str = "unexpected") -> None:
        """Enter ERROR from any state; prior results never stay visible."""
        self.state = ViewState.ERROR
        self.results_html = None
        self.error_message = message
        self.error_kind = kind
        logger.info("View state -> error (%s)", kind)

    async def finish_loading(self) -> None:
        """Leave LOADING: stop the rotator and re-enable submit."""
        await self.rotator.stop()
        if self.state is ViewState.LOADING:
            # Leaving without an outcome returns to the resting state.
            self.state = ViewState.INPUT
        self.submit_enabled = self.configuration_error is None

    def snapshot(self) -> StateSnapshot:
        return StateSnapshot(
            state=self.state.value,
            submit_enabled=self.submit_enabled,
            input_visible=self.input_visible,
            loading_message=self.rotator.current if self.state is ViewState.LOADING else None,
            error_message=self.error_message,
            error_kind=self.error_kind,
            results_html=self.results_html,
            countdown_text=self.countdown.text if self.countdown is not None else "",
            configuration_error=self.configuration_error,
        )
