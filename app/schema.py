"""
app/schema.py
-----------------------------------------------------------------------------
Pydantic v2 models for the Chevening Course Finder.

Design principles
-----------------
• Keep models thin – no business logic here.
• Every field has a docstring-style `description` so FastAPI's auto-generated
  OpenAPI UI is immediately useful.
• Everything under ``ResultDocument`` is produced by the model service and is
  untrusted: every field is optional and unknown keys are ignored.  The
  renderer checks presence explicitly before using any of them.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# -----------------------------------------------------------------------------
# Submission primitives
# -----------------------------------------------------------------------------


class SubmissionFields(BaseModel):
    """
    The free-text preference fields of one form submission.

    The CV file travels separately (as a FastAPI ``UploadFile``) because it is
    validated and encoded by its own pipeline stage.
    """

    model_config = ConfigDict(frozen=True)

    target_fields: str = Field(
        default="",
        description="Subject areas the candidate wants to study.",
        examples=["Public policy, data science"],
    )
    preferred_locations: str = Field(
        default="",
        description="Preferred UK cities or regions.",
        examples=["London, Edinburgh"],
    )
    start_year: str = Field(
        default="",
        description="Year of the autumn intake the course must start in.",
        examples=["2026"],
    )
    impact_statement: str = Field(
        default="",
        description="One-line statement of the intended impact on the home country.",
    )


class EncodedFile(BaseModel):
    """A CV file in transport form: base64 text plus its MIME type."""

    model_config = ConfigDict(frozen=True)

    data: str = Field(..., description="Base64-encoded file content (no data-URL prefix).")
    mime_type: str = Field(..., description="MIME type of the original file.")


class RequestPayload(BaseModel):
    """
    Everything the model service needs besides the file itself.

    ``system_instruction`` and ``response_schema`` are process-wide constants;
    only ``user_message`` changes between submissions.
    """

    system_instruction: str = Field(..., description="Fixed role / rules instruction text.")
    user_message: str = Field(..., description="Per-submission text embedding the form fields.")
    response_schema: dict[str, Any] = Field(
        ...,
        description="Declarative output schema used for constrained decoding.",
    )


# -----------------------------------------------------------------------------
# Result document (model output)
# -----------------------------------------------------------------------------


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Profile(_Lenient):
    """CV analysis against the Chevening criteria."""

    strengths: list[str] | None = Field(default=None, description="Key strengths from the CV.")
    gaps: list[str] | None = Field(default=None, description="Areas for development or focus.")


class EligibilityCheck(_Lenient):
    is_eligible: bool | None = Field(default=None, description="Whether the course passes every rule.")
    reason: str | None = Field(
        default=None,
        description="Why the course passes or fails, e.g. 'Ineligible: duration is over 12 months'.",
    )


class CourseEntry(_Lenient):
    """One ranked course recommendation."""

    rank: int | None = None
    university: str | None = None
    programme: str | None = None
    city: str | None = None
    url: str | None = None
    start_cycle: str | None = None
    duration_months: int | None = None
    fee_gbp: str | None = Field(
        default=None,
        description="Tuition fee as text; may be the sentinel 'Verify on university site'.",
    )
    chevening_rationale: list[str] | None = None
    eligibility_check: EligibilityCheck | None = None
    score_breakdown: str | None = Field(
        default=None,
        description="Short explanation of the rank in terms of the scoring criteria.",
    )


class TrioEntry(_Lenient):
    """One of the three courses the candidate would list on the application form."""

    university: str | None = None
    programme: str | None = None
    why_this_trio: str | None = None


class PersonalStatementBullets(_Lenient):
    leadership: list[str] | None = None
    networking: list[str] | None = None
    career_plan: list[str] | None = None


class AlternativeEntry(_Lenient):
    university: str | None = None
    programme: str | None = None
    url: str | None = None
    why_consider: str | None = None


class ResultDocument(_Lenient):
    """
    The parsed model response.

    All six sections are optional; an absent section means its rendered block
    is omitted entirely.
    """

    profile: Profile | None = None
    ranked_courses: list[CourseEntry] | None = None
    chevening_trio: list[TrioEntry] | None = None
    personal_statement_bullets: PersonalStatementBullets | None = None
    alternatives: list[AlternativeEntry] | None = None
    notes: list[str] | None = None


# -----------------------------------------------------------------------------
# View state / API responses
# -----------------------------------------------------------------------------


class StateSnapshot(BaseModel):
    """
    Serialisable view of the UI State Controller, returned by GET /api/state.

    The page polls this while a submission is in flight to refresh the
    rotating loading message and the deadline countdown.
    """

    state: str = Field(..., description="One of 'input', 'loading', 'results', 'error'.")
    submit_enabled: bool = Field(..., description="Whether the submit control is enabled.")
    input_visible: bool = Field(..., description="Whether the input form is shown.")
    loading_message: str | None = Field(
        default=None,
        description="Current rotating status message (only while loading).",
    )
    error_message: str | None = Field(default=None, description="Message of the last failure.")
    error_kind: str | None = Field(
        default=None,
        description="'validation', 'service', 'parse', 'configuration' or 'unexpected'.",
    )
    results_html: str | None = Field(default=None, description="Rendered result sections.")
    countdown_text: str = Field(default="", description="Current deadline countdown display.")
    configuration_error: str | None = Field(
        default=None,
        description="Set when the service credential is missing; the form is disabled.",
    )


class RecommendationResponse(BaseModel):
    """Response body for a successful POST /api/recommend."""

    results_html: str = Field(..., description="Rendered HTML for every present section.")
    result: ResultDocument = Field(..., description="The parsed model response.")
    snapshot: StateSnapshot = Field(..., description="UI state after the submission.")
