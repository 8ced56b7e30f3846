"""
app/prompting.py
-----------------------------------------------------------------------------
Prompt Composer: builds the request payload sent to Gemini.

A request is three things:

- the static instruction (role, eligibility rules, scoring weights, output
  requirements) read once from ``app/prompts/system_instruction.txt``;
- the user message, the only per-submission part, interpolating the four
  free-text form fields into ``app/prompts/user_message.txt``;
- ``RESPONSE_SCHEMA``, the declarative output shape Gemini decodes against.

Constraining the output shape on the service side is what lets the response
parser stay a plain JSON parse.

The schema uses Gemini's OpenAPI subset (upper-case ``type`` names, no
``$ref`` / ``additionalProperties``), so it is written out by hand rather
than generated from the pydantic models in ``app.schema``.
"""

from __future__ import annotations

from typing import Any

from app.file_loaders import load_system_instruction, load_user_message_template
from app.schema import RequestPayload, SubmissionFields

# -----------------------------------------------------------------------------
# Process-wide constants
# -----------------------------------------------------------------------------

SYSTEM_INSTRUCTION: str = load_system_instruction()
USER_MESSAGE_TEMPLATE: str = load_user_message_template()


def _string_list(description: str | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "ARRAY", "items": {"type": "STRING"}}
    if description:
        schema["description"] = description
    return schema


RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "profile": {
            "type": "OBJECT",
            "description": "Analysis of the user's CV against Chevening criteria.",
            "properties": {
                "strengths": _string_list("Key strengths from the CV."),
                "gaps": _string_list("Areas for development or focus."),
            },
        },
        "ranked_courses": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "rank": {"type": "INTEGER"},
                    "university": {"type": "STRING"},
                    "programme": {"type": "STRING"},
                    "city": {"type": "STRING"},
                    "url": {"type": "STRING"},
                    "start_cycle": {"type": "STRING"},
                    "duration_months": {"type": "INTEGER"},
                    "fee_gbp": {"type": "STRING"},
                    "chevening_rationale": _string_list(),
                    "eligibility_check": {
                        "type": "OBJECT",
                        "description": "A check against key Chevening eligibility criteria.",
                        "properties": {
                            "is_eligible": {"type": "BOOLEAN"},
                            "reason": {
                                "type": "STRING",
                                "description": (
                                    "Reason for eligibility status, e.g., 'Passes all checks' "
                                    "or 'Ineligible: duration is over 12 months'."
                                ),
                            },
                        },
                    },
                    "score_breakdown": {
                        "type": "STRING",
                        "description": (
                            "A short explanation of why the course received its rank, "
                            "based on scoring criteria."
                        ),
                    },
                },
            },
        },
        "chevening_trio": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "university": {"type": "STRING"},
                    "programme": {"type": "STRING"},
                    "why_this_trio": {"type": "STRING"},
                },
            },
        },
        "personal_statement_bullets": {
            "type": "OBJECT",
            "properties": {
                "leadership": _string_list(),
                "networking": _string_list(),
                "career_plan": _string_list(),
            },
        },
        "alternatives": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "university": {"type": "STRING"},
                    "programme": {"type": "STRING"},
                    "url": {"type": "STRING"},
                    "why_consider": {"type": "STRING"},
                },
            },
        },
        "notes": _string_list(),
    },
}


# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------


def build_user_message(fields: SubmissionFields) -> str:
    """Interpolate the four form fields into the user message template."""
    return USER_MESSAGE_TEMPLATE.format(
        target_fields=fields.target_fields.strip(),
        preferred_locations=fields.preferred_locations.strip(),
        start_year=fields.start_year.strip(),
        impact_statement=fields.impact_statement.strip(),
    )


def compose_request(fields: SubmissionFields) -> RequestPayload:
    """
    Merge the static instruction and schema with one submission's fields.

    Parameters
    ----------
    fields : The free-text form fields of the current submission.

    Returns
    -------
    RequestPayload ready for :meth:`app.gemini_client.GeminiClient.submit`.
    """
    return RequestPayload(
        system_instruction=SYSTEM_INSTRUCTION,
        user_message=build_user_message(fields),
        response_schema=RESPONSE_SCHEMA,
    )
