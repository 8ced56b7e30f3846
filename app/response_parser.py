"""
app/response_parser.py
-----------------------------------------------------------------------------
Response Parser: turns Gemini's raw text into a ``ResultDocument``.

Gemini is asked to decode against ``RESPONSE_SCHEMA`` but the text is still
model-generated, so it is treated as untrusted:

1. Text that is not JSON, or whose top level is not an object, raises
   :class:`app.errors.ParseError`.
2. Each top-level section is validated on its own.  A section that parses
   but does not fit its declared shape (e.g. ``notes`` is a string, or
   ``profile`` is a list) is dropped and logged; the remaining sections
   still render.  The renderer already treats every section as optional, so
   a dropped section simply disappears from the page.
3. List sections are validated entry by entry.  A course whose ``rank`` is
   ``"first"`` is dropped and logged, and its siblings still render.  A list
   with no valid entries left counts as absent.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import pydantic

from app.errors import ParseError
from app.schema import ResultDocument

logger = logging.getLogger(__name__)

PARSE_ERROR_MESSAGE = "Could not parse the response from the model."

# Sections that are lists; a bad entry is dropped on its own.
LIST_SECTIONS: frozenset[str] = frozenset(
    {"ranked_courses", "chevening_trio", "alternatives", "notes"}
)


def parse_response(raw_text: str) -> ResultDocument:
    """
    Parse the model's raw text into a ResultDocument.

    Parameters
    ----------
    raw_text : Text returned by :meth:`GeminiClient.submit`.

    Returns
    -------
    ResultDocument with every well-formed section populated.

    Raises
    ------
    ParseError : If the trimmed text is not a JSON object.
    """
    text = (raw_text or "").strip()
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"{PARSE_ERROR_MESSAGE} {exc.msg} at line {exc.lineno}.") from exc

    if not isinstance(data, dict):
        raise ParseError(f"{PARSE_ERROR_MESSAGE} Expected a JSON object, got {type(data).__name__}.")

    return _validate_sections(data)


def _validate_sections(data: dict[str, Any]) -> ResultDocument:
    sections: dict[str, Any] = {}
    for name in ResultDocument.model_fields:
        value = data.get(name)
        if value is None:
            continue
        if name in LIST_SECTIONS and isinstance(value, list):
            value = _valid_entries(name, value)
            if not value:
                continue
        elif not _section_fits(name, value):
            continue
        sections[name] = value
    return ResultDocument.model_validate(sections)


def _section_fits(name: str, value: Any) -> bool:
    try:
        ResultDocument.model_validate({name: value})
    except pydantic.ValidationError as exc:
        logger.warning(
            "Dropping malformed '%s' section from model response: %d error(s)",
            name,
            exc.error_count(),
        )
        return False
    return True


def _valid_entries(name: str, entries: list[Any]) -> list[Any]:
    kept = []
    for index, entry in enumerate(entries):
        try:
            ResultDocument.model_validate({name: [entry]})
        except pydantic.ValidationError as exc:
            logger.warning(
                "Dropping malformed entry %d of '%s' from model response: %d error(s)",
                index,
                name,
                exc.error_count(),
            )
            continue
        kept.append(entry)
    return kept
