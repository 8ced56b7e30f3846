"""
app/errors.py
-----------------------------------------------------------------------------
Error taxonomy for the Chevening Course Finder.

Every failure the user can see is one of four kinds.  They all surface the
same way (an error panel showing the message), so the only thing that
distinguishes them downstream is ``kind``, which the HTTP layer maps to a
status code.

ConfigurationError – the Gemini credential is missing; detected at startup.
ValidationError    – no CV file, or a MIME type outside the allow-list.
ServiceError       – the Gemini call failed or returned no usable text.
ParseError         – the returned text is not a JSON object.
"""

from __future__ import annotations


class CourseFinderError(Exception):
    """Base class for failures shown to the user verbatim."""

    kind: str = "unexpected"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(CourseFinderError):
    kind = "configuration"


class ValidationError(CourseFinderError):
    kind = "validation"


class ServiceError(CourseFinderError):
    kind = "service"


class ParseError(CourseFinderError):
    kind = "parse"
