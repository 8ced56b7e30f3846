"""
app/renderer.py
-----------------------------------------------------------------------------
Result Renderer: maps a ``ResultDocument`` to HTML fragments.

Each section has its own pure fragment function that takes the section's
data and returns a ``markupsafe.Markup``.  A function returns an empty
Markup when the fields it needs are absent, so no empty heading is ever
rendered.  ``render_results`` concatenates them in a fixed order:

    profile → trio → ranked courses → personal-statement bullets
            → alternatives → notes

The fragments are Jinja2 templates under ``app/templates/fragments/`` with
autoescaping on, since every string in the document comes from the model.
Links only keep ``http``/``https`` URLs; anything else becomes ``#``.

Decorations
-----------
- MBA fee-cap advisory when a programme name contains "mba" (any case).
- A "verify" chip instead of a currency value when the fee contains "verify".
- A diversification advisory when a trio of more than one entry shares a
  single university.
- An eligibility badge (plus the reason on failure) when a course carries an
  eligibility check.
- The score breakdown inside a collapsed ``<details>`` disclosure.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlsplit

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from app.schema import (
    AlternativeEntry,
    CourseEntry,
    PersonalStatementBullets,
    Profile,
    ResultDocument,
    TrioEntry,
)

_FRAGMENTS_DIR = Path(__file__).parent / "templates" / "fragments"

_SAFE_URL_SCHEMES = frozenset({"http", "https"})

_BULLET_HEADINGS = (
    ("leadership", "Leadership"),
    ("networking", "Networking"),
    ("career_plan", "Career Plan"),
)


# -----------------------------------------------------------------------------
# Jinja2 helpers
# -----------------------------------------------------------------------------


def is_mba_programme(programme: str | None) -> bool:
    return bool(programme) and "mba" in programme.lower()


def is_verify_fee(fee: str | None) -> bool:
    return bool(fee) and "verify" in fee.lower()


def safe_url(url: str | None) -> str:
    """Return ``url`` if it is an absolute http(s) URL, otherwise ``"#"``."""
    if not url:
        return "#"
    candidate = url.strip()
    if urlsplit(candidate).scheme.lower() not in _SAFE_URL_SCHEMES:
        return "#"
    return candidate


def _build_environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(_FRAGMENTS_DIR)),
        autoescape=select_autoescape(default=True, default_for_string=True),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.tests["mba_programme"] = is_mba_programme
    env.tests["verify_fee"] = is_verify_fee
    env.filters["safe_url"] = safe_url
    return env


_env = _build_environment()


def _render(template_name: str, **context: object) -> Markup:
    return Markup(_env.get_template(template_name).render(**context))


# -----------------------------------------------------------------------------
# Fragment functions
# -----------------------------------------------------------------------------


def render_profile(profile: Profile | None) -> Markup:
    """Strengths and gaps side by side; both lists are required."""
    if profile is None or profile.strengths is None or profile.gaps is None:
        return Markup("")
    return _render("profile.html", profile=profile)


def has_single_university(trio: list[TrioEntry]) -> bool:
    """True when a trio of more than one entry names one university throughout."""
    universities = {entry.university for entry in trio}
    return len(trio) > 1 and len(universities) == 1 and None not in universities


def render_trio(trio: list[TrioEntry] | None) -> Markup:
    if not trio:
        return Markup("")
    return _render("trio.html", trio=trio, single_university=has_single_university(trio))


def render_ranked_courses(courses: list[CourseEntry] | None) -> Markup:
    if not courses:
        return Markup("")
    return _render("ranked_courses.html", courses=courses)


def render_bullets(bullets: PersonalStatementBullets | None) -> Markup:
    """Talking points per essay section; sub-lists that are absent are skipped."""
    if bullets is None:
        return Markup("")
    groups = [
        (heading, getattr(bullets, field))
        for field, heading in _BULLET_HEADINGS
        if getattr(bullets, field) is not None
    ]
    if not groups:
        return Markup("")
    return _render("bullets.html", groups=groups)


def render_alternatives(alternatives: list[AlternativeEntry] | None) -> Markup:
    if not alternatives:
        return Markup("")
    return _render("alternatives.html", alternatives=alternatives)


def render_notes(notes: list[str] | None) -> Markup:
    if not notes:
        return Markup("")
    return _render("notes.html", notes=notes)


def render_results(doc: ResultDocument) -> Markup:
    """Concatenate every present section in the fixed display order."""
    fragments = [
        render_profile(doc.profile),
        render_trio(doc.chevening_trio),
        render_ranked_courses(doc.ranked_courses),
        render_bullets(doc.personal_statement_bullets),
        render_alternatives(doc.alternatives),
        render_notes(doc.notes),
    ]
    return Markup("").join(fragment for fragment in fragments if fragment)
