"""Shared fixtures for the Chevening Course Finder test suite."""

from __future__ import annotations

import io
import json
from collections.abc import Iterator
from datetime import datetime, timezone

import pytest
from fastapi import UploadFile
from fastapi.testclient import TestClient
from starlette.datastructures import Headers

from app.course_finder import DOCX_MIME_TYPE, PDF_MIME_TYPE, CourseFinder
from app.main import app
from app.schema import EncodedFile, RequestPayload, SubmissionFields
from app.ui_state import DeadlineCountdown

PDF_BYTES = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF"


class FakeGeminiClient:
    """Stands in for GeminiClient: records calls, returns text or raises."""

    def __init__(self, text: str = "{}", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[tuple[EncodedFile, RequestPayload]] = []

    async def submit(self, encoded_file: EncodedFile, payload: RequestPayload) -> str:
        self.calls.append((encoded_file, payload))
        if self.error is not None:
            raise self.error
        return self.text


def make_upload(
    data: bytes = PDF_BYTES,
    filename: str = "cv.pdf",
    content_type: str = PDF_MIME_TYPE,
) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.fixture()
def full_result_dict() -> dict:
    """A response with all six sections populated."""
    return {
        "profile": {
            "strengths": ["Led a 12-person civic tech team", "Published policy briefs"],
            "gaps": ["Limited UK links"],
        },
        "chevening_trio": [
            {"university": "UCL", "programme": "MSc Public Policy", "why_this_trio": "Core fit."},
            {"university": "LSE", "programme": "MPA", "why_this_trio": "Network."},
            {"university": "Edinburgh", "programme": "MSc Data Science", "why_this_trio": "Skills."},
        ],
        "ranked_courses": [
            {
                "rank": 1,
                "university": "UCL",
                "programme": "MSc Public Policy",
                "city": "London",
                "url": "https://www.ucl.ac.uk/public-policy",
                "start_cycle": "September 2026",
                "duration_months": 12,
                "fee_gbp": "£31,200",
                "chevening_rationale": ["Leadership focus", "Strong alumni network"],
                "eligibility_check": {"is_eligible": True, "reason": "Passes all checks"},
                "score_breakdown": "Ranked #1 due to gap-fit and Chevening relevance.",
            },
            {
                "rank": 2,
                "university": "LSE",
                "programme": "MPA",
                "city": "London",
                "url": "https://www.lse.ac.uk/mpa",
                "start_cycle": "September 2026",
                "duration_months": 12,
                "fee_gbp": "Verify on university site",
                "chevening_rationale": ["Policy depth"],
            },
        ],
        "personal_statement_bullets": {
            "leadership": ["Scaled a volunteer programme"],
            "networking": ["Built a regional coalition", "Mentored graduates"],
            "career_plan": ["Return to the ministry of digital affairs"],
        },
        "alternatives": [
            {
                "university": "King's College London",
                "programme": "MSc Public Policy and Management",
                "url": "https://www.kcl.ac.uk/ppm",
                "why_consider": "Similar curriculum.",
            },
        ],
        "notes": ["Verify fees before applying.", "Deadlines vary.", "Keep essays concise."],
    }


@pytest.fixture()
def full_result_text(full_result_dict: dict) -> str:
    return json.dumps(full_result_dict)


@pytest.fixture()
def fields() -> SubmissionFields:
    return SubmissionFields(
        target_fields="Public policy",
        preferred_locations="London",
        start_year="2026",
        impact_statement="Digitise public services at home.",
    )


@pytest.fixture()
def frozen_countdown() -> DeadlineCountdown:
    """A countdown whose deadline is far in the future and never ticks by itself."""
    return DeadlineCountdown(
        datetime(2030, 1, 1, tzinfo=timezone.utc),
        now=lambda: datetime(2029, 12, 31, 23, 0, tzinfo=timezone.utc),
    )


@pytest.fixture()
def fake_gemini(full_result_text: str) -> FakeGeminiClient:
    return FakeGeminiClient(text=full_result_text)


@pytest.fixture()
def finder(fake_gemini: FakeGeminiClient, frozen_countdown: DeadlineCountdown) -> CourseFinder:
    return CourseFinder(fake_gemini, countdown=frozen_countdown)


@pytest.fixture()
def client(finder: CourseFinder) -> Iterator[TestClient]:
    """FastAPI test client wired to a CourseFinder with a fake Gemini client."""
    with TestClient(app) as test_client:
        started = app.state.finder
        app.state.finder = finder
        yield test_client
        # the lifespan stops whatever finder it finds on the way out
        app.state.finder = started


@pytest.fixture()
def docx_upload() -> UploadFile:
    return make_upload(b"PK\x03\x04docx", "cv.docx", DOCX_MIME_TYPE)
