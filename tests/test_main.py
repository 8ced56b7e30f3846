"""Tests for app/main.py – FastAPI routes."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from app.course_finder import INVALID_TYPE_MESSAGE, MISSING_FILE_MESSAGE, CourseFinder
from app.errors import ParseError, ServiceError
from app.main import app
from app.prompting import RESPONSE_SCHEMA
from app.ui_state import ViewState
from tests.conftest import PDF_BYTES, FakeGeminiClient

FORM = {
    "target_fields": "Public policy",
    "preferred_locations": "London",
    "start_year": "2026",
    "impact_statement": "Digitise public services at home.",
}


def _pdf() -> dict:
    return {"cv_file": ("cv.pdf", PDF_BYTES, "application/pdf")}


@pytest.fixture()
def config_error_client() -> Iterator[TestClient]:
    """Client whose controller was built without a Gemini API key."""
    with TestClient(app) as test_client:
        started = app.state.finder
        app.state.finder = CourseFinder(None, configuration_error="Gemini API key is missing.")
        yield test_client
        app.state.finder = started


# ── GET / ────────────────────────────────────────────────────────────────────


class TestIndexRoute:
    def test_returns_html(self, client: TestClient) -> None:
        resp = client.get("/")
        assert resp.status_code == 200
        assert "text/html" in resp.headers["content-type"]
        assert 'id="course-finder-form"' in resp.text
        assert 'name="cv_file"' in resp.text
        assert 'id="deadline-countdown"' in resp.text
        assert 'id="config-error"' not in resp.text

    def test_accepts_pdf_and_docx(self, client: TestClient) -> None:
        resp = client.get("/")
        assert "application/pdf" in resp.text
        assert "wordprocessingml" in resp.text

    def test_configuration_error_replaces_form(self, config_error_client: TestClient) -> None:
        resp = config_error_client.get("/")
        assert resp.status_code == 200
        assert 'id="config-error"' in resp.text
        assert "Gemini API key is missing." in resp.text
        assert 'id="course-finder-form"' not in resp.text


# ── POST /api/recommend ──────────────────────────────────────────────────────


class TestRecommendEndpoint:
    def test_success(self, client: TestClient, fake_gemini: FakeGeminiClient) -> None:
        resp = client.post("/api/recommend", data=FORM, files=_pdf())
        assert resp.status_code == 200
        body = resp.json()
        assert body["snapshot"]["state"] == "results"
        assert body["snapshot"]["submit_enabled"] is True
        assert body["results_html"].count('class="result-category') == 6
        assert body["result"]["ranked_courses"][0]["university"] == "UCL"
        assert len(fake_gemini.calls) == 1

    def test_form_fields_reach_the_prompt(
        self, client: TestClient, fake_gemini: FakeGeminiClient
    ) -> None:
        client.post("/api/recommend", data=FORM, files=_pdf())
        _, payload = fake_gemini.calls[0]
        assert 'Target fields: "Public policy"' in payload.user_message
        assert "Timeline: must start Sep/Oct 2026" in payload.user_message

    def test_missing_file_is_400(self, client: TestClient, fake_gemini: FakeGeminiClient) -> None:
        resp = client.post("/api/recommend", data=FORM)
        assert resp.status_code == 400
        assert resp.json()["detail"] == MISSING_FILE_MESSAGE
        assert fake_gemini.calls == []

    def test_wrong_type_is_400(self, client: TestClient, fake_gemini: FakeGeminiClient) -> None:
        resp = client.post(
            "/api/recommend",
            data=FORM,
            files={"cv_file": ("cv.png", b"\x89PNG", "image/png")},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == INVALID_TYPE_MESSAGE
        assert fake_gemini.calls == []

    def test_service_error_is_502(self, client: TestClient, fake_gemini: FakeGeminiClient) -> None:
        fake_gemini.error = ServiceError("Request to the AI service timed out.")
        resp = client.post("/api/recommend", data=FORM, files=_pdf())
        assert resp.status_code == 502
        assert resp.json()["detail"] == "Request to the AI service timed out."

    def test_parse_error_is_502(self, client: TestClient, fake_gemini: FakeGeminiClient) -> None:
        fake_gemini.text = "not json at all"
        resp = client.post("/api/recommend", data=FORM, files=_pdf())
        assert resp.status_code == 502
        assert "Could not parse" in resp.json()["detail"]

    def test_parse_error_raised_by_client_is_502(
        self, client: TestClient, fake_gemini: FakeGeminiClient
    ) -> None:
        fake_gemini.error = ParseError("bad")
        assert client.post("/api/recommend", data=FORM, files=_pdf()).status_code == 502

    def test_unexpected_error_is_500(
        self, client: TestClient, fake_gemini: FakeGeminiClient
    ) -> None:
        fake_gemini.error = RuntimeError("boom")
        resp = client.post("/api/recommend", data=FORM, files=_pdf())
        assert resp.status_code == 500
        assert resp.json()["detail"] == "boom"

    def test_configuration_error_is_503(self, config_error_client: TestClient) -> None:
        resp = config_error_client.post("/api/recommend", data=FORM, files=_pdf())
        assert resp.status_code == 503
        assert resp.json()["detail"] == "Gemini API key is missing."

    def test_busy_is_409(self, client: TestClient, finder: CourseFinder) -> None:
        finder.ui.state = ViewState.LOADING
        resp = client.post("/api/recommend", data=FORM, files=_pdf())
        assert resp.status_code == 409

    def test_recovers_after_error(self, client: TestClient, fake_gemini: FakeGeminiClient) -> None:
        fake_gemini.error = ServiceError("down")
        assert client.post("/api/recommend", data=FORM, files=_pdf()).status_code == 502
        fake_gemini.error = None
        assert client.post("/api/recommend", data=FORM, files=_pdf()).status_code == 200


# ── GET /api/state ───────────────────────────────────────────────────────────


class TestStateEndpoint:
    def test_initial_state(self, client: TestClient) -> None:
        data = client.get("/api/state").json()
        assert data["state"] == "input"
        assert data["submit_enabled"] is True
        assert data["input_visible"] is True
        assert data["configuration_error"] is None

    def test_after_error(self, client: TestClient) -> None:
        client.post("/api/recommend", data=FORM)
        data = client.get("/api/state").json()
        assert data["state"] == "error"
        assert data["error_kind"] == "validation"
        assert data["results_html"] is None

    def test_after_results(self, client: TestClient) -> None:
        client.post("/api/recommend", data=FORM, files=_pdf())
        data = client.get("/api/state").json()
        assert data["state"] == "results"
        assert 'data-section="trio"' in data["results_html"]

    def test_configuration_error(self, config_error_client: TestClient) -> None:
        data = config_error_client.get("/api/state").json()
        assert data["submit_enabled"] is False
        assert data["configuration_error"] == "Gemini API key is missing."


# ── GET /api/response-schema ─────────────────────────────────────────────────


class TestResponseSchemaEndpoint:
    def test_returns_schema(self, client: TestClient) -> None:
        data = client.get("/api/response-schema").json()
        assert data == RESPONSE_SCHEMA
        assert set(data["properties"]) == {
            "profile",
            "ranked_courses",
            "chevening_trio",
            "personal_statement_bullets",
            "alternatives",
            "notes",
        }
