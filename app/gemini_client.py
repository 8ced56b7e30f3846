"""
app/gemini_client.py
-----------------------------------------------------------------------------
Thin asynchronous wrapper around the Gemini ``generateContent`` REST API.

One submission is exactly one HTTP round-trip: no streaming, no retries.
Every failure mode (transport error, timeout, non-2xx status, blocked
prompt, empty candidate) is converted to :class:`app.errors.ServiceError`
whose message is shown to the user verbatim.

Gemini generateContent reference
--------------------------------
POST {api_base}/v1beta/models/{model}:generateContent
x-goog-api-key: <key>
{
    "systemInstruction": {"parts": [{"text": "<static instruction>"}]},
    "contents": [{
        "role": "user",
        "parts": [
            {"inlineData": {"mimeType": "application/pdf", "data": "<base64>"}},
            {"text": "<user message>"}
        ]
    }],
    "generationConfig": {
        "responseMimeType": "application/json",
        "responseSchema": {...}
    }
}

Response:
{
    "candidates": [{"content": {"parts": [{"text": "<json text>"}]}, ...}],
    "promptFeedback": {"blockReason": "..."}        (only when blocked)
}

Environment variables
---------------------
GEMINI_API_KEY  – API credential (``API_KEY`` is accepted as a fallback).
GEMINI_MODEL    – Model identifier (default: gemini-2.5-flash).
GEMINI_API_BASE – Base URL (default: https://generativelanguage.googleapis.com).
"""

from __future__ import annotations

import logging
import os

import httpx
from dotenv import load_dotenv

from app.errors import ConfigurationError, ServiceError
from app.schema import EncodedFile, RequestPayload

# Load .env if present (no-op if the file doesn't exist)
load_dotenv()

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_API_BASE = "https://generativelanguage.googleapis.com"
API_VERSION = "v1beta"

# Model calls that read a multi-page CV and rank nine courses routinely take
# tens of seconds.
_CONNECT_TIMEOUT: float = 10.0
_READ_TIMEOUT: float = 180.0

MISSING_KEY_MESSAGE = (
    "This application is not properly configured to connect to the AI service "
    "because an API key has not been provided. If you are a user, please contact "
    "the person who shared this with you. If you are the developer, please ensure "
    "the API key is correctly set up in your environment."
)


class GeminiClient:
    """
    Sends one composed request plus an encoded CV to Gemini.

    The optional ``transport`` lets tests substitute ``httpx.MockTransport``.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        api_base: str = DEFAULT_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError(MISSING_KEY_MESSAGE)
        self.api_key = api_key
        self.model = model
        # Strip any trailing slash so we can safely append paths.
        self.api_base = api_base.rstrip("/")
        self._transport = transport

    @classmethod
    def from_env(cls) -> GeminiClient:
        """
        Build a client from environment variables.

        Raises
        ------
        ConfigurationError : If neither GEMINI_API_KEY nor API_KEY is set.
        """
        api_key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or ""
        return cls(
            api_key,
            model=os.getenv("GEMINI_MODEL", DEFAULT_MODEL),
            api_base=os.getenv("GEMINI_API_BASE", DEFAULT_API_BASE),
        )

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/{API_VERSION}/models/{self.model}:generateContent"

    def build_body(self, encoded_file: EncodedFile, payload: RequestPayload) -> dict:
        """Assemble the generateContent JSON body (file part first, then text)."""
        return {
            "systemInstruction": {"parts": [{"text": payload.system_instruction}]},
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {
                            "inlineData": {
                                "mimeType": encoded_file.mime_type,
                                "data": encoded_file.data,
                            }
                        },
                        {"text": payload.user_message},
                    ],
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": payload.response_schema,
            },
        }

    async def submit(self, encoded_file: EncodedFile, payload: RequestPayload) -> str:
        """
        Call generateContent and return the raw response text.

        Parameters
        ----------
        encoded_file : The base64 CV and its MIME type.
        payload      : Static instruction, user message and response schema.

        Returns
        -------
        str : Concatenated text of the first candidate's parts (untrimmed).

        Raises
        ------
        ServiceError : On any transport failure, non-2xx status, blocked
                       prompt, or a response with no candidate text.
        """
        body = self.build_body(encoded_file, payload)
        headers = {"x-goog-api-key": self.api_key}
        timeout = httpx.Timeout(connect=_CONNECT_TIMEOUT, read=_READ_TIMEOUT, write=30.0, pool=5.0)

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(self.endpoint, json=body, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            message = _error_message(exc.response)
            logger.warning("Gemini returned HTTP %s: %s", exc.response.status_code, message)
            raise ServiceError(
                f"The AI service returned HTTP {exc.response.status_code}: {message}"
            ) from exc
        except httpx.TimeoutException as exc:
            logger.warning("Gemini request timed out: %s", exc)
            raise ServiceError("The AI service request timed out.") from exc
        except httpx.HTTPError as exc:
            logger.warning("Gemini request failed: %s: %s", type(exc).__name__, exc)
            raise ServiceError(f"Could not reach the AI service: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise ServiceError("The AI service returned a non-JSON envelope.") from exc

        return extract_text(data)


def extract_text(data: dict) -> str:
    """
    Pull the generated text out of a generateContent response envelope.

    Raises
    ------
    ServiceError : If the prompt was blocked or there is no candidate text.
    """
    if not isinstance(data, dict):
        raise ServiceError("The AI service returned an unexpected envelope.")

    feedback = data.get("promptFeedback") or {}
    if not isinstance(feedback, dict):
        raise ServiceError("The AI service returned an unexpected envelope.")
    if feedback.get("blockReason"):
        raise ServiceError(f"The AI service blocked the request ({feedback['blockReason']}).")

    candidates = data.get("candidates") or []
    if not isinstance(candidates, list):
        raise ServiceError("The AI service returned an unexpected envelope.")
    if not candidates:
        raise ServiceError("The AI service returned no candidates.")

    candidate = candidates[0]
    content = candidate.get("content") if isinstance(candidate, dict) else None
    if not isinstance(candidate, dict) or not isinstance(content or {}, dict):
        raise ServiceError("The AI service returned a malformed candidate.")

    parts = (content or {}).get("parts") or []
    if not isinstance(parts, list):
        raise ServiceError("The AI service returned a malformed candidate.")
    text = "".join(
        str(part.get("text") or "") for part in parts if isinstance(part, dict)
    )
    if not text:
        reason = candidate.get("finishReason", "unknown")
        raise ServiceError(f"The AI service returned an empty response (finish reason: {reason}).")
    return text


def _error_message(response: httpx.Response) -> str:
    # Gemini errors look like {"error": {"code": 400, "message": "...", "status": "..."}}.
    try:
        envelope = response.json()
    except ValueError:
        return response.text[:200]
    error = envelope.get("error") if isinstance(envelope, dict) else None
    if not isinstance(error, dict):
        return response.text[:200]
    return str(error.get("message") or response.text[:200])
