"""
Advisory client backed by the Gemini generateContent REST API.

Reads ``GEMINI_API_KEY`` (or ``API_KEY``) from the environment and asks the
model for a JSON report matching :class:`~vocal_range.advisor.VocalAnalysis`.
Transport and HTTP failures are raised as :class:`AdvisoryError` so the host
can show ``reason.message``.
"""

import os
from typing import Any, Dict, Optional

import httpx

from ..advisor import AdvisoryError, AdvisoryFailure, VocalAnalysis, build_prompt, parse_analysis
from ..core.interfaces import IRangeAdvisor
from ..logger import get_logger

logger = get_logger(__name__)

API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-flash"
API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")

# Gemini rejects bad keys with 400 API_KEY_INVALID
CREDENTIAL_STATUS_CODES = (400, 401, 403)

RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "voiceType": {"type": "STRING"},
        "description": {"type": "STRING"},
        "songs": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "title": {"type": "STRING"},
                    "artist": {"type": "STRING"},
                    "reason": {"type": "STRING"},
                },
            },
        },
        "exercises": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING"},
                    "instructions": {"type": "STRING"},
                },
            },
        },
    },
}


def resolve_api_key(api_key: Optional[str] = None) -> Optional[str]:
    """Return the explicit key or the first usable one from the environment."""
    candidates = [api_key] + [os.environ.get(name) for name in API_KEY_ENV_VARS]
    for candidate in candidates:
        # Unfilled .env templates leave the literal "undefined"
        if candidate and candidate.strip() and candidate.strip() != "undefined":
            return candidate.strip()
    return None


class GeminiRangeAdvisor(IRangeAdvisor):
    """Range advisor that calls Gemini over HTTPS."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        *,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self._model = model
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    @property
    def model(self) -> str:
        return self._model

    def analyze(self, low_note: str, high_note: str) -> VocalAnalysis:
        """Request a report for the range low_note..high_note.

        Raises:
            AdvisoryError: MISSING_CREDENTIAL without a key, INVALID_CREDENTIAL
                when the key is rejected, TIMEOUT or NETWORK_FAILURE on transport
                errors, MALFORMED_RESPONSE when the reply cannot be decoded
        """
        api_key = resolve_api_key(self._api_key)
        if api_key is None:
            raise AdvisoryError(
                AdvisoryFailure.MISSING_CREDENTIAL,
                f"set one of {', '.join(API_KEY_ENV_VARS)}",
            )

        url = f"{API_BASE_URL}/models/{self._model}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": build_prompt(low_note, high_note)}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }
        headers = {"x-goog-api-key": api_key}

        logger.info(f"Calling {self._model} for range {low_note} - {high_note}")
        try:
            if self._client is not None:
                response = self._client.post(url, json=payload, headers=headers)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise AdvisoryError(AdvisoryFailure.TIMEOUT, str(exc)) from exc
        except httpx.TransportError as exc:
            raise AdvisoryError(AdvisoryFailure.NETWORK_FAILURE, str(exc)) from exc

        if response.status_code in CREDENTIAL_STATUS_CODES:
            raise AdvisoryError(
                AdvisoryFailure.INVALID_CREDENTIAL, f"HTTP {response.status_code}"
            )
        if response.status_code != 200:
            raise AdvisoryError(
                AdvisoryFailure.NETWORK_FAILURE, f"HTTP {response.status_code}"
            )

        return parse_analysis(_response_text(response))


def _response_text(response: httpx.Response) -> str:
    """Pull the generated text out of a generateContent reply."""
    try:
        body = response.json()
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise AdvisoryError(
            AdvisoryFailure.MALFORMED_RESPONSE, f"unexpected reply: {exc}"
        ) from exc
    if not isinstance(text, str):
        raise AdvisoryError(AdvisoryFailure.MALFORMED_RESPONSE, "reply text is not a string")
    return text
