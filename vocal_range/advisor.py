"""Boundary to the external advisory service.

A completed session's two endpoint names go out; a report with a voice
type, a short description, song suggestions and exercises comes back.
Every failure of the exchange is reported as an :class:`AdvisoryError`
carrying one reason from :class:`AdvisoryFailure`.
"""

import json
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .core.interfaces import IRangeAdvisor
from .logger import get_logger
from .session import CaptureSession, CaptureState

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0


class AdvisoryFailure(Enum):
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_CREDENTIAL = "invalid_credential"
    TIMEOUT = "timeout"
    NETWORK_FAILURE = "network_failure"
    MALFORMED_RESPONSE = "malformed_response"

    @property
    def message(self) -> str:
        """Explanation suitable for showing to the user."""
        return _FAILURE_MESSAGES[self]


_FAILURE_MESSAGES = {
    AdvisoryFailure.MISSING_CREDENTIAL: "API key missing. Set a valid API key and try again.",
    AdvisoryFailure.INVALID_CREDENTIAL: "The API key was rejected by the advisory service.",
    AdvisoryFailure.TIMEOUT: "The request timed out. Check your internet connection and try again.",
    AdvisoryFailure.NETWORK_FAILURE: "Network error. Check your internet connection.",
    AdvisoryFailure.MALFORMED_RESPONSE: "The advisory service returned an unreadable report.",
}


class AdvisoryError(Exception):
    """An advisory request failed for one of the known reasons."""

    def __init__(self, reason: AdvisoryFailure, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


@dataclass(frozen=True)
class SongSuggestion:
    title: str
    artist: str
    reason: str


@dataclass(frozen=True)
class ExerciseSuggestion:
    name: str
    instructions: str


@dataclass(frozen=True)
class VocalAnalysis:
    """Structured report returned by the advisory service."""

    voice_type: str
    description: str
    songs: List[SongSuggestion] = field(default_factory=list)
    exercises: List[ExerciseSuggestion] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Any) -> "VocalAnalysis":
        """Build a report from the service's JSON object.

        Raises:
            AdvisoryError: MALFORMED_RESPONSE if a field is missing or has the wrong type
        """
        if not isinstance(payload, dict):
            raise AdvisoryError(
                AdvisoryFailure.MALFORMED_RESPONSE, "report is not an object"
            )

        voice_type = _require_str(payload, "voiceType")
        description = _require_str(payload, "description")
        songs = [
            SongSuggestion(
                title=_require_str(item, "title"),
                artist=_require_str(item, "artist"),
                reason=_require_str(item, "reason"),
            )
            for item in _require_list(payload, "songs")
        ]
        exercises = [
            ExerciseSuggestion(
                name=_require_str(item, "name"),
                instructions=_require_str(item, "instructions"),
            )
            for item in _require_list(payload, "exercises")
        ]
        return cls(voice_type, description, songs, exercises)


def _require_str(payload: Any, key: str) -> str:
    value = payload.get(key) if isinstance(payload, dict) else None
    if not isinstance(value, str):
        raise AdvisoryError(
            AdvisoryFailure.MALFORMED_RESPONSE, f"'{key}' must be a string"
        )
    return value


def _require_list(payload: Dict[str, Any], key: str) -> list:
    value = payload.get(key)
    if not isinstance(value, list):
        raise AdvisoryError(
            AdvisoryFailure.MALFORMED_RESPONSE, f"'{key}' must be a list"
        )
    return value


def parse_analysis(text: Optional[str]) -> VocalAnalysis:
    """Decode the service's JSON text into a report."""
    if not text:
        raise AdvisoryError(AdvisoryFailure.MALFORMED_RESPONSE, "empty response")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise AdvisoryError(AdvisoryFailure.MALFORMED_RESPONSE, str(e)) from e
    return VocalAnalysis.from_dict(payload)


def build_prompt(low_note: str, high_note: str) -> str:
    """Request text sent to the advisory service for a vocal range."""
    return (
        "I have tested my vocal range.\n"
        f"My lowest comfortable note is {low_note}.\n"
        f"My highest comfortable note is {high_note}.\n"
        "\n"
        "Based on this:\n"
        "1. Determine my likely voice type (e.g., Bass, Baritone, Tenor, Alto, "
        "Mezzo-Soprano, Soprano).\n"
        "2. Provide a short, encouraging description of this range.\n"
        "3. Suggest 3 popular songs that would suit this range well.\n"
        "4. Suggest 2 vocal exercises to improve or expand this range.\n"
    )


def classify_error(error: BaseException) -> Optional[AdvisoryFailure]:
    """Map an exception raised by an advisor to a failure reason.

    Returns:
        The matching reason, or None if the error is not a known advisory failure
    """
    if isinstance(error, AdvisoryError):
        return error.reason
    if isinstance(error, (FutureTimeoutError, TimeoutError)):
        return AdvisoryFailure.TIMEOUT
    if isinstance(error, (ConnectionError, OSError)):
        return AdvisoryFailure.NETWORK_FAILURE
    if isinstance(error, json.JSONDecodeError):
        return AdvisoryFailure.MALFORMED_RESPONSE

    message = str(error)
    if "API_KEY_MISSING" in message:
        return AdvisoryFailure.MISSING_CREDENTIAL
    if (
        "400" in message
        or "API key not valid" in message
        or "API_KEY_INVALID" in message
    ):
        return AdvisoryFailure.INVALID_CREDENTIAL
    if "fetch failed" in message or "NetworkError" in message:
        return AdvisoryFailure.NETWORK_FAILURE
    return None


def request_analysis(
    session: CaptureSession,
    advisor: IRangeAdvisor,
    timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
) -> VocalAnalysis:
    """Ask the advisor about a completed session's range, within a time limit.

    Args:
        session: A session in the COMPLETE state
        advisor: The advisory service
        timeout: Seconds to wait for the report, or None to wait forever

    Returns:
        The advisor's report

    Raises:
        ValueError: If the session is not complete
        AdvisoryError: If the request fails for a known reason
    """
    if session.state is not CaptureState.COMPLETE:
        raise ValueError(
            f"Session must be complete before analysis (state: {session.state.value})"
        )

    low_name, high_name = session.endpoints
    logger.info(f"Requesting analysis for range {low_name} - {high_name}")

    # The worker is abandoned on timeout; a hung call must not block the caller
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(advisor.analyze, low_name, high_name)
        result = future.result(timeout=timeout)
    except Exception as e:
        reason = classify_error(e)
        if reason is None:
            logger.error(f"Advisory request failed: {e}", exc_info=True)
            raise
        logger.error(f"Advisory request failed ({reason.value}): {e}")
        if isinstance(e, AdvisoryError):
            raise
        raise AdvisoryError(reason, str(e)) from e
    finally:
        executor.shutdown(wait=False)

    if not isinstance(result, VocalAnalysis):
        raise AdvisoryError(
            AdvisoryFailure.MALFORMED_RESPONSE,
            f"advisor returned {type(result).__name__}",
        )

    logger.info(f"Analysis received: {result.voice_type}")
    return result
