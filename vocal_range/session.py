"""Two-step vocal range capture: lowest note, then highest note."""

from enum import Enum
from typing import Callable, Optional, Tuple

from .core.events import EventEmitter, SessionEvent
from .core.interfaces import IAudioProvider
from .logger import get_logger
from .note_types import NoteData
from .note_utils import map_frequency
from .services.pitch import Frame, PitchEstimator

# Get logger for this module
logger = get_logger(__name__)

NoteMapper = Callable[[float], Optional[NoteData]]


class CaptureState(Enum):
    IDLE = "idle"
    AWAITING_LOW = "awaiting_low"
    AWAITING_HIGH = "awaiting_high"
    COMPLETE = "complete"


SAMPLING_STATES = (CaptureState.AWAITING_LOW, CaptureState.AWAITING_HIGH)


class CaptureSession:
    """Reactive state machine over incoming frames and capture commands.

    The session owns no timer and no audio device. The host calls
    ``on_frame`` for every frame it captures and ``capture`` when the user
    asks to keep the current note. Frame updates and commands must not run
    concurrently; hosts that deliver frames on another thread serialize the
    calls themselves.
    """

    def __init__(
        self,
        estimator: Optional[PitchEstimator] = None,
        note_mapper: Optional[NoteMapper] = None,
    ) -> None:
        """Initialize an idle session.

        Args:
            estimator: Pitch estimator for incoming frames (default thresholds if None)
            note_mapper: Maps a frequency to NoteData or None (map_frequency if None)
        """
        self._estimator = estimator if estimator is not None else PitchEstimator()
        self._note_mapper = note_mapper if note_mapper is not None else map_frequency
        self._events = EventEmitter()

        self._state = CaptureState.IDLE
        self._live_note: Optional[NoteData] = None
        self._low_note: Optional[NoteData] = None
        self._high_note: Optional[NoteData] = None
        self._audio_source: Optional[IAudioProvider] = None

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def live_note(self) -> Optional[NoteData]:
        return self._live_note

    @property
    def low_note(self) -> Optional[NoteData]:
        """The low endpoint.

        While awaiting the high note this is the first captured note; the
        final low/high labels are assigned by frequency on completion.
        """
        return self._low_note

    @property
    def high_note(self) -> Optional[NoteData]:
        return self._high_note

    @property
    def endpoints(self) -> Optional[Tuple[str, str]]:
        """Display names of (low, high) once the session is complete."""
        if self._state is not CaptureState.COMPLETE:
            return None
        return self._low_note.name, self._high_note.name

    def on(self, event: SessionEvent, callback: Callable) -> None:
        """Register an observer for a session event."""
        self._events.on(event, callback)

    def begin(self, audio_source: Optional[IAudioProvider] = None) -> bool:
        """Start the low-note step.

        Args:
            audio_source: The host's already started audio provider. The
                session stops it on completion or reset.

        Returns:
            True if the session moved to AWAITING_LOW, False if it was not idle
        """
        if self._state is not CaptureState.IDLE:
            logger.debug(f"Ignoring begin() in state {self._state.value}")
            return False

        self._audio_source = audio_source
        self._live_note = None
        self._low_note = None
        self._high_note = None
        self._set_state(CaptureState.AWAITING_LOW)
        return True

    def on_frame(self, frame: Frame, sample_rate: float) -> Optional[NoteData]:
        """Feed one frame of audio to the session.

        Returns:
            The new live note, or None if the frame carries no usable pitch
            or the session is not sampling
        """
        if self._state not in SAMPLING_STATES:
            return None

        frequency = self._estimator.estimate(frame, sample_rate)
        note = self._note_mapper(frequency) if frequency is not None else None

        self._live_note = note
        self._events.emit(SessionEvent.LIVE_NOTE, note)
        return note

    def capture(self) -> bool:
        """Freeze the live note as the endpoint of the current step.

        The live note is consumed, so a repeated capture without a new frame
        is a no-op.

        Returns:
            True if a note was captured, False if the command was rejected
        """
        if self._state not in SAMPLING_STATES:
            logger.debug(f"Ignoring capture() in state {self._state.value}")
            return False
        if self._live_note is None:
            logger.debug("Ignoring capture() with no live note")
            return False

        note, self._live_note = self._live_note, None

        if self._state is CaptureState.AWAITING_LOW:
            self._low_note = note
            logger.info(f"Captured first note: {note}")
            self._events.emit(SessionEvent.ENDPOINT_CAPTURED, note)
            self._set_state(CaptureState.AWAITING_HIGH)
            return True

        # The user may have sung the high note first
        first = self._low_note
        if note.frequency < first.frequency:
            self._low_note, self._high_note = note, first
        else:
            self._high_note = note

        logger.info(f"Captured second note: {note}")
        self._events.emit(SessionEvent.ENDPOINT_CAPTURED, note)
        self._set_state(CaptureState.COMPLETE)
        self._release_audio_source()
        logger.info(
            f"Range complete: {self._low_note.name} - {self._high_note.name}"
        )
        self._events.emit(SessionEvent.COMPLETED, self._low_note, self._high_note)
        return True

    def reset(self) -> "CaptureSession":
        """Discard this session and return a fresh idle one.

        The host's audio source is stopped. Observers are not carried over.
        """
        self._release_audio_source()
        self._live_note = None
        self._low_note = None
        self._high_note = None
        self._state = CaptureState.IDLE
        self._events.clear()
        logger.info("Session reset")
        return CaptureSession(self._estimator, self._note_mapper)

    def _set_state(self, new_state: CaptureState) -> None:
        old_state = self._state
        self._state = new_state
        logger.info(f"Session state: {old_state.value} -> {new_state.value}")
        self._events.emit(SessionEvent.STATE_CHANGED, old_state, new_state)

    def _release_audio_source(self) -> None:
        source, self._audio_source = self._audio_source, None
        if source is None:
            return
        try:
            source.stop()
        except Exception as e:
            # Stop failures never propagate out of the session
            logger.error(f"Error stopping audio source: {e}", exc_info=True)

