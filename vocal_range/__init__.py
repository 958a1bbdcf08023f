"""Vocal Range - sung pitch detection and two-step vocal range capture."""

from .note_types import NoteData
from .note_utils import map_frequency
from .services.pitch import PitchEstimator, estimate
from .session import CaptureSession, CaptureState

__version__ = "0.1.0"

__all__ = [
    "NoteData",
    "map_frequency",
    "PitchEstimator",
    "estimate",
    "CaptureSession",
    "CaptureState",
]
