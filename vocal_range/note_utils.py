"""Utility functions for working with musical notes and frequencies."""

import math
from typing import Optional

import numpy as np

from .logger import get_logger
from .note_types import NoteData

# Get logger for this module
logger = get_logger(__name__)

A4_FREQUENCY = 440.0
A4_MIDI = 69  # A4 in MIDI numbering

# Representable vocal/audible span
MIN_FREQUENCY = 20.0
MAX_FREQUENCY = 8000.0

# Deviation band the tuner treats as "in tune"
IN_TUNE_CENTS = 15.0

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

SHARP_TO_FLAT = {
    "C#": "Db",
    "D#": "Eb",
    "F#": "Gb",
    "G#": "Ab",
    "A#": "Bb",
}
FLAT_TO_SHARP = {v: k for k, v in SHARP_TO_FLAT.items()}


def frequency_to_midi(freq: float) -> int:
    """Nearest MIDI index for a frequency, rounding half up."""
    half_steps = 12 * np.log2(freq / A4_FREQUENCY)
    return int(math.floor(half_steps + 0.5)) + A4_MIDI


def midi_to_frequency(midi: int) -> float:
    """Exact equal-tempered frequency of a MIDI index."""
    return A4_FREQUENCY * (2.0 ** ((midi - A4_MIDI) / 12.0))


def note_frequency(note: str, octave: int) -> float:
    """Exact equal-tempered frequency of a pitch class in an octave.

    Args:
        note: Pitch class in sharp or flat spelling (e.g., 'C#' or 'Db')
        octave: Octave number in Scientific Pitch Notation (C4 is middle C)

    Raises:
        ValueError: If the pitch class is not recognised
    """
    note = FLAT_TO_SHARP.get(note, note)
    if note not in NOTE_NAMES:
        raise ValueError(f"Unknown pitch class: {note!r}")
    midi = (octave + 1) * 12 + NOTE_NAMES.index(note)
    return midi_to_frequency(midi)


def map_frequency(
    freq: float,
    min_frequency: float = MIN_FREQUENCY,
    max_frequency: float = MAX_FREQUENCY,
) -> Optional[NoteData]:
    """Map a frequency onto the nearest equal-tempered note.

    Args:
        freq: Frequency in Hz
        min_frequency: Lowest frequency that maps to a note
        max_frequency: Highest frequency that maps to a note

    Returns:
        NoteData for the nearest note, or None if the frequency is outside
        [min_frequency, max_frequency]

    Note:
        The deviation is measured against the rounded note only, so it stays
        within roughly +/-50 cents; values close to the boundary are expected.
    """
    if freq is None or not np.isfinite(freq):
        return None
    if freq < min_frequency or freq > max_frequency:
        logger.debug(f"Frequency {freq:.1f}Hz out of range")
        return None

    midi = frequency_to_midi(freq)
    note = NOTE_NAMES[midi % 12]
    octave = (midi // 12) - 1

    perfect_freq = midi_to_frequency(midi)
    deviation = float(1200 * np.log2(freq / perfect_freq))

    return NoteData(
        frequency=float(freq),
        note=note,
        octave=octave,
        deviation=deviation,
        name=f"{note}{octave}",
    )


def get_note_name(freq: float, use_flats: bool = False) -> str:
    """Convert frequency to note name using Scientific Pitch Notation (SPN).

    Args:
        freq: Frequency in Hz
        use_flats: If True, use flat notes (e.g., 'Bb') instead of sharps (e.g., 'A#')

    Returns:
        Note name with octave in SPN (e.g., 'A4', 'C#4', 'Bb3'), or '---' if
        the frequency cannot be mapped
    """
    note = map_frequency(freq)
    if note is None:
        return "---"
    if use_flats:
        return convert_note_notation(note.name, to_flats=True)
    return note.name


def convert_note_notation(note_name: str, to_flats: bool = False) -> str:
    """Convert a note name between sharp and flat notation.

    Examples:
        >>> convert_note_notation('F#2', to_flats=True)
        'Gb2'
        >>> convert_note_notation('Gb2')
        'F#2'
    """
    if not note_name:
        return ""

    note_part = "".join(c for c in note_name if not c.isdigit() and c != "-")
    octave_part = note_name[len(note_part) :]

    if to_flats and note_part in SHARP_TO_FLAT:
        return f"{SHARP_TO_FLAT[note_part]}{octave_part}"
    elif not to_flats and note_part in FLAT_TO_SHARP:
        return f"{FLAT_TO_SHARP[note_part]}{octave_part}"

    return note_name


def is_in_tune(note: Optional[NoteData], tolerance_cents: float = IN_TUNE_CENTS) -> bool:
    """True when the note's deviation falls inside the in-tune band."""
    return note is not None and abs(note.deviation) < tolerance_cents
