"""Type definitions for the Vocal Range project."""

from dataclasses import dataclass


@dataclass(frozen=True)
class NoteData:
    """A frequency mapped onto the equal-tempered scale."""

    frequency: float  # Source frequency in Hz
    note: str  # Pitch class (e.g., 'C', 'F#')
    octave: int  # e.g. 4
    deviation: float  # Cents off the nearest equal-tempered pitch
    name: str  # Display name (e.g., 'C4')

    def __str__(self):
        return f"{self.name} ({self.frequency:.1f}Hz, {self.deviation:+.1f}c)"
