"""Defines the core interfaces for the Vocal Range application."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Callable, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from ..advisor import VocalAnalysis


class IAudioProvider(ABC):
    """An abstract interface for audio providers.

    Providers deliver mono float32 frames of a fixed size. Starting and
    stopping the underlying device is the provider's job; a capture session
    only holds on to a started provider so it can stop it.
    """

    @abstractmethod
    def start(self, on_frame: Callable[[np.ndarray], None]) -> None:
        """Starts the audio stream, calling on_frame with each frame."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stops the audio stream."""
        pass

    @property
    @abstractmethod
    def is_running(self) -> bool:
        """True while frames are being delivered."""
        pass

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """The sample rate of the audio stream."""
        pass

    @property
    @abstractmethod
    def channels(self) -> int:
        """The number of channels in the source audio."""
        pass


class IRangeAdvisor(ABC):
    """Interface for the external service that turns a vocal range into a report."""

    @abstractmethod
    def analyze(self, low_note: str, high_note: str) -> VocalAnalysis:
        """Return a report for the range low_note..high_note (e.g. 'C3', 'C5')."""
        pass
