from typing import Callable, List, Optional

import numpy as np

from .core.interfaces import IAudioProvider


class MockAudioProvider(IAudioProvider):
    """A fake audio source for unit tests. Frames are delivered by calling push()."""

    def __init__(self, sample_rate: int = 44100, frames: Optional[List[np.ndarray]] = None):
        self._sample_rate = sample_rate
        self._frames = list(frames or [])
        self.callback: Optional[Callable[[np.ndarray], None]] = None
        self.stop_calls = 0
        self._running = False

    def start(self, on_frame):
        self.callback = on_frame
        self._running = True

    def stop(self):
        self.stop_calls += 1
        self._running = False

    def push(self, frame: Optional[np.ndarray] = None) -> None:
        """Deliver a frame, or the next scripted frame if none is given."""
        if frame is None:
            frame = self._frames.pop(0)
        if self._running and self.callback:
            self.callback(frame)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return 1
