import threading
import time
from typing import Callable, Dict, Iterator, List, Optional, Any

import numpy as np
import soundfile as sf

from ..core.interfaces import IAudioProvider
from ..logger import get_logger

logger = get_logger(__name__)


def _to_mono(data: np.ndarray) -> np.ndarray:
    """Collapse (frames x channels) audio to a 1-D float32 frame."""
    if data.ndim == 1:
        return data.astype(np.float32, copy=False)
    if data.shape[1] == 1:
        return data[:, 0].astype(np.float32, copy=False)
    return data.mean(axis=1).astype(np.float32)


def list_input_devices() -> List[Dict[str, Any]]:
    """List audio devices that can record.

    Returns:
        One dict per input device with 'id', 'name' and 'sample_rate' keys
    """
    # PortAudio is only needed for live capture
    import sounddevice as sd

    devices = []
    for device_id, device in enumerate(sd.query_devices()):
        if device["max_input_channels"] > 0:
            devices.append(
                {
                    "id": device_id,
                    "name": device["name"],
                    "sample_rate": device["default_samplerate"],
                }
            )
    return devices


class LiveAudioProvider(IAudioProvider):
    """Provides live audio from an input device using sounddevice."""

    def __init__(
        self,
        device_id: Optional[int] = None,
        sample_rate: int = 44100,
        channels: int = 1,
        chunk_size: int = 2048,
    ):
        self._device_id = device_id
        self._sample_rate = int(sample_rate)
        self._channels = int(channels)
        self._chunk_size = int(chunk_size)
        self._stream = None
        self._on_frame: Optional[Callable[[np.ndarray], None]] = None

    def start(self, on_frame: Callable[[np.ndarray], None]) -> None:
        import sounddevice as sd

        self._on_frame = on_frame
        try:
            self._stream = sd.InputStream(
                device=self._device_id,
                channels=self._channels,
                samplerate=self._sample_rate,
                blocksize=self._chunk_size,
                callback=self._audio_callback,
                dtype="float32",
            )
            self._stream.start()
        except Exception as e:
            logger.error(f"Failed to open input device {self._device_id}: {e}", exc_info=True)
            self._stream = None
            raise
        logger.info(
            f"Listening on device {self._device_id} "
            f"({self._sample_rate}Hz, {self._chunk_size} samples per frame)"
        )

    def stop(self) -> None:
        if self._stream:
            self._stream.stop()
            self._stream.close()
            self._stream = None
            logger.info("Stopped live audio")

    @property
    def is_running(self) -> bool:
        return self._stream is not None

    def _audio_callback(self, indata: np.ndarray, _frames: int, _time_info, status) -> None:
        """Runs on the PortAudio thread; keep it short."""
        if status:
            logger.warning(f"Audio status: {status}")
        if self._on_frame:
            self._on_frame(indata[:, 0].astype(np.float32))

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels


class WavFileAudioProvider(IAudioProvider):
    """Provides audio data by reading from a WAV file."""

    def __init__(
        self,
        file_path: str,
        chunk_size: int = 2048,
        loop: bool = False,
        gain: float = 1.0,
        realtime: bool = True,
    ):
        self._file_path = file_path
        self._chunk_size = int(chunk_size)
        self._loop = loop
        self._gain = gain
        self._realtime = realtime
        self._on_frame: Optional[Callable[[np.ndarray], None]] = None
        self._is_running = False
        self._thread: Optional[threading.Thread] = None

        with sf.SoundFile(self._file_path) as f:
            self._sample_rate = f.samplerate
            self._channels = f.channels

    def frames(self) -> Iterator[np.ndarray]:
        """Yield mono frames of chunk_size samples from the start of the file.

        The last frame may be shorter. Looping is not applied here.
        """
        with sf.SoundFile(self._file_path) as f:
            while True:
                data = f.read(self._chunk_size, dtype="float32", always_2d=True)
                if len(data) == 0:
                    break
                frame = _to_mono(data)
                if self._gain != 1.0:
                    frame = frame * self._gain
                yield frame

    def start(self, on_frame: Callable[[np.ndarray], None]) -> None:
        if self._is_running:
            return

        self._on_frame = on_frame
        self._is_running = True
        self._thread = threading.Thread(target=self._stream_data, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._is_running = False
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join()
        self._thread = None

    @property
    def is_running(self) -> bool:
        """Returns True if the provider is currently streaming data."""
        return self._is_running

    def _stream_data(self) -> None:
        try:
            while self._is_running:
                for frame in self.frames():
                    if not self._is_running:
                        break
                    if self._on_frame:
                        self._on_frame(frame)
                    if self._realtime:
                        # Simulate real-time playback speed
                        time.sleep(self._chunk_size / self.sample_rate)
                if not self._loop:
                    break
        except Exception as e:
            logger.error(f"Error streaming WAV file {self._file_path}: {e}", exc_info=True)
        finally:
            self._is_running = False

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels
