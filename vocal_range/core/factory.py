"""Factory for creating Vocal Range components."""

from functools import partial
from typing import TYPE_CHECKING, Optional

from ..logger import get_logger
from ..note_utils import map_frequency
from ..services.audio_providers import LiveAudioProvider, WavFileAudioProvider
from ..services.gemini_advisor import GeminiRangeAdvisor
from ..services.pitch import PitchEstimator
from ..session import CaptureSession, NoteMapper
from .config import ConfigManager

if TYPE_CHECKING:
    from ..advisor import VocalAnalysis
    from .interfaces import IRangeAdvisor

logger = get_logger(__name__)


class ComponentFactory:
    """Builds components with their settings taken from a ConfigManager."""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """Initialize the component factory.

        Args:
            config_manager: Configuration manager, or None to create a default one
        """
        self.config_manager = config_manager or ConfigManager()

    def create_pitch_estimator(self, **kwargs) -> PitchEstimator:
        """Create a pitch estimator.

        Args:
            **kwargs: Overrides for the 'pitch_estimator' configuration
        """
        config = self.config_manager.get_config("pitch_estimator")
        config.update(kwargs)

        instance = PitchEstimator(
            silence_rms=config.get("silence_rms"),
            trim_threshold=config.get("trim_threshold"),
        )
        logger.info(
            f"Created pitch estimator: silence_rms={instance.silence_rms}, "
            f"trim_threshold={instance.trim_threshold}"
        )
        return instance

    def create_note_mapper(self, **kwargs) -> NoteMapper:
        """Create a frequency-to-note function bound to the configured range."""
        config = self.config_manager.get_config("note_mapper")
        config.update(kwargs)
        return partial(
            map_frequency,
            min_frequency=float(config["min_frequency"]),
            max_frequency=float(config["max_frequency"]),
        )

    def create_session(self) -> CaptureSession:
        """Create an idle capture session with configured components."""
        return CaptureSession(
            estimator=self.create_pitch_estimator(),
            note_mapper=self.create_note_mapper(),
        )

    def create_live_audio(self, device_id: Optional[int] = None, **kwargs) -> LiveAudioProvider:
        """Create a microphone provider.

        Args:
            device_id: Audio input device ID, or None for the system default
            **kwargs: Overrides for the 'audio_input' configuration
        """
        config = self.config_manager.get_config("audio_input")
        config.update(kwargs)

        instance = LiveAudioProvider(
            device_id=device_id,
            sample_rate=config["sample_rate"],
            channels=config["channels"],
            chunk_size=config["frames_per_buffer"],
        )
        logger.info(f"Created live audio provider for device {device_id}")
        return instance

    def create_wav_audio(self, file_path: str, **kwargs) -> WavFileAudioProvider:
        """Create a WAV file provider using the configured frame size."""
        chunk_size = kwargs.pop(
            "chunk_size", self.config_manager.get_config("audio_input")["frames_per_buffer"]
        )
        instance = WavFileAudioProvider(file_path, chunk_size=chunk_size, **kwargs)
        logger.info(f"Created WAV audio provider for {file_path}")
        return instance

    def create_advisor(self, **kwargs) -> GeminiRangeAdvisor:
        """Create the Gemini advisory client.

        Args:
            **kwargs: Overrides for the 'advisor' configuration, plus api_key or client
        """
        config = self.config_manager.get_config("advisor")
        config.update(kwargs)

        instance = GeminiRangeAdvisor(
            model=config["model"],
            api_key=config.get("api_key"),
            timeout=float(config["timeout_seconds"]),
            client=config.get("client"),
        )
        logger.info(f"Created advisor using model {instance.model}")
        return instance

    def request_analysis(self, session: CaptureSession, advisor: "IRangeAdvisor") -> "VocalAnalysis":
        """Ask an advisor about a completed session using the configured timeout."""
        from ..advisor import request_analysis

        timeout = self.config_manager.get_config("advisor")["timeout_seconds"]
        return request_analysis(session, advisor, timeout=timeout)
