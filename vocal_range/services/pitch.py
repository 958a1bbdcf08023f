#!/usr/bin/env python3

from typing import ClassVar, Optional, Sequence, TypeAlias, Union

import numpy as np

from ..logger import get_logger

logger = get_logger(__name__)

Frame: TypeAlias = Union[np.ndarray, Sequence[float]]


class PitchEstimator:
    """Autocorrelation pitch estimator for monophonic, sustained tones.

    Each call is independent: the estimator keeps no state between frames
    beyond its two thresholds.
    """

    # Type aliases
    Frequency: TypeAlias = float
    SignalStrength: TypeAlias = float

    # Frames quieter than this RMS are treated as silence
    DEFAULT_SILENCE_RMS: ClassVar[SignalStrength] = 0.01
    # Amplitude used to find the trim points at both ends of the frame
    DEFAULT_TRIM_THRESHOLD: ClassVar[SignalStrength] = 0.2
    # Shortest window the correlation peak search can work with
    MIN_WINDOW: ClassVar[int] = 3

    def __init__(
        self,
        silence_rms: Optional[SignalStrength] = None,
        trim_threshold: Optional[SignalStrength] = None,
    ) -> None:
        """Initialize the estimator.

        Args:
            silence_rms: RMS gate below which a frame has no pitch (default 0.01)
            trim_threshold: Amplitude that marks the active region of a frame (default 0.2)
        """
        self._silence_rms = float(
            silence_rms if silence_rms is not None else self.DEFAULT_SILENCE_RMS
        )
        self._trim_threshold = float(
            trim_threshold
            if trim_threshold is not None
            else self.DEFAULT_TRIM_THRESHOLD
        )

    @property
    def silence_rms(self) -> SignalStrength:
        return self._silence_rms

    @property
    def trim_threshold(self) -> SignalStrength:
        return self._trim_threshold

    def estimate(self, frame: Frame, sample_rate: float) -> Optional[Frequency]:
        """Estimate the fundamental frequency of one frame.

        Args:
            frame: Mono samples, normalized to roughly [-1, 1]
            sample_rate: Sampling rate of the frame in Hz

        Returns:
            The frequency in Hz, or None if the frame is silent or has no
            clear periodic structure

        Raises:
            ValueError: If sample_rate is not a positive number
        """
        if not sample_rate or sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}")

        samples = np.asarray(frame, dtype=np.float64).ravel()
        if samples.size < self.MIN_WINDOW:
            return None

        rms = float(np.sqrt(np.mean(samples**2)))
        if rms < self._silence_rms:
            logger.debug(f"Signal too quiet (rms={rms:.4f})")
            return None

        window = self._trim(samples)
        correlation = self._autocorrelate(window)

        period = self._find_period(correlation)
        if period is None:
            logger.debug(f"No correlation peak (rms={rms:.4f}, window={window.size})")
            return None

        frequency = sample_rate / period
        if not np.isfinite(frequency) or frequency <= 0:
            return None

        logger.debug(f"Estimated {frequency:.2f}Hz (period={period:.2f}, rms={rms:.4f})")
        return float(frequency)

    def _trim(self, samples: np.ndarray) -> np.ndarray:
        """Cut the frame down to the span between the first and last quiet samples.

        The first half is scanned forward and the last half backward for a
        sample below the trim threshold. Either end falls back to the frame
        boundary when nothing qualifies.
        """
        size = samples.size
        half = (size + 1) // 2
        quiet = np.abs(samples) < self._trim_threshold

        head = np.flatnonzero(quiet[:half])
        start = int(head[0]) if head.size else 0

        tail_offset = size - half + 1
        tail = np.flatnonzero(quiet[tail_offset:])
        end = tail_offset + int(tail[-1]) if tail.size else size - 1

        if end - start < self.MIN_WINDOW:
            return samples
        return samples[start:end]

    @staticmethod
    def _autocorrelate(window: np.ndarray) -> np.ndarray:
        """c[lag] = sum(x[j] * x[j + lag]) for lag in 0..len-1."""
        return np.correlate(window, window, mode="full")[window.size - 1 :]

    @staticmethod
    def _find_period(correlation: np.ndarray) -> Optional[float]:
        """Locate the main correlation peak and refine it to sub-sample precision."""
        size = correlation.size

        # Skip the slope that starts at lag 0
        lag = 0
        while lag < size - 1 and correlation[lag] > correlation[lag + 1]:
            lag += 1
        if lag >= size - 1:
            return None

        peak = lag + int(np.argmax(correlation[lag:]))
        # The refinement needs a neighbour on both sides
        if peak <= 0 or peak >= size - 1 or correlation[peak] <= 0:
            return None

        x1, x2, x3 = correlation[peak - 1], correlation[peak], correlation[peak + 1]
        a = (x1 + x3 - 2 * x2) / 2
        b = (x3 - x1) / 2
        period = float(peak)
        if a:
            period -= b / (2 * a)
        return period


_default_estimator = PitchEstimator()


def estimate(frame: Frame, sample_rate: float) -> Optional[float]:
    """Estimate a frame's fundamental frequency with the default thresholds."""
    return _default_estimator.estimate(frame, sample_rate)
