"""
Audio Alignment Module
======================

Global time alignment of the degraded signal to the reference.

A single lag is estimated for the whole signal from the cross-correlation
of the two upper envelopes; the degraded signal is then trimmed or
zero-padded so that both signals start together and have equal length.

Features:
- Hilbert upper envelopes (robust to phase changes from codecs)
- FFT cross-correlation with energy normalization
- Explicit failure (None) when no usable peak exists
"""

import logging
from typing import Optional, Tuple

import numpy as np
from scipy import signal

from .audio import AudioSignal
from .config import VisqolConfig, DEFAULT_CONFIG

logger = logging.getLogger(__name__)


class GlobalAligner:
    """
    Cross-correlation aligner.

    Positive lags mean the degraded signal is delayed relative to the
    reference.
    """

    def __init__(self, config: VisqolConfig = None):
        """
        Initialize aligner with config.

        Args:
            config: VisqolConfig instance
        """
        self.config = config or DEFAULT_CONFIG

    @staticmethod
    def upper_envelope(samples: np.ndarray) -> np.ndarray:
        """
        Compute the upper envelope of a signal.

        Args:
            samples: Input samples

        Returns:
            Envelope with the same length as the input
        """
        mean = np.mean(samples)
        analytic = signal.hilbert(samples - mean)
        return np.abs(analytic) + mean

    def cross_correlate(self, reference: np.ndarray,
                        degraded: np.ndarray) -> Tuple[int, float]:
        """
        Find the lag maximizing the normalized cross-correlation.

        Args:
            reference: Reference envelope
            degraded: Degraded envelope

        Returns:
            Tuple of (lag_samples, normalized_peak). The peak is 0.0 when
            either input has no energy.
        """
        norm_factor = np.sqrt(np.sum(reference ** 2) * np.sum(degraded ** 2))
        if not np.isfinite(norm_factor) or norm_factor <= 0:
            return 0, 0.0

        correlation = signal.correlate(degraded, reference, mode='full', method='fft')
        correlation = np.abs(correlation) / norm_factor
        if not np.all(np.isfinite(correlation)):
            return 0, 0.0

        lags = np.arange(len(correlation)) - (len(reference) - 1)
        peak = np.max(correlation)

        # Closest-to-zero lag wins among equal peaks
        candidates = np.flatnonzero(correlation == peak)
        best = candidates[np.argmin(np.abs(lags[candidates]))]

        return int(lags[best]), float(peak)

    @staticmethod
    def apply_lag(samples: np.ndarray, lag: int, target_length: int) -> np.ndarray:
        """
        Shift samples by lag and fit them to target_length.

        Args:
            samples: Degraded samples
            lag: Shift in samples (positive = degraded is delayed)
            target_length: Length of the reference

        Returns:
            Shifted samples of exactly target_length
        """
        if lag > 0:
            shifted = samples[lag:]
        elif lag < 0:
            shifted = np.concatenate([np.zeros(-lag), samples])
        else:
            shifted = samples

        if len(shifted) < target_length:
            shifted = np.pad(shifted, (0, target_length - len(shifted)), mode='constant')
        return shifted[:target_length]

    def align(self, reference: AudioSignal,
              degraded: AudioSignal) -> Optional[Tuple[AudioSignal, int]]:
        """
        Align degraded audio to reference.

        Args:
            reference: Reference (clean) signal
            degraded: Degraded signal to align

        Returns:
            Tuple of (aligned_degraded, lag_samples), or None when no usable
            correlation peak was found
        """
        ref_env = self.upper_envelope(reference.samples)
        deg_env = self.upper_envelope(degraded.samples)

        lag, peak = self.cross_correlate(ref_env, deg_env)
        logger.debug(f"Envelope cross-correlation: lag={lag} samples, peak={peak:.4f}")

        if peak < self.config.MIN_ALIGNMENT_CORRELATION:
            logger.error(f"No usable correlation peak (peak={peak:.4f})")
            return None

        if abs(lag) >= len(degraded.samples):
            logger.error(f"Lag {lag} leaves no overlap with the degraded signal")
            return None

        aligned = self.apply_lag(degraded.samples, lag, len(reference.samples))
        return degraded.with_samples(aligned), lag


def globally_align(reference: AudioSignal,
                   degraded: AudioSignal,
                   config: VisqolConfig = None) -> Optional[Tuple[AudioSignal, int]]:
    """
    Convenience wrapper around GlobalAligner.align.

    Args:
        reference: Reference signal
        degraded: Degraded signal
        config: VisqolConfig instance

    Returns:
        Tuple of (aligned_degraded, lag_samples) or None
    """
    return GlobalAligner(config).align(reference, degraded)
