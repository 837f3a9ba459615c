"""
Gammatone Spectrogram Module
============================

Auditory time-frequency representation used for patch comparison.

The signal is split into ERB-spaced bands by a gammatone filter bank and
each band output is reduced to its RMS per analysis frame. Reference and
degraded spectrograms are then brought to a common dB scale with a shared
noise floor before patches are cut from them.

Features:
- ERB-spaced centre frequencies (Glasberg & Moore)
- 4th-order IIR gammatone filters (scipy)
- Frame RMS via librosa
- Joint dB conversion and noise flooring of a spectrogram pair
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import librosa
import numpy as np
from scipy import signal

from .audio import AudioSignal
from .config import VisqolConfig, DEFAULT_CONFIG

logger = logging.getLogger(__name__)

# Glasberg & Moore ERB parameters
EAR_Q = 9.26449
MIN_BW = 24.7

# Floor applied to band power before taking the log
POWER_EPSILON = 1e-20


class AnalysisWindow:
    """
    Frame layout shared by the spectrogram builder and the voice activity
    detector, so that frame indices agree between them.
    """

    def __init__(self, sample_rate: int, overlap: float = 0.5,
                 window_duration: float = 0.08):
        if not 0.0 <= overlap < 1.0:
            raise ValueError(f"Overlap must be in [0, 1), got {overlap}")

        self.sample_rate = sample_rate
        self.overlap = overlap
        self.window_duration = window_duration
        self.size = max(1, int(round(sample_rate * window_duration)))
        self.hop = max(1, int(self.size * (1.0 - overlap)))

    @property
    def hop_seconds(self) -> float:
        return self.hop / self.sample_rate

    def num_frames(self, num_samples: int) -> int:
        return 1 + max(0, num_samples - self.size) // self.hop

    def frame_rms(self, y: np.ndarray) -> np.ndarray:
        """
        RMS of every analysis frame.

        Args:
            y: Samples, shape (n,) or (bands, n)

        Returns:
            Array of shape (n_frames,) or (bands, n_frames)
        """
        if y.shape[-1] < self.size:
            pad = [(0, 0)] * (y.ndim - 1) + [(0, self.size - y.shape[-1])]
            y = np.pad(y, pad, mode='constant')

        rms = librosa.feature.rms(
            y=y, frame_length=self.size, hop_length=self.hop,
            center=False, dtype=np.float64,
        )
        return rms[..., 0, :]


def erb_space(low_freq: float, high_freq: float, num_bands: int) -> np.ndarray:
    """
    Centre frequencies uniformly spaced on the ERB scale.

    Args:
        low_freq: Lowest centre frequency in Hz
        high_freq: Upper bound in Hz (not reached)
        num_bands: Number of centre frequencies

    Returns:
        Ascending array of centre frequencies
    """
    i = np.arange(1, num_bands + 1)
    offset = EAR_Q * MIN_BW
    cf = -offset + np.exp(
        i * (np.log(low_freq + offset) - np.log(high_freq + offset)) / num_bands
    ) * (high_freq + offset)
    return cf[::-1]


class GammatoneFilterBank:
    """
    Bank of 4th-order IIR gammatone filters.
    """

    def __init__(self, sample_rate: int, num_bands: int,
                 min_freq: float, max_freq: float):
        """
        Args:
            sample_rate: Sample rate of the signals to filter
            num_bands: Number of bands
            min_freq: Lowest centre frequency in Hz
            max_freq: Upper frequency bound in Hz, clamped to Nyquist
        """
        nyquist = sample_rate / 2.0
        high = min(max_freq, nyquist)
        if min_freq >= high:
            raise ValueError(
                f"Minimum frequency {min_freq} Hz must be below {high} Hz "
                f"for sample rate {sample_rate} Hz"
            )

        self.sample_rate = sample_rate
        self.num_bands = num_bands
        self.center_freqs = erb_space(min_freq, high, num_bands)
        self._coefficients = [
            signal.gammatone(cf, 'iir', fs=sample_rate) for cf in self.center_freqs
        ]

        logger.debug(
            f"Gammatone bank: {num_bands} bands, "
            f"{self.center_freqs[0]:.1f}-{self.center_freqs[-1]:.1f} Hz @ {sample_rate}Hz"
        )

    def apply(self, samples: np.ndarray) -> np.ndarray:
        """
        Filter samples through every band.

        Returns:
            Array of shape (num_bands, len(samples))
        """
        return np.stack([
            signal.lfilter(b, a, samples) for b, a in self._coefficients
        ])


@dataclass(eq=False)
class Spectrogram:
    """Band x frame magnitude matrix"""
    data: np.ndarray
    center_freqs: np.ndarray
    hop_seconds: float

    @property
    def num_bands(self) -> int:
        return self.data.shape[0]

    @property
    def num_frames(self) -> int:
        return self.data.shape[1]

    def frame_to_seconds(self, frame: int) -> float:
        return frame * self.hop_seconds

    def to_db(self) -> "Spectrogram":
        """Power in dB of the magnitudes"""
        power = np.maximum(np.square(self.data), POWER_EPSILON)
        return Spectrogram(10.0 * np.log10(power), self.center_freqs, self.hop_seconds)


class SpectrogramBuilder:
    """
    Build gammatone spectrograms for one pipeline variant.
    """

    def __init__(self, num_bands: int, max_freq: float,
                 config: VisqolConfig = None):
        """
        Args:
            num_bands: Number of gammatone bands
            max_freq: Upper frequency bound in Hz
            config: VisqolConfig instance
        """
        self.config = config or DEFAULT_CONFIG
        self.num_bands = num_bands
        self.max_freq = max_freq

    def window_for(self, sample_rate: int) -> AnalysisWindow:
        return AnalysisWindow(
            sample_rate,
            overlap=self.config.OVERLAP,
            window_duration=self.config.WINDOW_DURATION,
        )

    def build(self, audio: AudioSignal) -> Spectrogram:
        """
        Compute the gammatone spectrogram of a signal.

        Args:
            audio: Input signal

        Returns:
            Spectrogram with linear frame-RMS magnitudes
        """
        window = self.window_for(audio.sample_rate)
        filter_bank = GammatoneFilterBank(
            audio.sample_rate, self.num_bands,
            self.config.MINIMUM_FREQ, self.max_freq,
        )
        bands = filter_bank.apply(audio.samples)
        data = window.frame_rms(bands)

        logger.debug(f"Spectrogram: {data.shape[0]} bands x {data.shape[1]} frames")
        return Spectrogram(data, filter_bank.center_freqs, window.hop_seconds)


def prepare_spectrograms_for_comparison(reference: Spectrogram,
                                        degraded: Spectrogram,
                                        noise_floor_db: float = None
                                        ) -> Tuple[Spectrogram, Spectrogram]:
    """
    Bring a spectrogram pair onto a shared, non-negative dB scale.

    Both are converted to dB, floored at ``noise_floor_db`` below the
    reference peak, then shifted by their common minimum so the floor
    sits at zero.

    Args:
        reference: Reference spectrogram (linear magnitudes)
        degraded: Degraded spectrogram (linear magnitudes)
        noise_floor_db: Floor relative to the reference peak

    Returns:
        Tuple of (prepared_reference, prepared_degraded)
    """
    if noise_floor_db is None:
        noise_floor_db = DEFAULT_CONFIG.NOISE_FLOOR_RELATIVE_DB

    ref_db = reference.to_db()
    deg_db = degraded.to_db()

    floor = np.max(ref_db.data) - noise_floor_db
    ref_data = np.maximum(ref_db.data, floor)
    deg_data = np.maximum(deg_db.data, floor)

    lowest = min(np.min(ref_data), np.min(deg_data))
    ref_data = ref_data - lowest
    deg_data = deg_data - lowest

    return (
        Spectrogram(ref_data, reference.center_freqs, reference.hop_seconds),
        Spectrogram(deg_data, degraded.center_freqs, degraded.hop_seconds),
    )
