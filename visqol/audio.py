"""
Audio Signal Module
===================

Immutable mono signal container and the loading collaborator.

Features:
- AudioSignal value type with invariant checks
- Mono loading at the native sample rate (librosa)
- RMS level helpers and sound-pressure-level matching
"""

import logging
from dataclasses import dataclass
from typing import Dict

import librosa
import numpy as np

from .errors import AudioLoadError, InvalidSignalError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class AudioSignal:
    """
    Mono sample sequence plus sample rate.

    Never mutated in place: alignment and level matching return new
    instances through ``with_samples``.
    """
    samples: np.ndarray
    sample_rate: int

    def __post_init__(self):
        samples = np.array(self.samples, dtype=np.float64)
        if samples.ndim != 1:
            raise InvalidSignalError(
                f"Signal must be mono (1-D), got shape {samples.shape}"
            )
        if samples.size == 0:
            raise InvalidSignalError("Signal has no samples")
        if int(self.sample_rate) <= 0:
            raise InvalidSignalError(f"Invalid sample rate: {self.sample_rate}")

        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)
        object.__setattr__(self, "sample_rate", int(self.sample_rate))

    @property
    def duration(self) -> float:
        """Duration in seconds"""
        return len(self.samples) / self.sample_rate

    def __len__(self) -> int:
        return len(self.samples)

    def with_samples(self, samples: np.ndarray) -> "AudioSignal":
        """New signal with the same sample rate"""
        return AudioSignal(samples=samples, sample_rate=self.sample_rate)

    def to_dict(self) -> Dict:
        return {
            "sample_rate": self.sample_rate,
            "num_samples": len(self.samples),
            "duration": self.duration,
            "rms_db": compute_rms_db(self.samples),
        }


def load_as_mono(filepath: str) -> AudioSignal:
    """
    Load an audio file as a mono signal.

    The native sample rate is kept so that the caller can reject pairs
    recorded at different rates.

    Args:
        filepath: Path to audio file

    Returns:
        AudioSignal with channels mixed down to mono

    Raises:
        AudioLoadError: If the file cannot be read or decoded
    """
    try:
        audio, sr = librosa.load(filepath, sr=None, mono=True)
    except Exception as e:
        raise AudioLoadError(str(filepath), str(e)) from e

    if audio.size == 0:
        raise AudioLoadError(str(filepath), "file contains no samples")

    logger.debug(f"Loaded {filepath}: {len(audio)/sr:.2f}s @ {sr}Hz")
    return AudioSignal(samples=audio, sample_rate=sr)


def compute_rms(audio: np.ndarray) -> float:
    """Root-mean-square level of a sample array"""
    return float(np.sqrt(np.mean(np.square(audio))))


def compute_rms_db(audio: np.ndarray) -> float:
    """
    Compute RMS level in dB.

    Args:
        audio: Audio signal array

    Returns:
        RMS level in dB (relative to 1.0)
    """
    rms = compute_rms(audio)
    if rms > 0:
        return 20 * np.log10(rms)
    return -np.inf


def scale_to_match_sound_pressure_level(reference: AudioSignal,
                                        degraded: AudioSignal) -> AudioSignal:
    """
    Rescale the degraded signal so its RMS equals the reference RMS.

    A silent degraded signal is returned unchanged.

    Args:
        reference: Reference signal providing the target level
        degraded: Signal to rescale

    Returns:
        Level-matched degraded signal
    """
    ref_rms = compute_rms(reference.samples)
    deg_rms = compute_rms(degraded.samples)

    if deg_rms == 0:
        logger.debug("Degraded signal is silent, skipping level matching")
        return degraded

    gain = ref_rms / deg_rms
    logger.debug(f"Level matching gain: {20 * np.log10(gain) if gain > 0 else -np.inf:.2f} dB")
    return degraded.with_samples(degraded.samples * gain)
