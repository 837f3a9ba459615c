"""
Shared fixtures and deterministic test signal generators.
"""

import joblib
import numpy as np
import pytest
import soundfile as sf
from sklearn.svm import SVR

from visqol.audio import AudioSignal


def _resolve_rng(rng=None, seed=None):
    if rng is not None:
        return rng
    return np.random.default_rng(seed)


def create_speech_like_signal(sample_rate=16000, duration=3.0, f0=140.0,
                              word_duration=0.35, pause_duration=0.25,
                              lead_silence=0.2, noise_floor=1e-4,
                              rng=None, seed=0):
    """
    Harmonic "words" separated by pauses.

    Each word is a harmonic series on a gliding fundamental under a Hann
    envelope; pauses carry only a very low noise floor (below the VAD
    absolute floor).

    Args:
        sample_rate: Sample rate in Hz
        duration: Duration in seconds
        f0: Base fundamental in Hz
        word_duration: Length of each voiced segment in seconds
        pause_duration: Silence between segments in seconds
        lead_silence: Silence before the first segment in seconds
        noise_floor: Amplitude of the background noise
        rng: Optional NumPy random generator
        seed: Seed used when rng is not given

    Returns:
        Zero-mean float64 array
    """
    rng = _resolve_rng(rng, seed)
    n = int(sample_rate * duration)
    t = np.arange(n) / sample_rate
    out = np.zeros(n)

    word_len = int(word_duration * sample_rate)
    step = word_len + int(pause_duration * sample_rate)
    start = int(lead_silence * sample_rate)
    word = 0
    while start + word_len <= n - int(lead_silence * sample_rate):
        seg_t = t[start:start + word_len]
        glide = f0 * (1.0 + 0.15 * np.sin(2 * np.pi * 1.5 * seg_t + word))
        phase = 2 * np.pi * np.cumsum(glide) / sample_rate
        voiced = sum(
            (0.6 / k) * np.sin(k * phase + rng.uniform(0, 2 * np.pi))
            for k in range(1, 12)
        )
        out[start:start + word_len] = voiced * np.hanning(word_len) * rng.uniform(0.5, 1.0)
        start += step
        word += 1

    out += noise_floor * rng.standard_normal(n)
    return out - np.mean(out)


def add_noise(samples, snr_db, rng=None, seed=1):
    """Add white noise at the given SNR"""
    rng = _resolve_rng(rng, seed)
    power = np.mean(samples ** 2)
    noise = rng.standard_normal(len(samples))
    noise *= np.sqrt(power / (10 ** (snr_db / 10)) / np.mean(noise ** 2))
    return samples + noise


@pytest.fixture
def speech_signal():
    return AudioSignal(create_speech_like_signal(), 16000)


@pytest.fixture
def noisy_speech_signal(speech_signal):
    return speech_signal.with_samples(add_noise(speech_signal.samples, snr_db=10))


@pytest.fixture
def write_wav(tmp_path):
    """Write samples to a WAV file under tmp_path and return its path"""
    def _write(name, samples, sample_rate=16000, subtype="FLOAT"):
        path = tmp_path / name
        sf.write(str(path), samples, sample_rate, subtype=subtype)
        return str(path)
    return _write


@pytest.fixture
def trained_model_path(tmp_path):
    """SVR fitted on synthetic summary features, persisted with joblib"""
    rng = np.random.default_rng(0)
    means = rng.uniform(0.3, 1.0, 200)
    features = np.column_stack([
        means,
        rng.uniform(0.0, 0.2, 200),
        means - 0.1,
        np.minimum(means + 0.1, 1.0),
    ])
    targets = 1.0 + 4.0 * (means - 0.3) / 0.7

    model = SVR(kernel="rbf", C=10.0, epsilon=0.05).fit(features, targets)
    path = tmp_path / "svr.joblib"
    joblib.dump(model, path)
    return str(path)
