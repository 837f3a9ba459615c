import numpy as np
import pytest

from visqol.alignment import GlobalAligner, globally_align
from visqol.audio import AudioSignal
from visqol.config import VisqolConfig


def test_recovers_delay_of_silence_padded_copy(speech_signal):
    delay = 800
    delayed = speech_signal.with_samples(
        np.concatenate([np.zeros(delay), speech_signal.samples])
    )

    aligned, lag = globally_align(speech_signal, delayed)

    assert lag == delay
    assert len(aligned) == len(speech_signal)
    np.testing.assert_allclose(aligned.samples, speech_signal.samples)


def test_recovers_advance_and_pads_front(speech_signal):
    advance = 400
    early = speech_signal.with_samples(speech_signal.samples[advance:])

    aligned, lag = globally_align(speech_signal, early)

    assert lag == -advance
    assert len(aligned) == len(speech_signal)
    assert np.all(aligned.samples[:advance] == 0.0)
    np.testing.assert_allclose(aligned.samples[advance:], speech_signal.samples[advance:])


def test_identical_signals_have_zero_lag(speech_signal):
    aligned, lag = globally_align(speech_signal, speech_signal)

    assert lag == 0
    np.testing.assert_array_equal(aligned.samples, speech_signal.samples)


def test_longer_degraded_is_trimmed_to_reference_length(speech_signal):
    longer = speech_signal.with_samples(
        np.concatenate([speech_signal.samples, np.zeros(3000)])
    )

    aligned, lag = globally_align(speech_signal, longer)

    assert lag == 0
    assert len(aligned) == len(speech_signal)


def test_silent_signals_fail_to_align(speech_signal):
    silent = AudioSignal(np.zeros(len(speech_signal)), speech_signal.sample_rate)

    assert globally_align(silent, silent) is None
    assert globally_align(speech_signal, silent) is None
    assert globally_align(silent, speech_signal) is None


def test_weak_peak_fails_with_strict_threshold(speech_signal):
    aligner = GlobalAligner(VisqolConfig(MIN_ALIGNMENT_CORRELATION=1.5))

    assert aligner.align(speech_signal, speech_signal) is None


def test_cross_correlate_prefers_smallest_lag_on_ties():
    aligner = GlobalAligner()

    lag, peak = aligner.cross_correlate(np.array([1.0]), np.array([1.0, 1.0]))

    assert lag == 0
    assert peak == pytest.approx(1.0 / np.sqrt(2.0))


def test_cross_correlate_without_energy():
    lag, peak = GlobalAligner().cross_correlate(np.zeros(10), np.ones(10))

    assert (lag, peak) == (0, 0.0)


@pytest.mark.parametrize("lag, expected", [
    (0, [1.0, 2.0, 3.0, 0.0]),
    (1, [2.0, 3.0, 0.0, 0.0]),
    (-2, [0.0, 0.0, 1.0, 2.0]),
])
def test_apply_lag(lag, expected):
    shifted = GlobalAligner.apply_lag(np.array([1.0, 2.0, 3.0]), lag, 4)

    np.testing.assert_array_equal(shifted, expected)


def test_upper_envelope_of_sine_is_flat():
    t = np.arange(16000) / 16000
    env = GlobalAligner.upper_envelope(0.5 * np.sin(2 * np.pi * 500 * t))

    # Away from the edges the envelope equals the amplitude
    np.testing.assert_allclose(env[2000:-2000], 0.5, atol=1e-2)
