import numpy as np
import pytest

from visqol.config import DEFAULT_CONFIG
from visqol.spectrogram import (
    AnalysisWindow,
    GammatoneFilterBank,
    Spectrogram,
    SpectrogramBuilder,
    erb_space,
    prepare_spectrograms_for_comparison,
)


def test_analysis_window_layout():
    window = AnalysisWindow(16000, overlap=0.5, window_duration=0.08)

    assert window.size == 1280
    assert window.hop == 640
    assert window.hop_seconds == pytest.approx(0.04)
    assert window.num_frames(48000) == 74
    assert window.num_frames(100) == 1


def test_analysis_window_rejects_bad_overlap():
    with pytest.raises(ValueError):
        AnalysisWindow(16000, overlap=1.0)


def test_frame_rms_matches_frame_count():
    window = AnalysisWindow(16000)
    y = np.full(48000, 0.5)

    rms = window.frame_rms(y)

    assert rms.shape == (window.num_frames(48000),)
    np.testing.assert_allclose(rms, 0.5)


def test_frame_rms_pads_short_input():
    window = AnalysisWindow(16000)

    rms = window.frame_rms(np.ones((3, 100)))

    assert rms.shape == (3, 1)


def test_erb_space_is_ascending_within_bounds():
    cf = erb_space(50.0, 8000.0, 32)

    assert len(cf) == 32
    assert np.all(np.diff(cf) > 0)
    assert cf[0] == pytest.approx(50.0)
    assert cf[-1] < 8000.0


def test_filter_bank_clamps_to_nyquist():
    bank = GammatoneFilterBank(16000, 32, 50.0, 24000.0)

    assert bank.center_freqs[-1] < 8000.0


def test_filter_bank_rejects_inverted_range():
    with pytest.raises(ValueError):
        GammatoneFilterBank(8000, 32, 5000.0, 8000.0)


def test_filter_bank_band_responds_to_its_frequency():
    sample_rate = 16000
    bank = GammatoneFilterBank(sample_rate, 32, 50.0, 8000.0)
    target = int(np.argmin(np.abs(bank.center_freqs - 1000.0)))
    t = np.arange(sample_rate) / sample_rate

    outputs = bank.apply(np.sin(2 * np.pi * bank.center_freqs[target] * t))
    energy = np.sum(outputs[:, sample_rate // 2:] ** 2, axis=1)

    assert outputs.shape == (32, sample_rate)
    assert int(np.argmax(energy)) == target


def test_builder_shape(speech_signal):
    builder = SpectrogramBuilder(
        DEFAULT_CONFIG.NUM_BANDS_SPEECH, DEFAULT_CONFIG.MAX_FREQ_SPEECH
    )

    spec = builder.build(speech_signal)
    window = builder.window_for(speech_signal.sample_rate)

    assert spec.num_bands == 32
    assert spec.num_frames == window.num_frames(len(speech_signal))
    assert spec.hop_seconds == pytest.approx(0.04)
    assert spec.frame_to_seconds(10) == pytest.approx(0.4)
    assert np.all(spec.data >= 0)


def test_to_db_floors_zero_power():
    spec = Spectrogram(np.array([[0.0, 1.0, 10.0]]), np.array([100.0]), 0.04)

    db = spec.to_db()

    np.testing.assert_allclose(db.data, [[-200.0, 0.0, 20.0]])


def test_prepare_applies_shared_floor():
    cf = np.array([100.0, 200.0])
    ref = Spectrogram(np.array([[1.0, 1e-6], [0.1, 0.01]]), cf, 0.04)
    deg = Spectrogram(np.array([[0.5, 0.0], [0.1, 2.0]]), cf, 0.04)

    ref_p, deg_p = prepare_spectrograms_for_comparison(ref, deg, noise_floor_db=45.0)

    # Reference peak is 0 dB, so the floor is -45 dB and shifts to zero
    assert ref_p.data.min() == pytest.approx(0.0)
    assert ref_p.data.max() == pytest.approx(45.0)
    assert deg_p.data[0, 1] == pytest.approx(0.0)
    assert deg_p.data[1, 1] == pytest.approx(45.0 + 20 * np.log10(2.0))
    assert ref_p.data.shape == ref.data.shape


def test_prepare_is_shift_invariant_for_identical_input(speech_signal):
    builder = SpectrogramBuilder(32, 8000.0)
    spec = builder.build(speech_signal)

    ref_p, deg_p = prepare_spectrograms_for_comparison(spec, spec)

    np.testing.assert_array_equal(ref_p.data, deg_p.data)
    assert ref_p.data.min() >= 0.0
