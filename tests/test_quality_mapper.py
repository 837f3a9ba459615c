import math

import joblib
import numpy as np
import pytest

from visqol.errors import EmptySimilarityVectorError, ModelLoadError
from visqol.quality_mapper import (
    FIT_PARAMETER_A,
    FIT_PARAMETER_B,
    FIT_PARAMETER_X0,
    SpeechSimilarityToQualityMapper,
    SvrSimilarityToQualityMapper,
    load_model,
)


def test_perfect_similarity_maps_to_five():
    mapper = SpeechSimilarityToQualityMapper()

    assert mapper.predict([1.0, 1.0, 1.0]) == pytest.approx(5.0)


def test_scaled_output_stays_in_mos_range():
    mapper = SpeechSimilarityToQualityMapper()
    scale = 5.0 / SpeechSimilarityToQualityMapper.exponential_fit(1.0)

    lowest = mapper.predict([-1.0])

    assert 1.0 <= lowest < 1.5
    assert lowest == pytest.approx(SpeechSimilarityToQualityMapper.exponential_fit(-1.0) * scale)
    assert 1.0 <= mapper.predict([0.5, 0.6]) <= 5.0


def test_scaled_mapping_is_monotonic():
    mapper = SpeechSimilarityToQualityMapper()
    values = [mapper.predict([x]) for x in np.linspace(0.6, 1.0, 9)]

    assert values == sorted(values)


def test_unscaled_mapping_returns_raw_fit():
    mapper = SpeechSimilarityToQualityMapper(scale_to_max_mos=False)
    expected = FIT_PARAMETER_A + math.exp(FIT_PARAMETER_B * (0.8 - FIT_PARAMETER_X0))

    assert mapper.predict([0.7, 0.9]) == pytest.approx(expected)
    assert mapper.predict([1.0]) == pytest.approx(
        SpeechSimilarityToQualityMapper.exponential_fit(1.0)
    )


def test_speech_mapper_rejects_empty_vector():
    with pytest.raises(EmptySimilarityVectorError):
        SpeechSimilarityToQualityMapper().predict([])


def test_feature_vector():
    features = SvrSimilarityToQualityMapper.feature_vector([0.5, 1.0])

    assert features.shape == (1, SvrSimilarityToQualityMapper.NUM_FEATURES)
    np.testing.assert_allclose(features[0], [0.75, 0.25, 0.5, 1.0])


def test_svr_mapper_uses_trained_model(trained_model_path):
    mapper = SvrSimilarityToQualityMapper(trained_model_path)

    good = mapper.predict([0.95, 0.97, 0.99])
    bad = mapper.predict([0.4, 0.45, 0.5])

    assert isinstance(good, float)
    assert good > bad


def test_svr_mapper_accepts_loaded_model():
    class ConstantModel:
        def predict(self, features):
            assert features.shape == (1, 4)
            return np.array([3.25])

    assert SvrSimilarityToQualityMapper(model=ConstantModel()).predict([0.8]) == 3.25


def test_svr_mapper_rejects_empty_vector():
    class ConstantModel:
        def predict(self, features):
            return np.array([3.0])

    with pytest.raises(EmptySimilarityVectorError):
        SvrSimilarityToQualityMapper(model=ConstantModel()).predict([])


def test_missing_model_file(tmp_path):
    with pytest.raises(ModelLoadError) as excinfo:
        SvrSimilarityToQualityMapper(str(tmp_path / "missing.joblib"))

    assert "missing.joblib" in str(excinfo.value)


def test_no_model_given():
    with pytest.raises(ModelLoadError):
        SvrSimilarityToQualityMapper()


def test_corrupt_model_file(tmp_path):
    path = tmp_path / "corrupt.joblib"
    path.write_bytes(b"not a pickle")

    with pytest.raises(ModelLoadError):
        load_model(str(path))


def test_object_without_predict(tmp_path):
    path = tmp_path / "dict.joblib"
    joblib.dump({"weights": [1, 2, 3]}, path)

    with pytest.raises(ModelLoadError) as excinfo:
        load_model(str(path))

    assert "predict" in str(excinfo.value)
