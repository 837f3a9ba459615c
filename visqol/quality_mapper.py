"""
Similarity-to-Quality Mapping
=============================

Turn the per-patch similarity vector into a MOS-LQO.

Two mappers are provided:
- SpeechSimilarityToQualityMapper: fixed exponential fit to listener data
- SvrSimilarityToQualityMapper: opaque trained regression model (joblib)
"""

import logging
import math
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Sequence

import joblib
import numpy as np

from .errors import EmptySimilarityVectorError, ModelLoadError

logger = logging.getLogger(__name__)

# Exponential fit of mean NSIM to MOS: A + exp(B * (x - X0))
FIT_PARAMETER_A = 1.155945
FIT_PARAMETER_B = 4.68378
FIT_PARAMETER_X0 = 0.76078

MIN_MOS = 1.0
MAX_MOS = 5.0


def _as_vector(similarity_vector: Sequence[float]) -> np.ndarray:
    vector = np.asarray(similarity_vector, dtype=np.float64).ravel()
    if vector.size == 0:
        raise EmptySimilarityVectorError("Cannot map an empty similarity vector to quality")
    return vector


class SimilarityToQualityMapper(ABC):
    """Base class of the quality mappers"""

    @abstractmethod
    def predict(self, similarity_vector: Sequence[float]) -> float:
        """
        Map similarity values to a MOS-LQO.

        Raises:
            EmptySimilarityVectorError: If the vector is empty
        """


class SpeechSimilarityToQualityMapper(SimilarityToQualityMapper):
    """
    Closed-form mapping calibrated on speech listening tests.

    With ``scale_to_max_mos`` the fit is rescaled so that a perfect match
    (similarity 1.0) lands on 5.0 and the result is clamped to [1, 5];
    otherwise the raw fitted value is returned.
    """

    def __init__(self, scale_to_max_mos: bool = True):
        self.scale_to_max_mos = scale_to_max_mos
        self._scale = MAX_MOS / self.exponential_fit(1.0) if scale_to_max_mos else 1.0
        logger.info(f"SpeechSimilarityToQualityMapper initialized (scaled={scale_to_max_mos})")

    @staticmethod
    def exponential_fit(x: float) -> float:
        return FIT_PARAMETER_A + math.exp(FIT_PARAMETER_B * (x - FIT_PARAMETER_X0))

    def predict(self, similarity_vector: Sequence[float]) -> float:
        vector = _as_vector(similarity_vector)
        nsim_mean = float(np.mean(vector))
        mos = self.exponential_fit(nsim_mean)

        if self.scale_to_max_mos:
            mos = min(max(mos * self._scale, MIN_MOS), MAX_MOS)

        logger.debug(f"Mean NSIM {nsim_mean:.4f} -> MOS-LQO {mos:.4f}")
        return mos


def load_model(model_path: str) -> Any:
    """
    Load a persisted regression model.

    Args:
        model_path: Path written by joblib.dump

    Returns:
        Model object exposing ``predict``

    Raises:
        ModelLoadError: If the file is missing, unreadable or the object
            has no predict method
    """
    path = Path(model_path)
    if not path.is_file():
        raise ModelLoadError(str(model_path), "file does not exist")

    try:
        model = joblib.load(path)
    except Exception as e:
        raise ModelLoadError(str(model_path), str(e)) from e

    if not callable(getattr(model, "predict", None)):
        raise ModelLoadError(str(model_path), f"{type(model).__name__} has no predict method")

    logger.info(f"Loaded regression model {type(model).__name__} from {model_path}")
    return model


class SvrSimilarityToQualityMapper(SimilarityToQualityMapper):
    """
    Regression-model mapping.

    The model sees summary statistics of the similarity vector
    (mean, std, min, max) and its output is returned as the MOS-LQO.
    """

    NUM_FEATURES = 4

    def __init__(self, model_path: str = None, model: Any = None):
        """
        Args:
            model_path: Path of a joblib-persisted model
            model: Already loaded model (takes precedence over model_path)
        """
        if model is None:
            if model_path is None:
                raise ModelLoadError("<none>", "no model path given")
            model = load_model(model_path)
        self.model_path = model_path
        self.model = model

    @classmethod
    def feature_vector(cls, similarity_vector: Sequence[float]) -> np.ndarray:
        """
        Summary features of a similarity vector.

        Returns:
            Array of shape (1, NUM_FEATURES)
        """
        vector = _as_vector(similarity_vector)
        return np.array([[
            np.mean(vector),
            np.std(vector),
            np.min(vector),
            np.max(vector),
        ]], dtype=np.float64)

    def predict(self, similarity_vector: Sequence[float]) -> float:
        features = self.feature_vector(similarity_vector)
        prediction = np.asarray(self.model.predict(features), dtype=np.float64).ravel()
        mos = float(prediction[0])
        logger.debug(f"Regression features {features[0].round(4).tolist()} -> MOS-LQO {mos:.4f}")
        return mos
