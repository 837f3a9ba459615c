"""
ViSQOL-style Objective Audio Quality Pipeline
=============================================

Deterministic MOS-LQO scoring of a degraded signal against a clean
reference, without listeners.

Modules:
- config: Frozen calibration constants and Wideband/Fullband variants
- audio: Mono signal container and loading
- alignment: Global cross-correlation alignment
- spectrogram: Gammatone spectrograms and dB preparation
- patches: Voice-activity and uniform-grid patch creators
- nsim: Neurogram similarity index measure
- patch_selector: Windowed best-match search
- quality_mapper: Speech fit and regression-model mappers
- manager: End-to-end comparison
- batch: Multi-pair scoring and CSV output
"""

__version__ = "1.0.0"

from .audio import AudioSignal, load_as_mono
from .config import DEFAULT_CONFIG, Fullband, VisqolConfig, Wideband
from .errors import (
    AlignmentError,
    AudioLoadError,
    EmptyPatchSetError,
    EmptySimilarityVectorError,
    InvalidSignalError,
    ModelLoadError,
    PatchShapeError,
    SampleRateMismatchError,
    VisqolError,
)
from .manager import VisqolManager
from .results import PatchSimilarity, SimilarityResult

__all__ = [
    "AudioSignal",
    "load_as_mono",
    "DEFAULT_CONFIG",
    "VisqolConfig",
    "Wideband",
    "Fullband",
    "VisqolManager",
    "SimilarityResult",
    "PatchSimilarity",
    "VisqolError",
    "InvalidSignalError",
    "AudioLoadError",
    "SampleRateMismatchError",
    "AlignmentError",
    "EmptyPatchSetError",
    "ModelLoadError",
    "EmptySimilarityVectorError",
    "PatchShapeError",
]
