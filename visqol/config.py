"""
Pipeline Configuration Module
=============================

FROZEN calibration constants and variant settings.
DO NOT MODIFY without version bump and a re-run of the anchor recordings.

All settings are deterministic for reproducibility.
"""

import hashlib
import json
from dataclasses import dataclass, asdict
from typing import Dict, Union

# ============================================================================
# FROZEN CALIBRATION PARAMETERS - DO NOT MODIFY
# ============================================================================

@dataclass(frozen=True)
class VisqolConfig:
    """
    Frozen configuration of the similarity pipeline.

    Patch sizes, filter bank layout and thresholds were calibrated against
    listener data together with the speech mapping; changing any of them
    invalidates recorded MOS-LQO values.
    """
    # Patch widths in analysis frames
    PATCH_SIZE_AUDIO: int = 20            # voice-activity (wideband) patches
    PATCH_SIZE_SPEECH: int = 30           # uniform-grid (fullband) patches

    # Gammatone filter bank
    NUM_BANDS_SPEECH: int = 32
    NUM_BANDS_AUDIO: int = 32
    MINIMUM_FREQ: float = 50.0            # Hz, lowest centre frequency
    MAX_FREQ_SPEECH: float = 8000.0       # Hz, wideband ceiling
    MAX_FREQ_AUDIO: float = 24000.0       # Hz, fullband ceiling

    # Analysis window
    WINDOW_DURATION: float = 0.08         # seconds
    OVERLAP: float = 0.5                  # fraction of window shared by frames

    # Input validation
    DURATION_MISMATCH_TOLERANCE: float = 1.0   # seconds, warning only

    # Alignment
    MIN_ALIGNMENT_CORRELATION: float = 0.05    # normalized envelope xcorr peak

    # Spectrogram preparation
    NOISE_FLOOR_RELATIVE_DB: float = 45.0      # dB below reference peak

    # Voice activity detection
    VAD_ABSOLUTE_FLOOR_DB: float = -70.0       # dBFS, frames below are silent
    VAD_RELATIVE_RANGE_DB: float = 40.0        # dB below loudest frame

    # NSIM
    NSIM_INTENSITY_RANGE: float = 1.0

    # Patch search radius used when callers do not pick one
    DEFAULT_SEARCH_WINDOW: int = 60

    # Version tracking
    CONFIG_VERSION: str = "1.0.0"

    @property
    def config_hash(self) -> str:
        """Deterministic hash of the frozen parameters"""
        config_str = json.dumps(asdict(self), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    def to_dict(self) -> Dict:
        """Export configuration as dictionary"""
        data = asdict(self)
        data["config_hash"] = self.config_hash
        return data


# ============================================================================
# VARIANTS
# ============================================================================

@dataclass(frozen=True)
class Wideband:
    """
    Speech mode: voice-activity patches and the closed-form speech mapping.

    Attributes:
        use_unscaled_mos_mapping: Return the raw fitted value instead of
            rescaling it into the 1-5 MOS range.
    """
    use_unscaled_mos_mapping: bool = False


@dataclass(frozen=True)
class Fullband:
    """
    Audio mode: uniform-grid patches and a trained regression model.

    Attributes:
        model_path: Path of the persisted regression model.
    """
    model_path: str


Variant = Union[Wideband, Fullband]


# ============================================================================
# DEFAULT CONFIGURATION INSTANCE
# ============================================================================

DEFAULT_CONFIG = VisqolConfig()
