"""
Similarity Results
==================

Immutable outcome of one reference/degraded comparison.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import numpy as np


@dataclass(frozen=True)
class PatchSimilarity:
    """Diagnostics of one matched patch pair"""
    ref_patch_start_frame: int
    deg_patch_start_frame: int
    ref_patch_start_time: float
    deg_patch_start_time: float
    similarity: float

    def to_dict(self) -> Dict:
        return {
            "ref_patch_start_frame": self.ref_patch_start_frame,
            "deg_patch_start_frame": self.deg_patch_start_frame,
            "ref_patch_start_time": self.ref_patch_start_time,
            "deg_patch_start_time": self.deg_patch_start_time,
            "similarity": self.similarity,
        }


@dataclass(frozen=True, eq=False)
class SimilarityResult:
    """
    Result of one comparison.

    Attributes:
        moslqo: Predicted MOS-LQO
        vnsim: Mean similarity over all patches
        per_patch_similarities: Similarity of each patch, reference time order
        fvnsim: Mean similarity per frequency band
        fstdnsim: Standard deviation per frequency band across patches
        patch_sims: Per-patch positions and scores
        alignment_lag: Lag applied to the degraded signal, in samples
        alignment_lag_seconds: Same lag in seconds
        center_freq_bands: Centre frequency of each band in Hz
    """
    moslqo: float
    vnsim: float
    per_patch_similarities: Tuple[float, ...]
    fvnsim: np.ndarray
    fstdnsim: np.ndarray
    patch_sims: Tuple[PatchSimilarity, ...]
    alignment_lag: int
    alignment_lag_seconds: float
    center_freq_bands: np.ndarray = field(default_factory=lambda: np.zeros(0))

    @property
    def num_patches(self) -> int:
        return len(self.per_patch_similarities)

    def to_dict(self) -> Dict:
        return {
            "moslqo": self.moslqo,
            "vnsim": self.vnsim,
            "num_patches": self.num_patches,
            "per_patch_similarities": list(self.per_patch_similarities),
            "fvnsim": self.fvnsim.tolist(),
            "fstdnsim": self.fstdnsim.tolist(),
            "patch_sims": [p.to_dict() for p in self.patch_sims],
            "alignment_lag": self.alignment_lag,
            "alignment_lag_seconds": self.alignment_lag_seconds,
            "center_freq_bands": self.center_freq_bands.tolist(),
        }

    def patch_rows(self) -> List[Dict]:
        """Flatten patch diagnostics for CSV export"""
        return [p.to_dict() for p in self.patch_sims]
