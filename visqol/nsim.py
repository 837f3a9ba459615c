"""
Neurogram Similarity Index Measure
==================================

Structural similarity between two spectrogram patches.

Local statistics are taken under a small Gaussian window and combined as
the product of three terms:
- luminance: agreement of local means
- contrast: agreement of local standard deviations
- structure: local correlation

Edges are handled by symmetric extension so the map keeps the patch
shape. The index map is averaged over the patch to a single score in [-1, 1],
and along time to a per-band profile.
"""

import logging
from typing import Tuple

import numpy as np
from scipy import signal

from .errors import PatchShapeError

logger = logging.getLogger(__name__)


def gaussian_window(size: int = 3, sigma: float = 0.5) -> np.ndarray:
    """Normalized 2-D Gaussian window"""
    coords = np.arange(size) - (size - 1) / 2.0
    g = np.exp(-(coords ** 2) / (2.0 * sigma ** 2))
    window = np.outer(g, g)
    return window / window.sum()


class NeurogramSimilarityIndexMeasure:
    """
    NSIM over auditory time-frequency patches.

    Usage:
        nsim = NeurogramSimilarityIndexMeasure()
        score = nsim.similarity(ref_patch.data, deg_patch.data)
    """

    def __init__(self, intensity_range: float = 1.0,
                 k1: float = 0.01, k2: float = 0.03,
                 window_size: int = 3, sigma: float = 0.5):
        """
        Args:
            intensity_range: Dynamic range L of the patch values
            k1: Luminance stabilizer factor, C1 = (k1 * L)^2
            k2: Contrast stabilizer factor, C2 = (k2 * L)^2
            window_size: Side of the Gaussian window
            sigma: Standard deviation of the Gaussian window
        """
        self.intensity_range = intensity_range
        self.c1 = (k1 * intensity_range) ** 2
        self.c2 = (k2 * intensity_range) ** 2
        self.c3 = self.c2 / 2.0
        self.window = gaussian_window(window_size, sigma)

    def _filter(self, x: np.ndarray) -> np.ndarray:
        return signal.convolve2d(x, self.window, mode='same', boundary='symm')

    def similarity_map(self, ref: np.ndarray, deg: np.ndarray) -> np.ndarray:
        """
        Per-position NSIM values.

        Raises:
            PatchShapeError: If the patches differ in shape
        """
        ref = np.asarray(ref, dtype=np.float64)
        deg = np.asarray(deg, dtype=np.float64)
        if ref.shape != deg.shape:
            raise PatchShapeError(
                f"Patch shapes differ: reference {ref.shape}, degraded {deg.shape}"
            )
        if ref.ndim != 2:
            raise PatchShapeError(f"Patches must be 2-D, got shape {ref.shape}")

        mu_r = self._filter(ref)
        mu_d = self._filter(deg)
        mu_r_sq = mu_r * mu_r
        mu_d_sq = mu_d * mu_d
        mu_rd = mu_r * mu_d

        var_r = np.maximum(self._filter(ref * ref) - mu_r_sq, 0.0)
        var_d = np.maximum(self._filter(deg * deg) - mu_d_sq, 0.0)
        cov_rd = self._filter(ref * deg) - mu_rd
        sigma_r = np.sqrt(var_r)
        sigma_d = np.sqrt(var_d)

        luminance = (2.0 * mu_rd + self.c1) / (mu_r_sq + mu_d_sq + self.c1)
        contrast = (2.0 * sigma_r * sigma_d + self.c2) / (var_r + var_d + self.c2)
        structure = (cov_rd + self.c3) / (sigma_r * sigma_d + self.c3)

        return luminance * contrast * structure

    def measure(self, ref: np.ndarray, deg: np.ndarray) -> Tuple[float, np.ndarray]:
        """
        Compute the patch score and its per-band profile.

        Args:
            ref: Reference patch (bands x frames)
            deg: Degraded patch, same shape

        Returns:
            Tuple of (similarity, band_means)
        """
        sim_map = self.similarity_map(ref, deg)
        score = float(np.clip(np.mean(sim_map), -1.0, 1.0))
        band_means = np.clip(np.mean(sim_map, axis=1), -1.0, 1.0)
        return score, band_means

    def similarity(self, ref: np.ndarray, deg: np.ndarray) -> float:
        """NSIM score of two same-shaped patches"""
        return self.measure(ref, deg)[0]
