"""
Comparison Patch Selector
=========================

For each reference patch, search a bounded window of the degraded
spectrogram for the most similar patch.

Features:
- Exhaustive search over start offsets within +/- search_window frames
- Deterministic tie-breaking (closest in time, then earliest)
- Optional thread-pool scoring with order-preserving collection
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import List

import numpy as np
from tqdm import tqdm

from .nsim import NeurogramSimilarityIndexMeasure
from .patches import Patch
from .spectrogram import Spectrogram

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PatchMatch:
    """Reference patch paired with its best degraded patch"""
    reference_patch: Patch
    degraded_patch: Patch
    similarity: float
    band_similarity: np.ndarray

    @property
    def offset_frames(self) -> int:
        """Degraded start minus reference start"""
        return self.degraded_patch.start_frame - self.reference_patch.start_frame


class ComparisonPatchesSelector:
    """
    Windowed best-match search between reference patches and a degraded
    spectrogram.
    """

    def __init__(self, similarity_measure: NeurogramSimilarityIndexMeasure = None,
                 n_workers: int = 1,
                 show_progress: bool = False):
        """
        Initialize selector.

        Args:
            similarity_measure: Patch similarity measure (NSIM)
            n_workers: Threads used to score reference patches; 1 = sequential
            show_progress: Show a progress bar while scoring
        """
        self.similarity_measure = similarity_measure or NeurogramSimilarityIndexMeasure()
        self.n_workers = max(1, int(n_workers))
        self.show_progress = show_progress

    def select_best_match(self, reference_patch: Patch,
                          degraded_spectrogram: Spectrogram,
                          search_window: int) -> PatchMatch:
        """
        Find the degraded patch most similar to a reference patch.

        Candidates start within ``search_window`` frames of the reference
        start, clamped to the spectrogram. Ties go to the candidate closest
        to the reference position, then to the earliest one.

        Args:
            reference_patch: Patch cut from the reference spectrogram
            degraded_spectrogram: Prepared degraded spectrogram
            search_window: Search radius in frames (0 = same position only)

        Returns:
            PatchMatch for the best candidate
        """
        if search_window < 0:
            raise ValueError(f"Search window must be non-negative, got {search_window}")

        width = reference_patch.width
        num_frames = degraded_spectrogram.num_frames
        if num_frames < width:
            raise ValueError(
                f"Degraded spectrogram has {num_frames} frames, "
                f"fewer than the patch width {width}"
            )

        nominal = reference_patch.start_frame
        first = max(0, nominal - search_window)
        last = min(num_frames - width, nominal + search_window)
        if first > last:
            # Reference start beyond the degraded range: compare at the edge
            first = last = min(max(nominal, 0), num_frames - width)

        best = None
        for start in range(first, last + 1):
            candidate = degraded_spectrogram.data[:, start:start + width]
            score, band_means = self.similarity_measure.measure(
                reference_patch.data, candidate
            )
            key = (score, -abs(start - nominal), -start)
            if best is None or key > best[0]:
                best = (key, start, score, band_means)

        _, start, score, band_means = best
        degraded_patch = Patch(start, degraded_spectrogram.data[:, start:start + width].copy())
        return PatchMatch(reference_patch, degraded_patch, score, band_means)

    def find_most_optimal_deg_patches(self, reference_patches: List[Patch],
                                      degraded_spectrogram: Spectrogram,
                                      search_window: int) -> List[PatchMatch]:
        """
        Match every reference patch.

        Args:
            reference_patches: Patches in reference time order
            degraded_spectrogram: Prepared degraded spectrogram
            search_window: Search radius in frames

        Returns:
            One PatchMatch per reference patch, in reference order
        """
        if self.n_workers == 1 or len(reference_patches) < 2:
            return self._select_sequential(reference_patches, degraded_spectrogram, search_window)
        return self._select_parallel(reference_patches, degraded_spectrogram, search_window)

    def _select_sequential(self, reference_patches: List[Patch],
                           degraded_spectrogram: Spectrogram,
                           search_window: int) -> List[PatchMatch]:
        iterator = reference_patches
        if self.show_progress:
            iterator = tqdm(reference_patches, desc="Matching patches")

        return [
            self.select_best_match(patch, degraded_spectrogram, search_window)
            for patch in iterator
        ]

    def _select_parallel(self, reference_patches: List[Patch],
                         degraded_spectrogram: Spectrogram,
                         search_window: int) -> List[PatchMatch]:
        matches: List[PatchMatch] = [None] * len(reference_patches)

        with ThreadPoolExecutor(max_workers=self.n_workers) as executor:
            future_to_index = {
                executor.submit(self.select_best_match, patch,
                                degraded_spectrogram, search_window): idx
                for idx, patch in enumerate(reference_patches)
            }

            iterator = as_completed(future_to_index)
            if self.show_progress:
                iterator = tqdm(iterator, total=len(future_to_index), desc="Matching patches")

            for future in iterator:
                # Re-raises the first worker failure
                matches[future_to_index[future]] = future.result()

        logger.debug(f"Matched {len(matches)} patches with {self.n_workers} workers")
        return matches
