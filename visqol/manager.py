"""
Pipeline Manager
================

Configure and run one reference/degraded comparison.

Usage:
    manager = VisqolManager(Wideband(use_unscaled_mos_mapping=False), 60)
    result = manager.run("reference.wav", "degraded.wav")
    print(result.moslqo)

Stages (strictly linear, no retries):
    load -> validate -> reference patch positions -> align -> level match
    -> spectrograms -> patches -> best-match search (NSIM) -> MOS mapping
"""

import logging
from typing import List, Tuple

import numpy as np

from .alignment import GlobalAligner
from .audio import AudioSignal, load_as_mono, scale_to_match_sound_pressure_level
from .config import VisqolConfig, DEFAULT_CONFIG, Fullband, Variant, Wideband
from .errors import AlignmentError, EmptyPatchSetError, SampleRateMismatchError
from .nsim import NeurogramSimilarityIndexMeasure
from .patch_selector import ComparisonPatchesSelector, PatchMatch
from .patches import ImagePatchCreator, PatchCreator, VadPatchCreator, extract_patches
from .quality_mapper import (
    SimilarityToQualityMapper,
    SpeechSimilarityToQualityMapper,
    SvrSimilarityToQualityMapper,
)
from .results import PatchSimilarity, SimilarityResult
from .spectrogram import SpectrogramBuilder, prepare_spectrograms_for_comparison

logger = logging.getLogger(__name__)


class VisqolManager:
    """
    Owns the patch creator, patch selector and quality mapper of one
    variant. Reusable across comparisons; nothing changes after
    construction.
    """

    def __init__(self, variant: Variant,
                 search_window: int = None,
                 config: VisqolConfig = None,
                 n_workers: int = 1,
                 show_progress: bool = False):
        """
        Initialize manager.

        Args:
            variant: Wideband (speech) or Fullband (audio) configuration
            search_window: Patch search radius in frames
            config: VisqolConfig instance
            n_workers: Threads used for patch matching
            show_progress: Show a progress bar while matching

        Raises:
            ModelLoadError: If the Fullband model cannot be loaded
        """
        self.config = config or DEFAULT_CONFIG
        if search_window is None:
            search_window = self.config.DEFAULT_SEARCH_WINDOW
        if search_window < 0:
            raise ValueError(f"Search window must be non-negative, got {search_window}")

        self.variant = variant
        self.search_window = int(search_window)

        if isinstance(variant, Wideband):
            self.patch_creator: PatchCreator = VadPatchCreator(
                self.config.PATCH_SIZE_AUDIO, self.config
            )
            self.quality_mapper: SimilarityToQualityMapper = SpeechSimilarityToQualityMapper(
                scale_to_max_mos=not variant.use_unscaled_mos_mapping
            )
            self.spectrogram_builder = SpectrogramBuilder(
                self.config.NUM_BANDS_SPEECH, self.config.MAX_FREQ_SPEECH, self.config
            )
        elif isinstance(variant, Fullband):
            self.patch_creator = ImagePatchCreator(self.config.PATCH_SIZE_SPEECH, self.config)
            self.quality_mapper = SvrSimilarityToQualityMapper(variant.model_path)
            self.spectrogram_builder = SpectrogramBuilder(
                self.config.NUM_BANDS_AUDIO, self.config.MAX_FREQ_AUDIO, self.config
            )
        else:
            raise TypeError(f"Unsupported variant: {variant!r}")

        self.aligner = GlobalAligner(self.config)
        self.patch_selector = ComparisonPatchesSelector(
            NeurogramSimilarityIndexMeasure(intensity_range=self.config.NSIM_INTENSITY_RANGE),
            n_workers=n_workers,
            show_progress=show_progress,
        )

        logger.info(
            f"VisqolManager initialized ({type(variant).__name__}, "
            f"search_window={self.search_window}, config v{self.config.CONFIG_VERSION})"
        )

    def run(self, ref_signal_path: str, deg_signal_path: str) -> SimilarityResult:
        """
        Load two audio files and compute the MOS-LQO of the degraded one.

        Args:
            ref_signal_path: Reference (clean) audio file
            deg_signal_path: Degraded audio file

        Returns:
            SimilarityResult

        Raises:
            AudioLoadError: If either file cannot be decoded
            SampleRateMismatchError, AlignmentError, EmptyPatchSetError:
                See compute_results
        """
        ref_signal = load_as_mono(ref_signal_path)
        deg_signal = load_as_mono(deg_signal_path)
        return self.compute_results(ref_signal, deg_signal)

    def compute_results(self, ref_signal: AudioSignal,
                        deg_signal: AudioSignal) -> SimilarityResult:
        """
        Compare two loaded signals.

        Input validation runs first, so a sample-rate mismatch is reported
        before any alignment or scoring work.

        Args:
            ref_signal: Reference signal
            deg_signal: Degraded signal

        Returns:
            SimilarityResult

        Raises:
            SampleRateMismatchError: Signals use different sample rates
            EmptyPatchSetError: Reference yields no patches
            AlignmentError: No usable correlation peak
        """
        self.validate_input_audio(ref_signal, deg_signal)

        patch_indices = self.patch_creator.create_patch_indices(ref_signal)
        if not patch_indices:
            raise EmptyPatchSetError(
                f"{type(self.patch_creator).__name__} produced no patches "
                f"for a {ref_signal.duration:.2f}s reference"
            )

        alignment = self.aligner.align(ref_signal, deg_signal)
        if alignment is None:
            raise AlignmentError("Failed to align degraded signal to reference")
        aligned_deg, lag = alignment

        aligned_deg = scale_to_match_sound_pressure_level(ref_signal, aligned_deg)

        ref_spec, deg_spec = prepare_spectrograms_for_comparison(
            self.spectrogram_builder.build(ref_signal),
            self.spectrogram_builder.build(aligned_deg),
            self.config.NOISE_FLOOR_RELATIVE_DB,
        )

        reference_patches = extract_patches(
            ref_spec, patch_indices, self.patch_creator.patch_size
        )
        matches = self.patch_selector.find_most_optimal_deg_patches(
            reference_patches, deg_spec, self.search_window
        )

        similarities = [m.similarity for m in matches]
        moslqo = self.quality_mapper.predict(similarities)
        fvnsim, fstdnsim = self._band_statistics(matches)

        logger.info(
            f"MOS-LQO {moslqo:.3f} from {len(matches)} patches "
            f"(lag {lag} samples)"
        )

        return SimilarityResult(
            moslqo=float(moslqo),
            vnsim=float(np.mean(similarities)),
            per_patch_similarities=tuple(similarities),
            fvnsim=fvnsim,
            fstdnsim=fstdnsim,
            patch_sims=tuple(
                self._patch_similarity(m, ref_spec.hop_seconds) for m in matches
            ),
            alignment_lag=int(lag),
            alignment_lag_seconds=lag / ref_signal.sample_rate,
            center_freq_bands=ref_spec.center_freqs,
        )

    def validate_input_audio(self, ref_signal: AudioSignal,
                             deg_signal: AudioSignal) -> None:
        """
        Sanity checks run before any alignment or scoring.

        Raises:
            SampleRateMismatchError: If the sample rates differ
        """
        if ref_signal.sample_rate != deg_signal.sample_rate:
            raise SampleRateMismatchError(ref_signal.sample_rate, deg_signal.sample_rate)

        if abs(ref_signal.duration - deg_signal.duration) > self.config.DURATION_MISMATCH_TOLERANCE:
            logger.warning(
                f"Mismatch in duration between reference and degraded signal. "
                f"Reference is {ref_signal.duration:.2f} seconds. "
                f"Degraded is {deg_signal.duration:.2f} seconds."
            )

    @staticmethod
    def _band_statistics(matches: List[PatchMatch]) -> Tuple[np.ndarray, np.ndarray]:
        bands = np.stack([m.band_similarity for m in matches])
        return np.mean(bands, axis=0), np.std(bands, axis=0)

    @staticmethod
    def _patch_similarity(match: PatchMatch, hop_seconds: float) -> PatchSimilarity:
        ref_start = match.reference_patch.start_frame
        deg_start = match.degraded_patch.start_frame
        return PatchSimilarity(
            ref_patch_start_frame=ref_start,
            deg_patch_start_frame=deg_start,
            ref_patch_start_time=ref_start * hop_seconds,
            deg_patch_start_time=deg_start * hop_seconds,
            similarity=match.similarity,
        )
