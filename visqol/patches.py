"""
Patch Creation Module
=====================

Cut the reference spectrogram into fixed-size patches for comparison.

Two creators are provided:
- VadPatchCreator: patches placed on runs of voice activity (speech mode)
- ImagePatchCreator: gap-free uniform grid (full-band audio mode)

Patch positions depend only on the reference signal, so they can be
computed before alignment and before any spectrogram is built.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .audio import AudioSignal
from .config import VisqolConfig, DEFAULT_CONFIG
from .spectrogram import AnalysisWindow, Spectrogram

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Patch:
    """Fixed-size excerpt of a spectrogram (bands x frames)"""
    start_frame: int
    data: np.ndarray

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def height(self) -> int:
        return self.data.shape[0]

    @property
    def end_frame(self) -> int:
        return self.start_frame + self.width


def extract_patches(spectrogram: Spectrogram,
                    indices: List[int],
                    patch_size: int) -> List[Patch]:
    """
    Copy patches out of a spectrogram.

    Args:
        spectrogram: Source spectrogram
        indices: Start frames
        patch_size: Patch width in frames

    Returns:
        One Patch per start frame, in the given order
    """
    patches = []
    for start in indices:
        if start < 0 or start + patch_size > spectrogram.num_frames:
            raise IndexError(
                f"Patch [{start}, {start + patch_size}) outside spectrogram "
                f"of {spectrogram.num_frames} frames"
            )
        patches.append(Patch(start, spectrogram.data[:, start:start + patch_size].copy()))
    return patches


class PatchCreator(ABC):
    """
    Base class of the patch creators.
    """

    def __init__(self, patch_size: int, config: VisqolConfig = None):
        if patch_size <= 0:
            raise ValueError(f"Patch size must be positive, got {patch_size}")
        self.patch_size = patch_size
        self.config = config or DEFAULT_CONFIG

    def window_for(self, sample_rate: int) -> AnalysisWindow:
        return AnalysisWindow(
            sample_rate,
            overlap=self.config.OVERLAP,
            window_duration=self.config.WINDOW_DURATION,
        )

    @abstractmethod
    def create_patch_indices(self, audio: AudioSignal) -> List[int]:
        """Start frames of the patches for a reference signal"""

    def create_patches(self, audio: AudioSignal,
                       spectrogram: Spectrogram) -> List[Patch]:
        """
        Create the reference patches.

        Args:
            audio: Reference signal the spectrogram was built from
            spectrogram: Prepared reference spectrogram

        Returns:
            Patches in time order (empty when nothing qualifies)
        """
        indices = self.create_patch_indices(audio)
        return extract_patches(spectrogram, indices, self.patch_size)


class ImagePatchCreator(PatchCreator):
    """
    Uniform grid: patches back to back from frame 0 while a full patch fits.
    """

    def create_patch_indices(self, audio: AudioSignal) -> List[int]:
        num_frames = self.window_for(audio.sample_rate).num_frames(len(audio))
        indices = list(range(0, num_frames - self.patch_size + 1, self.patch_size))
        logger.debug(f"Uniform grid: {len(indices)} patches over {num_frames} frames")
        return indices


class VoiceActivityDetector:
    """
    Energy-based frame classifier.

    A frame is active when its RMS level is above an absolute floor and
    within a fixed range of the loudest frame.
    """

    def __init__(self, absolute_floor_db: float = -70.0,
                 relative_range_db: float = 40.0):
        self.absolute_floor_db = absolute_floor_db
        self.relative_range_db = relative_range_db

    def frame_levels_db(self, audio: AudioSignal, window: AnalysisWindow) -> np.ndarray:
        rms = window.frame_rms(audio.samples)
        with np.errstate(divide='ignore'):
            return 20.0 * np.log10(rms)

    def detect(self, audio: AudioSignal, window: AnalysisWindow) -> np.ndarray:
        """
        Classify every analysis frame.

        Args:
            audio: Signal to classify
            window: Frame layout

        Returns:
            Boolean array, True for active frames
        """
        levels = self.frame_levels_db(audio, window)
        peak = np.max(levels)
        if not np.isfinite(peak):
            return np.zeros(len(levels), dtype=bool)

        threshold = max(self.absolute_floor_db, peak - self.relative_range_db)
        return levels > threshold

    @staticmethod
    def active_runs(activity: np.ndarray) -> List[Tuple[int, int]]:
        """
        Runs of contiguous active frames.

        Returns:
            List of (start, stop) frame pairs, stop exclusive
        """
        padded = np.concatenate([[False], activity, [False]]).astype(np.int8)
        edges = np.diff(padded)
        starts = np.flatnonzero(edges == 1)
        stops = np.flatnonzero(edges == -1)
        return list(zip(starts.tolist(), stops.tolist()))


class VadPatchCreator(PatchCreator):
    """
    Patches centred on runs of voice activity.

    A run shorter than a patch gets one patch centred on it; a longer run
    is tiled with back-to-back patches whose block is centred on the run.
    Inactive frames never produce patches.
    """

    def __init__(self, patch_size: int, config: VisqolConfig = None):
        super().__init__(patch_size, config)
        self.vad = VoiceActivityDetector(
            absolute_floor_db=self.config.VAD_ABSOLUTE_FLOOR_DB,
            relative_range_db=self.config.VAD_RELATIVE_RANGE_DB,
        )

    def _run_starts(self, start: int, stop: int) -> List[int]:
        length = stop - start
        count = max(1, length // self.patch_size)
        first = start + (length - count * self.patch_size) // 2
        return [first + i * self.patch_size for i in range(count)]

    def create_patch_indices(self, audio: AudioSignal) -> List[int]:
        window = self.window_for(audio.sample_rate)
        activity = self.vad.detect(audio, window)
        num_frames = len(activity)

        if num_frames < self.patch_size:
            logger.warning(
                f"Signal spans {num_frames} frames, fewer than one patch "
                f"({self.patch_size} frames)"
            )
            return []

        last_start = num_frames - self.patch_size
        runs = self.vad.active_runs(activity)
        indices = sorted({
            min(max(idx, 0), last_start)
            for start, stop in runs
            for idx in self._run_starts(start, stop)
        })

        logger.debug(
            f"VAD: {int(activity.sum())}/{num_frames} active frames in "
            f"{len(runs)} runs -> {len(indices)} patches"
        )
        return indices
