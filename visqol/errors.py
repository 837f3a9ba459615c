"""
Pipeline Errors
===============

Every fatal condition of a comparison maps to one exception class, so
callers can tell a bad input file from a misaligned pair or a missing model.
"""


class VisqolError(Exception):
    """Base class for all pipeline failures"""


class InvalidSignalError(VisqolError, ValueError):
    """Signal violates its invariants (empty, not mono, bad sample rate)"""


class AudioLoadError(VisqolError, OSError):
    """Audio file could not be read or decoded"""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load audio '{path}': {reason}")


class SampleRateMismatchError(VisqolError):
    """Reference and degraded signals use different sample rates"""

    def __init__(self, reference: int, degraded: int):
        self.reference = reference
        self.degraded = degraded
        super().__init__(
            f"Sample rates differ: reference is {reference} Hz, "
            f"degraded is {degraded} Hz"
        )


class AlignmentError(VisqolError):
    """No usable cross-correlation peak between the signals"""


class EmptyPatchSetError(VisqolError):
    """Reference signal produced no patches to compare"""


class ModelLoadError(VisqolError):
    """Regression model is missing, unreadable or lacks a predict method"""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load model '{path}': {reason}")


class EmptySimilarityVectorError(VisqolError, ValueError):
    """Quality mapping was asked to score zero similarity values"""


class PatchShapeError(VisqolError, ValueError):
    """Two patches handed to the similarity measure differ in shape"""
