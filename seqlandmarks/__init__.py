"""
Face landmarks over frame sequences with optional identity tracking.
"""

from seqlandmarks.errors import (
    CorruptDataError,
    InvalidInputError,
    ModelLoadError,
    ProviderError,
    SequenceLandmarksError,
    StateError,
)
from seqlandmarks.sequence import SequenceFaceLandmarks
from seqlandmarks.types import Face, Frame

__all__ = [
    "SequenceFaceLandmarks",
    "Face",
    "Frame",
    "SequenceLandmarksError",
    "InvalidInputError",
    "ModelLoadError",
    "CorruptDataError",
    "StateError",
    "ProviderError",
    "config",
    "detectors",
    "tracking",
    "viz",
    "io_utils",
    "persistence",
    "types",
]
