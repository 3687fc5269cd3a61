"""Exception hierarchy for the seqlandmarks package."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class SequenceLandmarksError(Exception):
    """Base exception for all seqlandmarks errors."""

    pass


class InvalidInputError(SequenceLandmarksError, ValueError):
    """Raised for empty or malformed images and invalid parameter values."""

    pass


class ModelLoadError(SequenceLandmarksError):
    """Raised when a landmark model path is missing, unreadable or incompatible."""

    def __init__(self, message: str, model_path: Optional[str] = None):
        self.model_path = model_path
        super().__init__(message)


class CorruptDataError(SequenceLandmarksError):
    """Raised when a persisted sequence file cannot be decoded."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = None if path is None else str(path)
        super().__init__(message)


class StateError(SequenceLandmarksError, RuntimeError):
    """Raised when an operation is invalid in the current state."""

    pass


class ProviderError(SequenceLandmarksError):
    """Raised when a detection/landmark provider breaks its contract."""

    pass
