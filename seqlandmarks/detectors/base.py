"""Provider interface for face detection + landmark localisation."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

import numpy as np

from seqlandmarks.errors import ModelLoadError
from seqlandmarks.types import BBox

LOGGER = logging.getLogger("seqlandmarks.detectors")


class LandmarkProvider(ABC):
    """Opaque detection/landmark capability consumed by the sequence store.

    Coordinates are expressed in the pixel space of the image passed in.
    Implementations must return the same number of landmarks on every
    ``locate`` call for a given loaded model.
    """

    @abstractmethod
    def detect(self, image: np.ndarray) -> Sequence[Sequence[float]]:
        """Return face regions as ``(x, y, width, height)`` boxes."""

    @abstractmethod
    def locate(self, image: np.ndarray, bbox: BBox) -> Sequence[Sequence[float]]:
        """Return the ordered landmark points of the face inside ``bbox``."""


ProviderLoader = Callable[[str], LandmarkProvider]


def _default_loader(model_path: str) -> LandmarkProvider:
    from seqlandmarks.detectors.face_insight import InsightFaceLandmarkProvider

    return InsightFaceLandmarkProvider(landmark_model=model_path)


@dataclass(frozen=True)
class ModelHandle:
    """Loaded provider plus the path it came from; shared between clones."""

    model_path: str
    provider: LandmarkProvider

    @classmethod
    def load(cls, model_path: Union[str, os.PathLike], loader: Optional[ProviderLoader] = None) -> "ModelHandle":
        if not isinstance(model_path, (str, os.PathLike)) or not str(model_path):
            raise ModelLoadError(f"Invalid landmark model path: {model_path!r}")
        path = Path(model_path)
        if not path.is_file():
            raise ModelLoadError(f"Landmark model not found: {model_path}", model_path=str(model_path))
        loader = loader or _default_loader
        try:
            provider = loader(str(path))
        except ModelLoadError:
            raise
        except Exception as exc:
            raise ModelLoadError(f"Unable to load landmark model {path}: {exc}", model_path=str(path)) from exc
        if provider is None:
            raise ModelLoadError(f"Incompatible landmark model: {path}", model_path=str(path))
        LOGGER.info("Loaded landmark model %s provider=%s", path, type(provider).__name__)
        return cls(model_path=str(path), provider=provider)
