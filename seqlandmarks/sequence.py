"""Sequence store: per-stream face landmarks with optional identity tracking."""

from __future__ import annotations

import logging
import math
import numbers
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

import cv2
import numpy as np

from seqlandmarks.detectors.base import LandmarkProvider, ModelHandle, ProviderLoader
from seqlandmarks.errors import InvalidInputError, ProviderError, StateError
from seqlandmarks.persistence import export_table, read_sequence, save_sequence
from seqlandmarks.tracking.identity import IdentityTracker, TrackingPolicy
from seqlandmarks.types import Detection, Frame, scale_bbox, scale_points

LOGGER = logging.getLogger("seqlandmarks.sequence")

PathLike = Union[str, Path]


def validate_image(image: np.ndarray) -> Tuple[int, int]:
    """Return ``(height, width)`` or raise ``InvalidInputError``."""
    if not isinstance(image, np.ndarray):
        raise InvalidInputError(f"Expected a numpy image, got {type(image).__name__}")
    if image.ndim not in (2, 3) or image.size == 0:
        raise InvalidInputError(f"Image must be a non-empty 2D or 3D array, got shape {image.shape}")
    height, width = image.shape[:2]
    if height <= 0 or width <= 0:
        raise InvalidInputError(f"Image dimensions must be positive, got {width}x{height}")
    if image.ndim == 3 and image.shape[2] not in (1, 3, 4):
        raise InvalidInputError(f"Unsupported channel count {image.shape[2]}")
    return height, width


def _validate_scale(frame_scale: float) -> float:
    try:
        value = float(frame_scale)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"frame_scale must be a number, got {frame_scale!r}") from exc
    if not math.isfinite(value) or value <= 0:
        raise InvalidInputError(f"frame_scale must be positive, got {frame_scale}")
    return value


def resize_for_detection(image: np.ndarray, frame_scale: float) -> np.ndarray:
    if frame_scale == 1.0:
        return image
    height, width = image.shape[:2]
    size = (max(1, int(round(width * frame_scale))), max(1, int(round(height * frame_scale))))
    interpolation = cv2.INTER_AREA if frame_scale < 1.0 else cv2.INTER_LINEAR
    return cv2.resize(image, size, interpolation=interpolation)


class SequenceFaceLandmarks:
    """Face landmarks over a sequence of frames.

    The loaded model lives in a shared, read-only ``ModelHandle``; frame
    history and tracking state are owned by each instance. Use :meth:`clone`
    to process several sequences against one loaded model.
    """

    def __init__(
        self,
        model: Optional[ModelHandle] = None,
        frame_scale: float = 1.0,
        track_faces: bool = False,
        policy: Optional[TrackingPolicy] = None,
        loader: Optional[ProviderLoader] = None,
    ) -> None:
        self._model = model
        self._loader = loader
        self._frame_scale = _validate_scale(frame_scale)
        self._tracker = IdentityTracker(enabled=bool(track_faces), policy=policy or TrackingPolicy())
        self._frames: List[Frame] = []
        self._landmark_count: Optional[int] = None

    @classmethod
    def create(
        cls,
        model_path: Optional[str] = None,
        frame_scale: float = 1.0,
        track_faces: bool = False,
        *,
        loader: Optional[ProviderLoader] = None,
        policy: Optional[TrackingPolicy] = None,
    ) -> "SequenceFaceLandmarks":
        """Create an instance, loading ``model_path`` when given."""
        frame_scale = _validate_scale(frame_scale)
        model = ModelHandle.load(model_path, loader=loader) if model_path is not None else None
        return cls(model=model, frame_scale=frame_scale, track_faces=track_faces, policy=policy, loader=loader)

    @classmethod
    def from_provider(
        cls,
        provider: LandmarkProvider,
        frame_scale: float = 1.0,
        track_faces: bool = False,
        policy: Optional[TrackingPolicy] = None,
        model_path: str = "",
    ) -> "SequenceFaceLandmarks":
        """Wrap an already constructed provider."""
        return cls(
            model=ModelHandle(model_path=model_path, provider=provider),
            frame_scale=frame_scale,
            track_faces=track_faces,
            policy=policy,
        )

    # -- processing -----------------------------------------------------

    def add_frame(self, image: np.ndarray, frame_id: Optional[int] = None) -> Frame:
        """Detect, locate and label faces in ``image`` and append the frame.

        ``frame_id`` of ``None`` or a negative value selects the next
        automatic id (the number of frames already stored).
        """
        height, width = validate_image(image)
        if frame_id is not None and (isinstance(frame_id, bool) or not isinstance(frame_id, numbers.Integral)):
            raise InvalidInputError(f"frame_id must be an integer or None, got {frame_id!r}")
        if self._model is None:
            raise StateError("No landmark model loaded; call set_model() first")

        detections = self._detect(image)
        faces, next_id = self._tracker.peek(detections)
        if frame_id is None or frame_id < 0:
            frame_id = len(self._frames)
        frame = Frame(id=int(frame_id), width=width, height=height, faces=tuple(faces))

        self._tracker.commit(faces, next_id)
        self._frames.append(frame)
        if detections and self._landmark_count is None:
            self._landmark_count = len(detections[0].landmarks)
        LOGGER.debug("Frame %d (%dx%d): faces=%s", frame.id, width, height, list(frame.face_ids))
        return frame

    def _detect(self, image: np.ndarray) -> List[Detection]:
        provider = self._model.provider
        scaled = resize_for_detection(image, self._frame_scale)
        inverse = 1.0 / self._frame_scale
        expected = self._landmark_count
        detections: List[Detection] = []
        for region in provider.detect(scaled):
            scaled_bbox = scale_bbox(region, 1.0)
            points = provider.locate(scaled, scaled_bbox)
            if expected is None:
                expected = len(points)
            elif len(points) != expected:
                raise ProviderError(f"Landmark provider returned {len(points)} points, expected {expected}")
            detections.append(
                Detection(bbox=scale_bbox(region, inverse), landmarks=scale_points(points, inverse))
            )
        return detections

    # -- sequence access ------------------------------------------------

    def get_sequence(self) -> Tuple[Frame, ...]:
        return tuple(self._frames)

    def size(self) -> int:
        return len(self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[Frame]:
        return iter(tuple(self._frames))

    def clear(self) -> None:
        """Drop all frames and reset the frame counter and tracking state."""
        self._frames = []
        self._tracker.reset()
        self._landmark_count = None
        LOGGER.debug("Cleared sequence")

    def clone(self) -> "SequenceFaceLandmarks":
        """Return an empty instance sharing this instance's loaded model."""
        clone = type(self)(
            model=self._model,
            frame_scale=self._frame_scale,
            track_faces=self._tracker.enabled,
            policy=self._tracker.policy,
            loader=self._loader,
        )
        LOGGER.debug("Cloned sequence store model=%s", self.get_model())
        return clone

    # -- persistence ----------------------------------------------------

    def save(self, path: PathLike) -> None:
        save_sequence(Path(path), self._frames, landmark_count=self._landmark_count)

    def load(self, path: PathLike) -> None:
        """Replace the in-memory sequence with the one stored at ``path``.

        Tracking restarts with no previous faces; new ids continue above the
        highest loaded face id. See :meth:`continue_tracking`.
        """
        frames, landmark_count = read_sequence(Path(path))
        self._frames = list(frames)
        max_id = max((face.id for frame in frames for face in frame.faces), default=-1)
        self._tracker.reset(next_id=max_id + 1)
        self._landmark_count = landmark_count
        LOGGER.info("Loaded %d frames from %s", len(frames), path)

    def continue_tracking(self) -> None:
        """Seed the tracker with the last stored frame so ids carry over."""
        if not self._frames:
            return
        faces = self._frames[-1].faces
        next_id = max([self._tracker.next_id] + [face.id + 1 for face in faces])
        self._tracker.commit(faces, next_id)

    def export_table(self, path: PathLike) -> Path:
        return export_table(Path(path), self._frames)

    # -- configuration --------------------------------------------------

    def get_model(self) -> str:
        return self._model.model_path if self._model is not None else ""

    def set_model(self, model_path: str) -> None:
        self._model = ModelHandle.load(model_path, loader=self._loader)
        self._landmark_count = None

    def get_frame_scale(self) -> float:
        return self._frame_scale

    def set_frame_scale(self, frame_scale: float) -> None:
        self._frame_scale = _validate_scale(frame_scale)

    def get_track_faces(self) -> bool:
        return self._tracker.enabled

    def set_track_faces(self, track_faces: bool) -> None:
        self._tracker.enabled = bool(track_faces)
        self._tracker.reset()

    @property
    def model(self) -> Optional[ModelHandle]:
        return self._model

    @property
    def model_path(self) -> str:
        return self.get_model()

    @property
    def frame_scale(self) -> float:
        return self._frame_scale

    @frame_scale.setter
    def frame_scale(self, value: float) -> None:
        self.set_frame_scale(value)

    @property
    def track_faces(self) -> bool:
        return self._tracker.enabled

    @track_faces.setter
    def track_faces(self, value: bool) -> None:
        self.set_track_faces(value)

    @property
    def policy(self) -> TrackingPolicy:
        return self._tracker.policy
