"""Common dataclasses and type aliases used across the seqlandmarks package."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Tuple

# Bounding box order: x, y, width, height (pixel coordinates)
BBox = Tuple[int, int, int, int]
Point = Tuple[int, int]


@dataclass(frozen=True)
class Face:
    """A face detected in a frame."""

    id: int
    bbox: BBox
    landmarks: Tuple[Point, ...] = ()

    def as_xyxy(self) -> Tuple[int, int, int, int]:
        return to_xyxy(self.bbox)


@dataclass(frozen=True)
class Frame:
    """A processed frame and the faces found in it."""

    id: int
    width: int
    height: int
    faces: Tuple[Face, ...] = ()

    @property
    def face_ids(self) -> Tuple[int, ...]:
        return tuple(face.id for face in self.faces)

    def get_face(self, face_id: int) -> Optional[Face]:
        for face in self.faces:
            if face.id == face_id:
                return face
        return None


@dataclass
class Detection:
    """Unlabeled face returned by a provider, before identity assignment."""

    bbox: BBox
    landmarks: Tuple[Point, ...] = field(default_factory=tuple)
    score: Optional[float] = None

    def to_face(self, face_id: int) -> Face:
        return Face(id=face_id, bbox=self.bbox, landmarks=self.landmarks)


def to_xyxy(box: BBox) -> Tuple[int, int, int, int]:
    x, y, w, h = box
    return x, y, x + w, y + h


def from_xyxy(x1: float, y1: float, x2: float, y2: float) -> BBox:
    """Round a corner-format box to an integer xywh box."""
    left = int(round(x1))
    top = int(round(y1))
    return left, top, int(round(x2)) - left, int(round(y2)) - top


def iou(box_a: BBox, box_b: BBox) -> float:
    """Compute intersection-over-union between two xywh bounding boxes."""
    ax1, ay1, ax2, ay2 = to_xyxy(box_a)
    bx1, by1, bx2, by2 = to_xyxy(box_b)
    inter_x1 = max(ax1, bx1)
    inter_y1 = max(ay1, by1)
    inter_x2 = min(ax2, bx2)
    inter_y2 = min(ay2, by2)
    inter_w = max(0.0, inter_x2 - inter_x1)
    inter_h = max(0.0, inter_y2 - inter_y1)
    inter_area = inter_w * inter_h
    if inter_area == 0:
        return 0.0
    union = bbox_area(box_a) + bbox_area(box_b) - inter_area
    if union <= 0:
        return 0.0
    return inter_area / union


def bbox_area(box: BBox) -> float:
    """Compute area of a bounding box."""
    _, _, w, h = box
    return max(0.0, float(w)) * max(0.0, float(h))


def scale_bbox(box: Sequence[float], factor: float) -> BBox:
    """Map a box through ``factor`` and round it to integer pixels.

    Corners are scaled independently so the rounded box stays anchored to the
    scaled edges rather than accumulating width rounding error.
    """
    x, y, w, h = (float(v) for v in box)
    return from_xyxy(x * factor, y * factor, (x + w) * factor, (y + h) * factor)


def scale_points(points: Iterable[Sequence[float]], factor: float) -> Tuple[Point, ...]:
    return tuple((int(round(float(px) * factor)), int(round(float(py) * factor))) for px, py in points)
