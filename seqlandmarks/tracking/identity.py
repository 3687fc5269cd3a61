"""Frame-to-frame face identity assignment based on bounding box overlap."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
from scipy.optimize import linear_sum_assignment

from seqlandmarks.errors import InvalidInputError
from seqlandmarks.types import Detection, Face, iou

LOGGER = logging.getLogger("seqlandmarks.tracking.identity")

DEFAULT_IOU_THRESHOLD = 0.3
ASSIGNMENT_STRATEGIES = ("greedy", "hungarian")


@dataclass(frozen=True)
class TrackingPolicy:
    """Matching policy used to carry face ids between consecutive frames.

    A detection continues a previous face when their IoU is strictly greater
    than ``iou_threshold``. With the ``greedy`` strategy, candidate pairs are
    consumed in descending IoU order; ties go to the lower detection index and
    then to the lower previous-face index. ``hungarian`` maximises the total
    IoU over all pairs before applying the same threshold.
    """

    iou_threshold: float = DEFAULT_IOU_THRESHOLD
    strategy: str = "greedy"

    def __post_init__(self) -> None:
        threshold = float(self.iou_threshold)
        if math.isnan(threshold) or not 0.0 <= threshold < 1.0:
            raise InvalidInputError(f"iou_threshold must be in [0, 1), got {self.iou_threshold}")
        if self.strategy not in ASSIGNMENT_STRATEGIES:
            raise InvalidInputError(
                f"Unknown assignment strategy {self.strategy!r}; expected one of {ASSIGNMENT_STRATEGIES}"
            )


def iou_matrix(previous: Sequence[Face], detections: Sequence[Detection]) -> np.ndarray:
    """Return a ``(len(detections), len(previous))`` IoU matrix."""
    scores = np.zeros((len(detections), len(previous)), dtype=np.float64)
    for det_idx, det in enumerate(detections):
        for prev_idx, face in enumerate(previous):
            scores[det_idx, prev_idx] = iou(det.bbox, face.bbox)
    return scores


def _greedy_pairs(scores: np.ndarray, threshold: float) -> List[Tuple[int, int]]:
    candidates = [
        (float(scores[d, p]), d, p)
        for d in range(scores.shape[0])
        for p in range(scores.shape[1])
        if scores[d, p] > threshold
    ]
    candidates.sort(key=lambda item: (-item[0], item[1], item[2]))
    used_det = set()
    used_prev = set()
    pairs: List[Tuple[int, int]] = []
    for _, det_idx, prev_idx in candidates:
        if det_idx in used_det or prev_idx in used_prev:
            continue
        used_det.add(det_idx)
        used_prev.add(prev_idx)
        pairs.append((det_idx, prev_idx))
    return pairs


def _hungarian_pairs(scores: np.ndarray, threshold: float) -> List[Tuple[int, int]]:
    rows, cols = linear_sum_assignment(scores, maximize=True)
    return [(int(r), int(c)) for r, c in zip(rows, cols) if scores[r, c] > threshold]


def assign_ids(
    previous_faces: Sequence[Face],
    detections: Sequence[Detection],
    next_id: int,
    policy: TrackingPolicy = TrackingPolicy(),
) -> Tuple[List[Face], int]:
    """Label ``detections`` against the previous frame's faces.

    Returns the labeled faces in detection order and the updated id counter.
    Unmatched detections take fresh ids from ``next_id`` upwards.
    """
    matched: dict = {}
    if previous_faces and detections:
        scores = iou_matrix(previous_faces, detections)
        if policy.strategy == "hungarian":
            pairs = _hungarian_pairs(scores, policy.iou_threshold)
        else:
            pairs = _greedy_pairs(scores, policy.iou_threshold)
        matched = {det_idx: previous_faces[prev_idx].id for det_idx, prev_idx in pairs}

    faces: List[Face] = []
    for det_idx, det in enumerate(detections):
        face_id = matched.get(det_idx)
        if face_id is None:
            face_id = next_id
            next_id += 1
        faces.append(det.to_face(face_id))
    LOGGER.debug(
        "Assigned ids: %d detections, %d previous, %d continued, next_id=%d",
        len(detections),
        len(previous_faces),
        len(matched),
        next_id,
    )
    return faces, next_id


def number_sequentially(detections: Sequence[Detection]) -> List[Face]:
    """Frame-local ids 0..n-1 used when tracking is disabled."""
    return [det.to_face(idx) for idx, det in enumerate(detections)]


class IdentityTracker:
    """Keeps the previous frame's faces and the id counter for one sequence."""

    def __init__(self, enabled: bool = False, policy: TrackingPolicy = TrackingPolicy()) -> None:
        self.enabled = enabled
        self.policy = policy
        self.previous_faces: Tuple[Face, ...] = ()
        self.next_id = 0

    def peek(self, detections: Sequence[Detection]) -> Tuple[List[Face], int]:
        """Compute labeled faces and the next counter without mutating state."""
        if not self.enabled:
            return number_sequentially(detections), 0
        return assign_ids(self.previous_faces, detections, self.next_id, self.policy)

    def commit(self, faces: Sequence[Face], next_id: int) -> None:
        if not self.enabled:
            return
        self.previous_faces = tuple(faces)
        self.next_id = next_id

    def update(self, detections: Sequence[Detection]) -> List[Face]:
        faces, next_id = self.peek(detections)
        self.commit(faces, next_id)
        return faces

    def reset(self, next_id: int = 0) -> None:
        self.previous_faces = ()
        self.next_id = next_id
