"""Rendering helpers for faces, frames and QA overlay videos."""

from __future__ import annotations

import hashlib
import logging
from typing import Dict, Optional, Sequence, Tuple

import cv2
import numpy as np

from seqlandmarks.types import BBox, Face, Frame, Point, to_xyxy

LOGGER = logging.getLogger("seqlandmarks.viz.overlay")

Color = Tuple[int, int, int]

GREEN: Color = (0, 255, 0)
RED: Color = (0, 0, 255)


def id_color(face_id: int) -> Color:
    """Stable BGR colour for a face id."""
    digest = hashlib.md5(str(face_id).encode("utf-8")).digest()
    return tuple(int(x) for x in digest[:3])


def render_landmarks(
    img: np.ndarray,
    landmarks: Sequence[Point],
    draw_labels: bool = False,
    color: Color = GREEN,
    thickness: int = 1,
) -> np.ndarray:
    """Draw landmark points, optionally labeled with their 0-based index."""
    for idx, (x, y) in enumerate(landmarks):
        center = (int(x), int(y))
        cv2.circle(img, center, max(1, thickness), color, -1)
        if draw_labels:
            cv2.putText(
                img,
                str(idx),
                (center[0] + 2, center[1] - 2),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.3,
                color,
                max(1, thickness // 2),
            )
    return img


def render_bbox(img: np.ndarray, bbox: BBox, color: Color = GREEN, thickness: int = 1) -> np.ndarray:
    x1, y1, x2, y2 = to_xyxy(bbox)
    cv2.rectangle(img, (int(x1), int(y1)), (int(x2), int(y2)), color, thickness)
    return img


def render_face(
    img: np.ndarray,
    face: Face,
    draw_labels: bool = False,
    bbox_color: Color = RED,
    landmarks_color: Color = GREEN,
    thickness: int = 1,
) -> np.ndarray:
    render_bbox(img, face.bbox, bbox_color, thickness)
    render_landmarks(img, face.landmarks, draw_labels, landmarks_color, thickness)
    return img


def render_frame(
    img: np.ndarray,
    frame: Frame,
    draw_labels: bool = False,
    bbox_color: Color = RED,
    landmarks_color: Color = GREEN,
    thickness: int = 1,
) -> np.ndarray:
    for face in frame.faces:
        render_face(img, face, draw_labels, bbox_color, landmarks_color, thickness)
    return img


def _draw_face_ids(
    img: np.ndarray, frame: Frame, color_by_id: bool, thickness: int, draw_labels: bool = False
) -> np.ndarray:
    for face in frame.faces:
        color = id_color(face.id) if color_by_id else RED
        x, y, _, _ = face.bbox
        render_face(img, face, draw_labels=draw_labels, bbox_color=color, thickness=thickness)
        cv2.putText(img, f"id {face.id}", (x, max(15, y - 6)), cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1)
    return img


def render_sequence_video(
    video_path: str,
    frames: Sequence[Frame],
    output_path: str,
    fps: Optional[float] = None,
    color_by_id: bool = True,
    thickness: int = 2,
    draw_labels: bool = False,
) -> int:
    """Overlay ``frames`` on the source video; frame ``i`` of the sequence maps to video frame ``i``.

    With ``draw_labels`` each landmark is annotated with its index.
    Returns the number of frames written.
    """
    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        raise RuntimeError(f"Unable to open video {video_path}")

    input_fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
    fps = fps or input_fps
    width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))

    fourcc = cv2.VideoWriter_fourcc(*"mp4v")
    writer = cv2.VideoWriter(output_path, fourcc, fps, (width, height))

    by_index: Dict[int, Frame] = dict(enumerate(frames))
    frame_idx = 0
    while True:
        ret, image = cap.read()
        if not ret:
            break
        frame = by_index.get(frame_idx)
        if frame is not None:
            image = _draw_face_ids(image, frame, color_by_id, thickness, draw_labels=draw_labels)
        writer.write(image)
        frame_idx += 1

    cap.release()
    writer.release()
    LOGGER.info("Overlay written to %s (%d frames)", output_path, frame_idx)
    return frame_idx
