"""InsightFace-backed face detection and landmark localisation."""

from __future__ import annotations

import logging
import os
import platform
from typing import List, Optional, Sequence, Tuple

import numpy as np

from seqlandmarks.detectors.base import LandmarkProvider
from seqlandmarks.errors import ModelLoadError
from seqlandmarks.types import BBox, to_xyxy

LOGGER = logging.getLogger("seqlandmarks.detectors.insightface")


def default_providers() -> Tuple[str, ...]:
    """Choose default ONNX providers for InsightFace models."""
    system = platform.system()
    machine = platform.machine().lower()
    if system == "Darwin" and machine in {"arm64", "aarch64"}:
        return ("CoreMLExecutionProvider", "CPUExecutionProvider")
    return ("CPUExecutionProvider",)


class InsightFaceLandmarkProvider(LandmarkProvider):
    """SCRFD/RetinaFace detection plus an InsightFace landmark regressor.

    ``landmark_model`` is an ONNX landmark model (e.g. ``2d106det.onnx``).
    When ``detector_model`` is omitted the detection module of the
    ``buffalo_l`` pack is used.
    """

    def __init__(
        self,
        landmark_model: str,
        detector_model: Optional[str] = None,
        providers: Optional[Sequence[str]] = None,
        det_size: Tuple[int, int] = (640, 640),
        det_thresh: float = 0.5,
    ) -> None:
        os.environ.setdefault("OMP_NUM_THREADS", "2")
        os.environ.setdefault("ORT_INTRA_OP_NUM_THREADS", "2")
        try:
            from insightface.model_zoo import get_model
        except ImportError as exc:  # pragma: no cover - import guard
            raise ModelLoadError(
                "insightface is required for InsightFaceLandmarkProvider. "
                "Install it via `pip install insightface`.",
                model_path=landmark_model,
            ) from exc

        self.providers = tuple(providers) if providers else default_providers()
        self.det_size = tuple(det_size)
        self.det_thresh = det_thresh

        self.landmarker = get_model(landmark_model, providers=list(self.providers))
        if self.landmarker is None or not str(getattr(self.landmarker, "taskname", "")).startswith("landmark"):
            raise ModelLoadError(f"{landmark_model} is not a landmark model", model_path=landmark_model)
        self.landmarker.prepare(ctx_id=0)

        if detector_model is not None:
            self.detector = get_model(detector_model, providers=list(self.providers))
            if self.detector is None or getattr(self.detector, "taskname", None) != "detection":
                raise ModelLoadError(f"{detector_model} is not a detection model", model_path=detector_model)
            self.detector.prepare(ctx_id=0, input_size=self.det_size, det_thresh=det_thresh)
        else:
            from insightface.app import FaceAnalysis

            app = FaceAnalysis(name="buffalo_l", allowed_modules=["detection"], providers=list(self.providers))
            app.prepare(ctx_id=0, det_thresh=det_thresh, det_size=self.det_size)
            self.detector = app.det_model
        LOGGER.info(
            "Loaded InsightFace provider landmark_model=%s detector=%s det_size=%s det_thresh=%.2f providers=%s",
            landmark_model,
            detector_model or "buffalo_l",
            self.det_size,
            det_thresh,
            self.providers,
        )

    def detect(self, image: np.ndarray) -> List[Tuple[float, float, float, float]]:
        bboxes, _ = self.detector.detect(_as_bgr(image), max_num=0)
        boxes: List[Tuple[float, float, float, float]] = []
        for row in bboxes:
            x1, y1, x2, y2, score = (float(v) for v in row[:5])
            if score < self.det_thresh:
                continue
            boxes.append((x1, y1, x2 - x1, y2 - y1))
        return boxes

    def locate(self, image: np.ndarray, bbox: BBox) -> List[Tuple[float, float]]:
        from insightface.app.common import Face as InsightFace

        face = InsightFace(bbox=np.asarray(to_xyxy(bbox), dtype=np.float32))
        pred = self.landmarker.get(_as_bgr(image), face)
        return [(float(p[0]), float(p[1])) for p in np.asarray(pred)]


def _as_bgr(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return np.repeat(image[:, :, None], 3, axis=2)
    if image.shape[2] == 1:
        return np.repeat(image, 3, axis=2)
    return image
