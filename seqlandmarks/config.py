"""Processing configuration loaded from YAML."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from seqlandmarks.io_utils import load_yaml
from seqlandmarks.tracking.identity import DEFAULT_IOU_THRESHOLD, TrackingPolicy

LOGGER = logging.getLogger("seqlandmarks.config")


@dataclass
class SequenceConfig:
    model_path: Optional[str] = None
    detector_model: Optional[str] = None
    frame_scale: float = 1.0
    track_faces: bool = False
    iou_threshold: float = DEFAULT_IOU_THRESHOLD
    assignment: str = "greedy"
    det_size: Tuple[int, int] = (640, 640)
    det_thresh: float = 0.5
    providers: Optional[Tuple[str, ...]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SequenceConfig":
        known = {f.name for f in fields(cls)} - {"extra"}
        kwargs = {key: value for key, value in data.items() if key in known}
        extra = {key: value for key, value in data.items() if key not in known}
        if extra:
            LOGGER.warning("Ignoring unknown config keys: %s", sorted(extra))
        if "det_size" in kwargs:
            kwargs["det_size"] = tuple(int(v) for v in kwargs["det_size"])
        if kwargs.get("providers"):
            kwargs["providers"] = tuple(kwargs["providers"])
        return cls(extra=extra, **kwargs)

    @classmethod
    def from_yaml(cls, path: Path) -> "SequenceConfig":
        return cls.from_dict(load_yaml(path))

    def policy(self) -> TrackingPolicy:
        return TrackingPolicy(iou_threshold=self.iou_threshold, strategy=self.assignment)

    def provider_loader(self):
        """Return a model loader honouring the detector settings."""
        from seqlandmarks.detectors.face_insight import InsightFaceLandmarkProvider

        def _load(model_path: str) -> InsightFaceLandmarkProvider:
            return InsightFaceLandmarkProvider(
                landmark_model=model_path,
                detector_model=self.detector_model,
                providers=self.providers,
                det_size=self.det_size,
                det_thresh=self.det_thresh,
            )

        return _load
