from __future__ import annotations

from typing import Iterable, Sequence, Tuple

import cv2
import numpy as np
import pytest

from seqlandmarks.detectors.base import LandmarkProvider


class RectangleProvider(LandmarkProvider):
    """Treats every bright rectangle in the image as a face."""

    def __init__(self) -> None:
        self.detect_calls = 0
        self.last_shape = None

    def detect(self, image):
        self.detect_calls += 1
        self.last_shape = image.shape
        gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        _, mask = cv2.threshold(gray, 127, 255, cv2.THRESH_BINARY)
        count, _, stats, _ = cv2.connectedComponentsWithStats(mask)
        return [tuple(float(v) for v in stats[idx, :4]) for idx in range(1, count)]

    def locate(self, image, bbox):
        x, y, w, h = bbox
        return [(x, y), (x + w, y), (x + w / 2.0, y + h / 2.0), (x, y + h), (x + w, y + h)]


def paint_faces(boxes: Iterable[Sequence[int]], size: Tuple[int, int] = (240, 320)) -> np.ndarray:
    height, width = size
    image = np.zeros((height, width, 3), dtype=np.uint8)
    for x, y, w, h in boxes:
        image[y : y + h, x : x + w] = 255
    return image


@pytest.fixture
def provider() -> RectangleProvider:
    return RectangleProvider()


@pytest.fixture
def paint():
    return paint_faces


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "landmarks.onnx"
    path.write_bytes(b"fake-model")
    return path


@pytest.fixture
def rectangle_loader(provider):
    loaded = []

    def _load(model_path: str) -> RectangleProvider:
        loaded.append(model_path)
        return provider

    _load.loaded = loaded
    return _load
