"""Versioned on-disk format for processed face landmark sequences."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from seqlandmarks.errors import CorruptDataError, InvalidInputError
from seqlandmarks.io_utils import ensure_dir, read_json, write_json
from seqlandmarks.types import Face, Frame

LOGGER = logging.getLogger("seqlandmarks.persistence")

FORMAT_TAG = "seqlandmarks"
FORMAT_VERSION = 1
SUPPORTED_VERSIONS = (1,)


def frame_to_dict(frame: Frame) -> Dict[str, Any]:
    return {
        "id": frame.id,
        "width": frame.width,
        "height": frame.height,
        "faces": [
            {
                "id": face.id,
                "bbox": list(face.bbox),
                "landmarks": [list(point) for point in face.landmarks],
            }
            for face in frame.faces
        ],
    }


def sequence_to_dict(frames: Sequence[Frame], landmark_count: Optional[int] = None) -> Dict[str, Any]:
    return {
        "format": FORMAT_TAG,
        "version": FORMAT_VERSION,
        "landmark_count": landmark_count,
        "frames": [frame_to_dict(frame) for frame in frames],
    }


def _as_int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{what} must be an integer, got {value!r}")
    return value


def _int_tuple(values: Any, size: int, what: str):
    if not isinstance(values, list) or len(values) != size:
        raise ValueError(f"{what} must be a list of {size} integers, got {values!r}")
    return tuple(_as_int(v, what) for v in values)


def _face_from_dict(data: Dict[str, Any]) -> Face:
    face_id = _as_int(data["id"], "face id")
    if face_id < 0:
        raise ValueError(f"face id must be non-negative, got {face_id}")
    return Face(
        id=face_id,
        bbox=_int_tuple(data["bbox"], 4, "bbox"),
        landmarks=tuple(_int_tuple(point, 2, "landmark") for point in data["landmarks"]),
    )


def frame_from_dict(data: Dict[str, Any]) -> Frame:
    frame_id = _as_int(data["id"], "frame id")
    if frame_id < 0:
        raise ValueError(f"frame id must be non-negative, got {frame_id}")
    width = _as_int(data["width"], "frame width")
    height = _as_int(data["height"], "frame height")
    if width <= 0 or height <= 0:
        raise ValueError(f"frame dimensions must be positive, got {width}x{height}")
    return Frame(
        id=frame_id,
        width=width,
        height=height,
        faces=tuple(_face_from_dict(face) for face in data["faces"]),
    )


def _checked_landmark_count(frames: Sequence[Frame], declared: Any) -> Optional[int]:
    """Return the landmark count shared by every face, or ``None`` for a faceless sequence."""
    if declared is not None:
        declared = _as_int(declared, "landmark_count")
        if declared < 0:
            raise ValueError(f"landmark_count must be non-negative, got {declared}")
    count = declared
    for frame in frames:
        for face in frame.faces:
            if count is None:
                count = len(face.landmarks)
            elif len(face.landmarks) != count:
                raise ValueError(
                    f"face {face.id} in frame {frame.id} has {len(face.landmarks)} landmarks, expected {count}"
                )
    return count


def decode_sequence(payload: Any, path: Optional[Path] = None) -> Tuple[List[Frame], Optional[int]]:
    """Decode a sequence document into its frames and landmark count."""
    if not isinstance(payload, dict) or payload.get("format") != FORMAT_TAG:
        raise CorruptDataError(f"Not a {FORMAT_TAG} sequence file", path=path)
    version = payload.get("version")
    if isinstance(version, bool) or version not in SUPPORTED_VERSIONS:
        raise CorruptDataError(f"Unsupported sequence format version {version!r}", path=path)
    try:
        frames = [frame_from_dict(frame) for frame in payload["frames"]]
        landmark_count = _checked_landmark_count(frames, payload.get("landmark_count"))
    except (KeyError, TypeError, ValueError) as exc:
        raise CorruptDataError(f"Malformed sequence data: {exc}", path=path) from exc
    return frames, landmark_count


def save_sequence(path: Path, frames: Sequence[Frame], landmark_count: Optional[int] = None) -> None:
    """Write ``frames`` to ``path``. An empty sequence writes a file with no frames."""
    ensure_dir(path.parent)
    write_json(path, sequence_to_dict(frames, landmark_count))
    LOGGER.info("Saved %d frames to %s", len(frames), path)


def read_sequence(path: Path) -> Tuple[List[Frame], Optional[int]]:
    if not path.is_file():
        raise CorruptDataError(f"Sequence file not found: {path}", path=path)
    try:
        payload = read_json(path)
    except (OSError, UnicodeDecodeError, RecursionError, json.JSONDecodeError) as exc:
        raise CorruptDataError(f"Unable to decode sequence file {path}: {exc}", path=path) from exc
    return decode_sequence(payload, path=path)


def load_sequence(path: Path) -> List[Frame]:
    return read_sequence(path)[0]


def sequence_to_dataframe(frames: Sequence[Frame]) -> pd.DataFrame:
    """Flatten a sequence to one row per face with ``lmk_{i}_x``/``lmk_{i}_y`` columns."""
    rows: List[Dict[str, Any]] = []
    for frame_idx, frame in enumerate(frames):
        for face in frame.faces:
            x, y, w, h = face.bbox
            row: Dict[str, Any] = {
                "frame_idx": frame_idx,
                "frame_id": frame.id,
                "width": frame.width,
                "height": frame.height,
                "face_id": face.id,
                "x": x,
                "y": y,
                "w": w,
                "h": h,
            }
            for idx, (px, py) in enumerate(face.landmarks):
                row[f"lmk_{idx}_x"] = px
                row[f"lmk_{idx}_y"] = py
            rows.append(row)
    columns = ["frame_idx", "frame_id", "width", "height", "face_id", "x", "y", "w", "h"]
    return pd.DataFrame(rows, columns=None if rows else columns)


def export_table(path: Path, frames: Sequence[Frame]) -> Path:
    df = sequence_to_dataframe(frames)
    suffix = path.suffix.lower()
    if suffix not in {".parquet", ".csv"}:
        raise InvalidInputError(f"Unsupported table format {suffix!r}; use .parquet or .csv")
    ensure_dir(path.parent)
    if suffix == ".parquet":
        df.to_parquet(path, index=False)
    else:
        df.to_csv(path, index=False)
    LOGGER.info("Exported %d face rows to %s", len(df), path)
    return path
