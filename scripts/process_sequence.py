#!/usr/bin/env python3
"""CLI for extracting face landmarks from a video or image directory."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Iterator, Optional, Sequence

import cv2
import numpy as np
from tqdm import tqdm

from seqlandmarks.config import SequenceConfig
from seqlandmarks.io_utils import list_images, setup_logging
from seqlandmarks.sequence import SequenceFaceLandmarks


LOGGER = logging.getLogger("scripts.process_sequence")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Detect faces and landmarks over a frame sequence")
    parser.add_argument("source", type=Path, help="Input video file or directory of images")
    parser.add_argument("--output", type=Path, default=None, help="Output sequence file (default: <stem>.json)")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Processing configuration YAML",
    )
    parser.add_argument("--model", type=str, default=None, help="Landmark model path (overrides config)")
    parser.add_argument("--detector-model", type=str, default=None, help="Detector ONNX path (overrides config)")
    parser.add_argument("--frame-scale", type=float, default=None, help="Scale applied before detection")
    track_group = parser.add_mutually_exclusive_group()
    track_group.add_argument(
        "--track-faces",
        dest="track_faces",
        action="store_true",
        help="Keep face ids consistent across frames",
    )
    track_group.add_argument(
        "--no-track-faces",
        dest="track_faces",
        action="store_false",
        help="Number faces independently in every frame",
    )
    track_group.set_defaults(track_faces=None)
    parser.add_argument("--iou-threshold", type=float, default=None, help="Tracking IoU threshold")
    parser.add_argument("--max-frames", type=int, default=None, help="Stop after this many frames")
    parser.add_argument("--table", type=Path, default=None, help="Also export a .parquet/.csv face table")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def resolve_config(args: argparse.Namespace, config: SequenceConfig) -> SequenceConfig:
    """Apply CLI overrides on top of the YAML configuration."""
    if args.model is not None:
        config.model_path = args.model
    if args.detector_model is not None:
        config.detector_model = args.detector_model
    if args.frame_scale is not None:
        config.frame_scale = args.frame_scale
    if args.track_faces is not None:
        config.track_faces = args.track_faces
    if args.iou_threshold is not None:
        config.iou_threshold = args.iou_threshold
    return config


def iter_frames(source: Path) -> Iterator[np.ndarray]:
    """Yield BGR frames from a video file or a directory of images."""
    if source.is_dir():
        for path in list_images(source):
            image = cv2.imread(str(path))
            if image is None:
                LOGGER.warning("Skipping unreadable image %s", path)
                continue
            yield image
        return

    cap = cv2.VideoCapture(str(source))
    if not cap.isOpened():
        raise RuntimeError(f"Unable to open video {source}")
    try:
        while True:
            ret, frame = cap.read()
            if not ret:
                break
            yield frame
    finally:
        cap.release()


def _frame_count(source: Path) -> Optional[int]:
    if source.is_dir():
        return len(list(list_images(source)))
    cap = cv2.VideoCapture(str(source))
    count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT)) or None
    cap.release()
    return count


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    config = SequenceConfig.from_yaml(args.config) if args.config else SequenceConfig()
    config = resolve_config(args, config)
    if not config.model_path:
        LOGGER.error("No landmark model configured; pass --model or set model_path in the config")
        return 2

    LOGGER.info(
        "Runtime config: model=%s frame_scale=%.2f track_faces=%s iou_threshold=%.2f assignment=%s",
        config.model_path,
        config.frame_scale,
        config.track_faces,
        config.iou_threshold,
        config.assignment,
    )
    store = SequenceFaceLandmarks.create(
        config.model_path,
        frame_scale=config.frame_scale,
        track_faces=config.track_faces,
        loader=config.provider_loader(),
        policy=config.policy(),
    )

    output = args.output or Path(f"{args.source.stem}.json")
    total = _frame_count(args.source)
    if args.max_frames is not None:
        total = min(total, args.max_frames) if total else args.max_frames

    face_total = 0
    for frame_idx, image in enumerate(tqdm(iter_frames(args.source), total=total, unit="frame")):
        if args.max_frames is not None and frame_idx >= args.max_frames:
            break
        frame = store.add_frame(image)
        face_total += len(frame.faces)

    store.save(output)
    LOGGER.info("Processed %d frames (%d faces) -> %s", store.size(), face_total, output)
    if args.table is not None:
        store.export_table(args.table)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
