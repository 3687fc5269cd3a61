#!/usr/bin/env python3
"""CLI for rendering a processed sequence on top of its source video."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from seqlandmarks.io_utils import setup_logging
from seqlandmarks.persistence import load_sequence
from seqlandmarks.viz.overlay import render_sequence_video


LOGGER = logging.getLogger("scripts.render_sequence")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render face landmark overlays for QA")
    parser.add_argument("sequence", type=Path, help="Sequence file written by seqlandmarks-process")
    parser.add_argument("video", type=Path, help="Original video path")
    parser.add_argument("--output", type=Path, required=True, help="Output mp4 path")
    parser.add_argument("--fps", type=float, default=None, help="Output fps (default: input fps)")
    parser.add_argument("--thickness", type=int, default=2, help="Line thickness")
    parser.add_argument(
        "--single-color",
        action="store_true",
        help="Draw every bounding box in red instead of one colour per face id",
    )
    parser.add_argument("--labels", action="store_true", help="Annotate landmarks with their index")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    frames = load_sequence(args.sequence)
    if not frames:
        LOGGER.warning("Sequence %s has no frames; output will be the raw video", args.sequence)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    written = render_sequence_video(
        str(args.video),
        frames,
        str(args.output),
        fps=args.fps,
        color_by_id=not args.single_color,
        thickness=args.thickness,
        draw_labels=args.labels,
    )
    if written < len(frames):
        LOGGER.warning("Video has %d frames but sequence has %d", written, len(frames))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
