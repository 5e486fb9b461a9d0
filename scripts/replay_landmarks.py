#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, Iterator, Optional

from analysis.analyzer import count_reps
from analysis.exercises import EXERCISES, ConfigurationError, load_exercises
from api.logging_config import configure_logging
from pose.backend import Keypoint, landmarks_from_json


logger = logging.getLogger("repify.replay")


def iter_jsonl_frames(path: Path) -> Iterator[Dict[int, Optional[Keypoint]]]:
    """
    Yield landmark sets from a JSON-lines recording. Each non-blank line is either a
    landmark set or an object with a "landmarks" key holding one.
    """
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
                if isinstance(obj, dict) and "landmarks" in obj:
                    obj = obj["landmarks"]
                yield landmarks_from_json(obj)
            except (ValueError, KeyError, TypeError) as exc:
                raise ValueError(f"{path}:{lineno}: bad landmark frame ({exc})") from exc


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Replay recorded landmarks (or a video) through the rep counter.")
    parser.add_argument("--exercise", default="bicep_curl", help="Exercise id (see --list-exercises).")
    parser.add_argument("--side", default="left", choices=["left", "right"], help="Tracked body side.")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--jsonl", type=Path, help="JSON-lines file with one landmark set per line.")
    src.add_argument("--video", type=Path, help="Video file; landmarks come from MediaPipe (needs repify[pose]).")
    parser.add_argument("--target-fps", type=float, default=0.0, help="Decimate video frames to about this rate.")
    parser.add_argument("--exercises", type=Path, help="JSON exercise table replacing the built-in one.")
    parser.add_argument("--min-confidence", type=float, default=0.0, help="Treat landmarks below this as missing.")
    parser.add_argument("--list-exercises", action="store_true", help="Print the exercise table and exit.")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    try:
        table = load_exercises(args.exercises) if args.exercises else EXERCISES
    except ConfigurationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.list_exercises:
        print(json.dumps({k: v.to_dict() for k, v in table.items()}, indent=2))
        return 0

    if args.jsonl:
        frames = iter_jsonl_frames(args.jsonl)
    elif args.video:
        from pose.backend import iter_video_landmarks

        frames = iter_video_landmarks(args.video, target_fps=args.target_fps or None)
    else:
        parser.error("one of --jsonl or --video is required")

    try:
        result = count_reps(
            frames, args.exercise, args.side, exercises=table, min_confidence=args.min_confidence
        )
    except (ConfigurationError, ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    logger.info("Counted %d reps", result["summary"]["total_reps"])
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
