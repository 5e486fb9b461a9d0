from __future__ import annotations

import uuid
from typing import Dict, Iterable, List, Mapping, Union

import numpy as np

from pose.backend import LandmarkSet
from .engine import RepEngine, RepEvent
from .exercises import EXERCISES, ExerciseDefinition, Side, get_exercise


def count_reps(
    frames_iter: Iterable[LandmarkSet],
    exercise_id: str,
    side: Union[Side, str] = Side.LEFT,
    *,
    exercises: Mapping[str, ExerciseDefinition] = EXERCISES,
    min_confidence: float = 0.0,
) -> Dict[str, object]:
    """
    Count reps over a recorded stream of landmark sets and return a JSON-serializable dict.

    Output structure (example):
    {
      "session_id": "<uuid4>",
      "exercise": "bicep_curl",
      "side": "left",
      "summary": {"total_reps": 3, "frames_processed": 240, "frames_skipped": 12,
                  "min_angle": 38.2, "max_angle": 171.0, "common_issues": []},
      "frame_data": [{"frame_index": 57, "rep_id": 1, "angle": 44.1}, ...]
    }

    Raises ConfigurationError for an unknown exercise or side.
    """
    engine = RepEngine(exercises, min_confidence=min_confidence)
    engine.start(exercise_id, side)

    frame_records: List[Dict[str, object]] = []

    def on_rep(event: RepEvent) -> None:
        frame_records.append(
            {"frame_index": event.frame_idx, "rep_id": event.rep_count, "angle": float(event.angle)}
        )

    engine.add_listener(on_rep)

    angles: List[float] = []
    for frame_idx, landmarks in enumerate(frames_iter):
        skipped_before = engine.session.frames_skipped
        snap = engine.process_frame(landmarks, frame_idx=frame_idx)
        if engine.session.frames_skipped == skipped_before and snap.angle is not None:
            angles.append(float(snap.angle))
    engine.stop()

    exercise = get_exercise(exercise_id, exercises)
    session = engine.session
    issues: List[str] = []
    if angles:
        arr = np.asarray(angles, dtype=float)
        min_angle = float(np.min(arr))
        max_angle = float(np.max(arr))
        if max_angle <= exercise.extended_threshold:
            issues.append("NEVER_EXTENDED")
        elif min_angle >= exercise.contracted_threshold:
            issues.append("INSUFFICIENT_CONTRACTION")
    else:
        min_angle = max_angle = None
        issues.append("NO_JOINT_SIGNAL")

    return {
        "session_id": str(uuid.uuid4()),
        "exercise": exercise_id,
        "side": engine.side.value,
        "summary": {
            "total_reps": int(session.reps),
            "frames_processed": int(session.frames_seen),
            "frames_skipped": int(session.frames_skipped),
            "min_angle": min_angle,
            "max_angle": max_angle,
            "common_issues": issues,
        },
        "frame_data": frame_records,
    }
