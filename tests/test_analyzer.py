from __future__ import annotations

import math
from typing import Dict, List, Optional

import pytest

from analysis.analyzer import count_reps
from analysis.exercises import ConfigurationError
from pose.backend import L_ANKLE, L_HIP, L_KNEE, Keypoint


def _kp(x: float, y: float, c: float = 1.0) -> Keypoint:
    return Keypoint(x=float(x), y=float(y), confidence=float(c))


def _leg(deg: float) -> Dict[int, Optional[Keypoint]]:
    # Knee at (0.5, 0.6); hip straight above, ankle rotated so the knee angle is `deg`
    rad = math.radians(deg)
    return {
        L_HIP: _kp(0.5, 0.3),
        L_KNEE: _kp(0.5, 0.6),
        L_ANKLE: _kp(0.5 + 0.3 * math.sin(rad), 0.6 - 0.3 * math.cos(rad)),
    }


def test_count_reps_schema_and_counts():
    # standing, two squats, a dropout frame, standing
    angles = [175, 170, 120, 80, 150, 172, 85, 170]
    frames: List[Dict[int, Optional[Keypoint]]] = [_leg(a) for a in angles]
    frames.insert(3, {})

    out = count_reps(frames, "squat", "left")
    assert isinstance(out["session_id"], str)
    assert out["exercise"] == "squat" and out["side"] == "left"

    summary = out["summary"]
    assert summary["total_reps"] == 2
    assert summary["frames_processed"] == len(frames)
    assert summary["frames_skipped"] == 1
    assert summary["min_angle"] == pytest.approx(80.0)
    assert summary["max_angle"] == pytest.approx(175.0)
    assert summary["common_issues"] == []

    fd = out["frame_data"]
    assert [item["rep_id"] for item in fd] == [1, 2]
    assert fd[0]["frame_index"] == 4  # the 80 degree frame, after the inserted dropout
    assert fd[0]["angle"] == pytest.approx(80.0)


def test_count_reps_flags_shallow_reps():
    out = count_reps([_leg(a) for a in [170, 120, 170, 110]], "squat")
    assert out["summary"]["total_reps"] == 0
    assert out["summary"]["common_issues"] == ["INSUFFICIENT_CONTRACTION"]


def test_count_reps_flags_never_extended():
    out = count_reps([_leg(a) for a in [120, 80, 120]], "squat")
    assert out["summary"]["common_issues"] == ["NEVER_EXTENDED"]


def test_count_reps_without_signal():
    out = count_reps([{}, [None] * 33], "lunge", "right")
    assert out["summary"]["total_reps"] == 0
    assert out["summary"]["min_angle"] is None
    assert out["summary"]["common_issues"] == ["NO_JOINT_SIGNAL"]


def test_count_reps_unknown_exercise():
    with pytest.raises(ConfigurationError):
        count_reps([], "burpee")
