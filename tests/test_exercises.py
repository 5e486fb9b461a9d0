from __future__ import annotations

import json

import pytest

from analysis.exercises import (
    EXERCISES,
    ConfigurationError,
    ExerciseDefinition,
    Side,
    get_exercise,
    load_exercises,
    parse_exercises,
)
from pose.backend import L_ELBOW, L_SHOULDER, L_WRIST, R_ANKLE, R_HIP, R_KNEE


def test_builtin_table_is_valid():
    assert {"bicep_curl", "squat", "shoulder_press", "pushup", "lunge"} <= set(EXERCISES)
    for definition in EXERCISES.values():
        definition.validate()
        assert definition.contracted_threshold < definition.extended_threshold


def test_builtin_table_is_read_only():
    with pytest.raises(TypeError):
        EXERCISES["plank"] = EXERCISES["squat"]  # type: ignore[index]


def test_bicep_curl_thresholds_and_sides():
    curl = get_exercise("bicep_curl")
    assert curl.extended_threshold == 160.0
    assert curl.contracted_threshold == 50.0
    assert curl.landmarks_for(Side.LEFT) == (L_SHOULDER, L_ELBOW, L_WRIST)
    assert get_exercise("squat").landmarks_for("right") == (R_HIP, R_KNEE, R_ANKLE)


def test_unknown_exercise_is_configuration_error():
    with pytest.raises(ConfigurationError):
        get_exercise("deadlift")


def test_side_parse():
    assert Side.parse("LEFT") is Side.LEFT
    assert Side.parse(" right ") is Side.RIGHT
    with pytest.raises(ConfigurationError):
        Side.parse("middle")


def test_validate_rejects_inverted_thresholds():
    bad = ExerciseDefinition(
        name="Broken",
        landmarks=(11, 13, 15),
        landmarks_mirrored=(12, 14, 16),
        extended_threshold=90.0,
        contracted_threshold=90.0,
    )
    with pytest.raises(ConfigurationError):
        bad.validate()


def test_load_exercises_from_json(tmp_path):
    path = tmp_path / "exercises.json"
    path.write_text(
        json.dumps(
            {
                "hammer_curl": {
                    "name": "Hammer Curl",
                    "landmarks": [11, 13, 15],
                    "landmarks_mirrored": [12, 14, 16],
                    "extended": 155,
                    "contracted": 60,
                }
            }
        ),
        encoding="utf-8",
    )
    table = load_exercises(path)
    curl = get_exercise("hammer_curl", table)
    assert curl.name == "Hammer Curl"
    assert curl.landmarks_mirrored == (12, 14, 16)
    assert curl.contracted_threshold == 60.0
    assert curl.instructions == ""


@pytest.mark.parametrize(
    "data",
    [
        {},
        [],
        {"x": {"landmarks": [1, 2], "landmarks_mirrored": [1, 2, 3], "extended": 160, "contracted": 50}},
        {"x": {"landmarks": [1, 2, 3], "landmarks_mirrored": [1, 2, 3], "extended": 50, "contracted": 160}},
        {"x": {"landmarks": [1, 2, 3], "landmarks_mirrored": [1, 2, 3], "extended": "high", "contracted": 50}},
        {"x": {"landmarks": [1, 2, 3], "extended": 160, "contracted": 50}},
    ],
)
def test_parse_exercises_rejects_bad_tables(data):
    with pytest.raises(ConfigurationError):
        parse_exercises(data)


def test_load_exercises_bad_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_exercises(path)
    with pytest.raises(ConfigurationError):
        load_exercises(tmp_path / "missing.json")
