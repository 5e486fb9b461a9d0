from __future__ import annotations

import json
import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Tuple, Union

from pose.backend import (
    L_ANKLE,
    L_ELBOW,
    L_HIP,
    L_KNEE,
    L_SHOULDER,
    L_WRIST,
    R_ANKLE,
    R_ELBOW,
    R_HIP,
    R_KNEE,
    R_SHOULDER,
    R_WRIST,
)


class ConfigurationError(ValueError):
    """Raised when an exercise selection or exercise table is invalid."""


class Side(str, Enum):
    LEFT = "left"    # primary
    RIGHT = "right"  # mirrored

    @classmethod
    def parse(cls, value: Union["Side", str]) -> "Side":
        if isinstance(value, Side):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(f"unknown side {value!r}; expected 'left' or 'right'") from None


# (proximal, vertex, distal) landmark ids
LandmarkTriple = Tuple[int, int, int]


@dataclass(frozen=True)
class ExerciseDefinition:
    """Thresholds (degrees) and landmark triples for one exercise."""
    name: str
    landmarks: LandmarkTriple           # primary (left) side
    landmarks_mirrored: LandmarkTriple  # mirrored (right) side
    extended_threshold: float    # joint counts as extended above this angle
    contracted_threshold: float  # joint counts as contracted below this angle
    instructions: str = ""

    def landmarks_for(self, side: Union[Side, str]) -> LandmarkTriple:
        return self.landmarks if Side.parse(side) is Side.LEFT else self.landmarks_mirrored

    def validate(self) -> None:
        for triple in (self.landmarks, self.landmarks_mirrored):
            if len(triple) != 3:
                raise ConfigurationError(f"{self.name}: landmark triple must name 3 landmarks, got {triple!r}")
        if not (math.isfinite(self.extended_threshold) and math.isfinite(self.contracted_threshold)):
            raise ConfigurationError(f"{self.name}: thresholds must be finite numbers")
        if self.contracted_threshold >= self.extended_threshold:
            raise ConfigurationError(
                f"{self.name}: contracted threshold ({self.contracted_threshold}) must be below "
                f"extended threshold ({self.extended_threshold})"
            )

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "landmarks": list(self.landmarks),
            "landmarks_mirrored": list(self.landmarks_mirrored),
            "extended": self.extended_threshold,
            "contracted": self.contracted_threshold,
            "instructions": self.instructions,
        }


_ARM = (L_SHOULDER, L_ELBOW, L_WRIST)
_ARM_MIRRORED = (R_SHOULDER, R_ELBOW, R_WRIST)
_LEG = (L_HIP, L_KNEE, L_ANKLE)
_LEG_MIRRORED = (R_HIP, R_KNEE, R_ANKLE)

EXERCISES: Mapping[str, ExerciseDefinition] = MappingProxyType({
    "bicep_curl": ExerciseDefinition(
        name="Bicep Curl",
        landmarks=_ARM,
        landmarks_mirrored=_ARM_MIRRORED,
        extended_threshold=160.0,
        contracted_threshold=50.0,
        instructions="Stand sideways to camera. Keep elbow stationary, curl weight up fully.",
    ),
    "squat": ExerciseDefinition(
        name="Squat",
        landmarks=_LEG,
        landmarks_mirrored=_LEG_MIRRORED,
        extended_threshold=160.0,
        contracted_threshold=90.0,
        instructions="Face camera. Squat down until thighs parallel to ground.",
    ),
    "shoulder_press": ExerciseDefinition(
        name="Shoulder Press",
        landmarks=_ARM,
        landmarks_mirrored=_ARM_MIRRORED,
        extended_threshold=160.0,
        contracted_threshold=90.0,
        instructions="Face camera. Press weight overhead until arms fully extended.",
    ),
    "pushup": ExerciseDefinition(
        name="Push-up",
        landmarks=_ARM,
        landmarks_mirrored=_ARM_MIRRORED,
        extended_threshold=160.0,
        contracted_threshold=90.0,
        instructions="Side view. Lower chest to ground, push back up.",
    ),
    "lunge": ExerciseDefinition(
        name="Lunge",
        landmarks=_LEG,
        landmarks_mirrored=_LEG_MIRRORED,
        extended_threshold=160.0,
        contracted_threshold=90.0,
        instructions="Side view. Step forward and lower back knee toward ground.",
    ),
})


def get_exercise(
    exercise_id: str, table: Mapping[str, ExerciseDefinition] = EXERCISES
) -> ExerciseDefinition:
    try:
        return table[exercise_id]
    except KeyError:
        known = ", ".join(sorted(table))
        raise ConfigurationError(f"unknown exercise {exercise_id!r} (known: {known})") from None


def _parse_triple(raw: object, field: str, exercise_id: str) -> LandmarkTriple:
    if not isinstance(raw, (list, tuple)) or len(raw) != 3:
        raise ConfigurationError(f"{exercise_id}: '{field}' must be a list of 3 landmark ids")
    try:
        a, b, c = (int(v) for v in raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{exercise_id}: '{field}' must contain integers") from exc
    return (a, b, c)


def parse_exercises(data: object) -> Mapping[str, ExerciseDefinition]:
    """
    Build a read-only exercise table from decoded JSON:
    {id: {name, landmarks, landmarks_mirrored, extended, contracted, instructions?}}
    Every definition is validated eagerly.
    """
    if not isinstance(data, Mapping) or not data:
        raise ConfigurationError("exercise table must be a non-empty JSON object")

    table: Dict[str, ExerciseDefinition] = {}
    for exercise_id, entry in data.items():
        if not isinstance(entry, Mapping):
            raise ConfigurationError(f"{exercise_id}: definition must be an object")
        missing = [k for k in ("landmarks", "landmarks_mirrored", "extended", "contracted") if k not in entry]
        if missing:
            raise ConfigurationError(f"{exercise_id}: missing keys {missing}")
        try:
            extended = float(entry["extended"])
            contracted = float(entry["contracted"])
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"{exercise_id}: thresholds must be numbers") from exc
        definition = ExerciseDefinition(
            name=str(entry.get("name", exercise_id)),
            landmarks=_parse_triple(entry["landmarks"], "landmarks", exercise_id),
            landmarks_mirrored=_parse_triple(entry["landmarks_mirrored"], "landmarks_mirrored", exercise_id),
            extended_threshold=extended,
            contracted_threshold=contracted,
            instructions=str(entry.get("instructions", "")),
        )
        definition.validate()
        table[str(exercise_id)] = definition
    return MappingProxyType(table)


def load_exercises(path: Union[str, Path]) -> Mapping[str, ExerciseDefinition]:
    """Load and validate an exercise table from a JSON file."""
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"cannot read exercise table {p}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"exercise table {p} is not valid JSON: {exc}") from exc
    return parse_exercises(data)
