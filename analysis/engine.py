from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

from pose.backend import Keypoint, LandmarkSet
from .exercises import EXERCISES, ExerciseDefinition, Side, get_exercise
from .geometry import joint_angle


logger = logging.getLogger(__name__)


class RepState(str, Enum):
    WAITING = "waiting"
    EXTENDED = "extended"
    CONTRACTED = "contracted"


@dataclass
class RepSession:
    state: RepState = RepState.WAITING
    reps: int = 0
    last_angle: Optional[float] = None
    frame_idx: int = -1
    frames_seen: int = 0
    frames_skipped: int = 0
    started_at: Optional[float] = None
    stopped_at: Optional[float] = None


@dataclass(frozen=True)
class RepSnapshot:
    state: RepState
    angle: Optional[float]
    rep_count: int
    rep_completed: bool
    frame_idx: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "state": self.state.value,
            "angle": self.angle,
            "rep_count": self.rep_count,
            "rep_completed": self.rep_completed,
            "frame_idx": self.frame_idx,
        }


@dataclass(frozen=True)
class RepEvent:
    exercise_id: str
    side: Side
    rep_count: int
    angle: float
    frame_idx: int
    elapsed_seconds: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "exercise_id": self.exercise_id,
            "side": self.side.value,
            "rep_count": self.rep_count,
            "angle": self.angle,
            "frame_idx": self.frame_idx,
            "elapsed_seconds": self.elapsed_seconds,
        }


RepListener = Callable[[RepEvent], None]


def format_duration(seconds: float) -> str:
    """Format elapsed seconds as m:ss."""
    total = max(0, int(seconds))
    mins, secs = divmod(total, 60)
    return f"{mins}:{secs:02d}"


def _lookup(landmarks: LandmarkSet, idx: int) -> Optional[Keypoint]:
    if isinstance(landmarks, Mapping):
        return landmarks.get(idx)
    if 0 <= idx < len(landmarks):
        return landmarks[idx]
    return None


class RepEngine:
    """
    Rep counter for one exercise/side using joint angle with hysteresis.

    - When angle > extended_threshold and not already extended: enter EXTENDED
    - When angle < contracted_threshold while EXTENDED: enter CONTRACTED, count a rep
    - Anything in between (or a contraction seen before any extension) changes nothing

    Frames with a missing landmark are skipped without touching the state.
    Not thread-safe; callers serialize process_frame.
    """

    def __init__(
        self,
        exercises: Mapping[str, ExerciseDefinition] = EXERCISES,
        *,
        min_confidence: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.exercises = exercises
        self.min_confidence = float(min_confidence)
        self._clock = clock
        self.session = RepSession()
        self.exercise_id: Optional[str] = None
        self.exercise: Optional[ExerciseDefinition] = None
        self.side: Side = Side.LEFT
        self._triple: Optional[Tuple[int, int, int]] = None
        self._tracking = False
        self._listeners: List[RepListener] = []

    @property
    def is_tracking(self) -> bool:
        return self._tracking

    def add_listener(self, listener: RepListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: RepListener) -> None:
        self._listeners.remove(listener)

    def start(self, exercise_id: str, side: Union[Side, str] = Side.LEFT) -> None:
        """Select an exercise/side and begin a fresh session. Raises ConfigurationError."""
        exercise = get_exercise(exercise_id, self.exercises)
        exercise.validate()
        parsed_side = Side.parse(side)

        self.exercise_id = exercise_id
        self.exercise = exercise
        self.side = parsed_side
        self._triple = exercise.landmarks_for(parsed_side)
        self.session = RepSession(started_at=self._clock())
        self._tracking = True
        logger.info("Tracking %s (%s side)", exercise.name, parsed_side.value)

    def stop(self) -> None:
        if self._tracking:
            self.session.stopped_at = self._clock()
            logger.info("Stopped after %d reps", self.session.reps)
        self._tracking = False

    def reset(self) -> None:
        self.stop()
        self.session.state = RepState.WAITING
        self.session.reps = 0
        self.session.started_at = None
        self.session.stopped_at = None
        self.session.frame_idx = -1
        self.session.frames_seen = 0
        self.session.frames_skipped = 0

    def snapshot(self, *, rep_completed: bool = False) -> RepSnapshot:
        s = self.session
        return RepSnapshot(
            state=s.state,
            angle=s.last_angle,
            rep_count=s.reps,
            rep_completed=rep_completed,
            frame_idx=s.frame_idx,
        )

    def _extract(
        self, landmarks: LandmarkSet, triple: Tuple[int, int, int]
    ) -> Optional[Tuple[Keypoint, Keypoint, Keypoint]]:
        points = []
        for idx in triple:
            kp = _lookup(landmarks, idx)
            if not kp or not (math.isfinite(kp.x) and math.isfinite(kp.y)):
                return None
            if getattr(kp, "confidence", 1.0) < self.min_confidence:
                return None
            points.append(kp)
        return points[0], points[1], points[2]

    def process_frame(self, landmarks: LandmarkSet, *, frame_idx: Optional[int] = None) -> RepSnapshot:
        """Advance the state machine by one frame and return the resulting snapshot."""
        exercise, triple = self.exercise, self._triple
        if not self._tracking or exercise is None or triple is None:
            return self.snapshot()

        s = self.session
        s.frame_idx = int(frame_idx) if frame_idx is not None else s.frame_idx + 1
        s.frames_seen += 1

        points = self._extract(landmarks, triple)
        if points is None:
            s.frames_skipped += 1
            return self.snapshot()

        angle = joint_angle(*points)
        s.last_angle = angle

        rep_completed = False
        if angle > exercise.extended_threshold and s.state is not RepState.EXTENDED:
            s.state = RepState.EXTENDED
        elif angle < exercise.contracted_threshold and s.state is RepState.EXTENDED:
            s.state = RepState.CONTRACTED
            s.reps += 1
            rep_completed = True

        if rep_completed:
            self._notify(angle)
        return self.snapshot(rep_completed=rep_completed)

    def _notify(self, angle: float) -> None:
        s = self.session
        event = RepEvent(
            exercise_id=self.exercise_id or "",
            side=self.side,
            rep_count=s.reps,
            angle=angle,
            frame_idx=s.frame_idx,
            elapsed_seconds=self.elapsed_seconds(),
        )
        logger.info("Rep %d completed at frame %d (angle %.1f)", s.reps, s.frame_idx, angle)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # a failing display/feedback hook must not interrupt counting
                logger.exception("Rep listener %r failed", listener)

    def elapsed_seconds(self) -> float:
        s = self.session
        if s.started_at is None:
            return 0.0
        end = s.stopped_at if s.stopped_at is not None else self._clock()
        return max(0.0, end - s.started_at)

    def seconds_per_rep(self) -> Optional[float]:
        elapsed = self.elapsed_seconds()
        if self.session.reps == 0 or elapsed <= 0:
            return None
        return elapsed / self.session.reps

    def summary(self) -> Dict[str, object]:
        s = self.session
        return {
            "exercise_id": self.exercise_id,
            "exercise": self.exercise.name if self.exercise else None,
            "side": self.side.value,
            "tracking": self._tracking,
            "state": s.state.value,
            "total_reps": s.reps,
            "last_angle": s.last_angle,
            "frames_seen": s.frames_seen,
            "frames_skipped": s.frames_skipped,
            "elapsed_seconds": self.elapsed_seconds(),
            "elapsed": format_duration(self.elapsed_seconds()),
            "seconds_per_rep": self.seconds_per_rep(),
        }
