from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from pose.backend import Keypoint


class KeypointIn(BaseModel):
    x: float
    y: float
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    visibility: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    def to_keypoint(self) -> Keypoint:
        conf = self.confidence if self.confidence is not None else self.visibility
        return Keypoint(x=self.x, y=self.y, confidence=1.0 if conf is None else conf)


class FrameIn(BaseModel):
    landmarks: Dict[int, Optional[KeypointIn]] = Field(default_factory=dict)
    frame_idx: Optional[int] = Field(default=None, ge=0)

    def to_landmark_set(self) -> Dict[int, Optional[Keypoint]]:
        return {idx: (kp.to_keypoint() if kp is not None else None) for idx, kp in self.landmarks.items()}


class StartSessionRequest(BaseModel):
    exercise_id: str
    side: str = "left"


class ExerciseOut(BaseModel):
    exercise_id: str
    name: str
    landmarks: List[int]
    landmarks_mirrored: List[int]
    extended: float
    contracted: float
    instructions: str = ""


class SnapshotResponse(BaseModel):
    state: str
    angle: Optional[float] = None
    rep_count: int = Field(0, ge=0)
    rep_completed: bool = False
    frame_idx: int


class SessionResponse(BaseModel):
    session_id: str
    exercise_id: Optional[str] = None
    exercise: Optional[str] = None
    side: str
    tracking: bool
    state: str
    total_reps: int = Field(0, ge=0)
    last_angle: Optional[float] = None
    frames_seen: int = Field(0, ge=0)
    frames_skipped: int = Field(0, ge=0)
    elapsed_seconds: float = Field(0.0, ge=0.0)
    elapsed: str
    seconds_per_rep: Optional[float] = None


class RepEventOut(BaseModel):
    exercise_id: str
    side: str
    rep_count: int
    angle: float
    frame_idx: int
    elapsed_seconds: float


class AnalyzeRequest(BaseModel):
    exercise_id: str
    side: str = "left"
    frames: List[FrameIn]


class AnalyzeSummary(BaseModel):
    total_reps: int = Field(0, ge=0)
    frames_processed: int = Field(0, ge=0)
    frames_skipped: int = Field(0, ge=0)
    min_angle: Optional[float] = None
    max_angle: Optional[float] = None
    common_issues: List[str] = Field(default_factory=list)


class RepRecord(BaseModel):
    frame_index: int
    rep_id: int
    angle: float


class AnalyzeResponse(BaseModel):
    session_id: str
    exercise: str
    side: str
    summary: AnalyzeSummary
    frame_data: List[RepRecord]
