from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Mapping

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from analysis.analyzer import count_reps
from analysis.engine import RepEngine, RepEvent
from analysis.exercises import EXERCISES, ConfigurationError, ExerciseDefinition, load_exercises
from api import settings
from api.logging_config import configure_logging
from api.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    ExerciseOut,
    FrameIn,
    RepEventOut,
    SessionResponse,
    SnapshotResponse,
    StartSessionRequest,
)


configure_logging(settings.REPIFY_LOG_LEVEL)
logger = logging.getLogger(__name__)


def _load_table() -> Mapping[str, ExerciseDefinition]:
    if settings.REPIFY_EXERCISES_PATH:
        table = load_exercises(settings.REPIFY_EXERCISES_PATH)
        logger.info("Loaded %d exercises from %s", len(table), settings.REPIFY_EXERCISES_PATH)
        return table
    return EXERCISES


EXERCISE_TABLE = _load_table()

app = FastAPI(title="Repify API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.REPIFY_CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@dataclass
class _Session:
    engine: RepEngine
    events: List[RepEvent] = field(default_factory=list)


# Each engine is single-threaded; the lock serializes access across request threads
SESSIONS: Dict[str, _Session] = {}
SESSIONS_LOCK = threading.Lock()


def _get_session(session_id: str) -> _Session:
    entry = SESSIONS.get(session_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Unknown session_id")
    return entry


def _session_response(session_id: str, engine: RepEngine) -> SessionResponse:
    return SessionResponse(session_id=session_id, **engine.summary())


@app.get("/health", response_class=PlainTextResponse)
async def health() -> str:
    return "ok"


@app.get("/exercises", response_model=List[ExerciseOut])
async def list_exercises() -> List[ExerciseOut]:
    out = []
    for exercise_id, definition in EXERCISE_TABLE.items():
        out.append(ExerciseOut(exercise_id=exercise_id, **definition.to_dict()))
    return out


@app.post("/sessions", response_model=SessionResponse, status_code=201)
def create_session(req: StartSessionRequest) -> SessionResponse:
    engine = RepEngine(EXERCISE_TABLE, min_confidence=settings.REPIFY_MIN_CONFIDENCE)
    try:
        engine.start(req.exercise_id, req.side)
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    entry = _Session(engine=engine)
    engine.add_listener(entry.events.append)
    session_id = str(uuid.uuid4())
    with SESSIONS_LOCK:
        if len(SESSIONS) >= settings.REPIFY_MAX_SESSIONS:
            raise HTTPException(status_code=429, detail="Too many active sessions")
        SESSIONS[session_id] = entry
    logger.info("Session %s created for %s", session_id, req.exercise_id)
    return _session_response(session_id, engine)


@app.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str) -> SessionResponse:
    with SESSIONS_LOCK:
        entry = _get_session(session_id)
        return _session_response(session_id, entry.engine)


@app.post("/sessions/{session_id}/frames", response_model=SnapshotResponse)
def post_frame(session_id: str, frame: FrameIn) -> SnapshotResponse:
    with SESSIONS_LOCK:
        entry = _get_session(session_id)
        snap = entry.engine.process_frame(frame.to_landmark_set(), frame_idx=frame.frame_idx)
    return SnapshotResponse(**snap.to_dict())


@app.post("/sessions/{session_id}/start", response_model=SessionResponse)
def restart_session(session_id: str, req: StartSessionRequest) -> SessionResponse:
    with SESSIONS_LOCK:
        entry = _get_session(session_id)
        try:
            entry.engine.start(req.exercise_id, req.side)
        except ConfigurationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        entry.events.clear()
        return _session_response(session_id, entry.engine)


@app.post("/sessions/{session_id}/stop", response_model=SessionResponse)
def stop_session(session_id: str) -> SessionResponse:
    with SESSIONS_LOCK:
        entry = _get_session(session_id)
        entry.engine.stop()
        return _session_response(session_id, entry.engine)


@app.post("/sessions/{session_id}/reset", response_model=SessionResponse)
def reset_session(session_id: str) -> SessionResponse:
    with SESSIONS_LOCK:
        entry = _get_session(session_id)
        entry.engine.reset()
        entry.events.clear()
        return _session_response(session_id, entry.engine)


@app.get("/sessions/{session_id}/events", response_model=List[RepEventOut])
def session_events(session_id: str) -> List[RepEventOut]:
    with SESSIONS_LOCK:
        entry = _get_session(session_id)
        return [RepEventOut(**ev.to_dict()) for ev in entry.events]


@app.delete("/sessions/{session_id}", status_code=204)
def delete_session(session_id: str) -> Response:
    with SESSIONS_LOCK:
        if SESSIONS.pop(session_id, None) is None:
            raise HTTPException(status_code=404, detail="Unknown session_id")
    return Response(status_code=204)


@app.post("/analyze", response_model=AnalyzeResponse)
def analyze(req: AnalyzeRequest) -> AnalyzeResponse:
    frames = (f.to_landmark_set() for f in req.frames)
    try:
        result = count_reps(
            frames,
            req.exercise_id,
            req.side,
            exercises=EXERCISE_TABLE,
            min_confidence=settings.REPIFY_MIN_CONFIDENCE,
        )
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return AnalyzeResponse(**result)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings._get_env_int("PORT", 8000))
