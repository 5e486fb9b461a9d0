from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, Mapping, Optional, Sequence, Union

import numpy as np


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float
    confidence: float = 1.0


# A landmark set is either keyed by landmark id or a list indexed by landmark id
LandmarkSet = Union[Mapping[int, Optional[Keypoint]], Sequence[Optional[Keypoint]]]


# MediaPipe BlazePose landmark indices (subset used by the exercise table)
NUM_LANDMARKS = 33
L_SHOULDER, R_SHOULDER = 11, 12
L_ELBOW, R_ELBOW = 13, 14
L_WRIST, R_WRIST = 15, 16
L_HIP, R_HIP = 23, 24
L_KNEE, R_KNEE = 25, 26
L_ANKLE, R_ANKLE = 27, 28


def _clamp01(v: float) -> float:
    return 0.0 if np.isnan(v) else max(0.0, min(1.0, v))


def keypoint_from_json(obj: object) -> Optional[Keypoint]:
    """
    Parse one landmark from JSON.

    Accepts {"x", "y", "visibility"|"confidence"} objects or [x, y(, confidence)] lists.
    None stays None (undetected landmark).
    """
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        x, y = obj.get("x"), obj.get("y")
        conf = obj.get("confidence")
        if conf is None:
            conf = obj.get("visibility")
    elif isinstance(obj, (list, tuple)) and len(obj) in (2, 3):
        x, y = obj[0], obj[1]
        conf = obj[2] if len(obj) == 3 else None
    else:
        raise ValueError(f"unsupported landmark encoding: {obj!r}")

    if x is None or y is None:
        raise ValueError(f"landmark is missing a coordinate: {obj!r}")
    try:
        return Keypoint(x=float(x), y=float(y), confidence=1.0 if conf is None else float(conf))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"landmark values must be numbers: {obj!r}") from exc


def landmarks_from_json(obj: object) -> Dict[int, Optional[Keypoint]]:
    """Parse a JSON landmark set: an object keyed by landmark id, or a list indexed by id."""
    if isinstance(obj, Mapping):
        return {int(k): keypoint_from_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return {idx: keypoint_from_json(v) for idx, v in enumerate(obj)}
    raise ValueError("landmark set must be a JSON object or array")


class PoseBackend:
    """
    Single-person landmark source using MediaPipe BlazePose.

    - Keeps the model warm-loaded after construction
    - Accepts BGR frames (as from OpenCV)
    - Returns a landmark set {id: Keypoint} with normalized coordinates in [0, 1]
    - Undetected landmarks are simply absent; an empty dict means no pose
    """

    NUM_LANDMARKS = NUM_LANDMARKS

    def __init__(
        self,
        model_complexity: int = 1,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        pose_model: Optional[object] = None,
        smooth_landmarks: bool = True,
    ) -> None:
        """
        If pose_model is provided, it must expose a .process(np.ndarray[R,G,B]) -> result
        where result.pose_landmarks is either None or an object with a .landmark list,
        each item having attributes .x, .y and .visibility in [0, 1].
        """
        self._external_model = pose_model is not None
        if pose_model is not None:
            self._pose = pose_model
        else:
            try:
                import mediapipe as mp  # type: ignore
            except ImportError as exc:  # pragma: no cover - exercised only when mediapipe missing
                raise ImportError(
                    "mediapipe is required for PoseBackend. Install with `pip install repify[pose]`"
                ) from exc

            self._pose = mp.solutions.pose.Pose(
                model_complexity=model_complexity,
                enable_segmentation=False,
                smooth_landmarks=smooth_landmarks,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )

    def close(self) -> None:
        """Release the underlying model unless it was injected by the caller."""
        if self._external_model:
            return
        close_fn = getattr(self._pose, "close", None)
        if callable(close_fn):
            close_fn()

    def __enter__(self) -> "PoseBackend":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def infer(self, frame_bgr: np.ndarray) -> Dict[int, Keypoint]:
        """Run single-person pose detection on a BGR image frame."""
        if not isinstance(frame_bgr, np.ndarray) or frame_bgr.ndim < 2:
            raise ValueError("frame_bgr must be an HxWxC numpy array")

        # BGR (OpenCV) -> RGB without requiring cv2
        if frame_bgr.ndim == 3 and frame_bgr.shape[2] >= 3:
            frame_rgb = frame_bgr[..., ::-1]
        else:
            frame_rgb = frame_bgr

        result = self._pose.process(frame_rgb)
        if result is None or getattr(result, "pose_landmarks", None) is None:
            return {}

        landmarks = getattr(result.pose_landmarks, "landmark", None) or []
        keypoints: Dict[int, Keypoint] = {}
        for idx, lm in enumerate(landmarks[: self.NUM_LANDMARKS]):
            keypoints[idx] = Keypoint(
                x=_clamp01(float(getattr(lm, "x", 0.0))),
                y=_clamp01(float(getattr(lm, "y", 0.0))),
                confidence=_clamp01(float(getattr(lm, "visibility", 0.0))),
            )
        return keypoints


def iter_video_landmarks(
    video_path: Union[str, Path],
    *,
    target_fps: Optional[float] = None,
    backend_factory: Callable[[], PoseBackend] = PoseBackend,
) -> Iterator[Dict[int, Keypoint]]:
    """Yield one landmark set per video frame, decimated to roughly target_fps when given."""
    try:
        import cv2  # type: ignore
    except ImportError as exc:  # pragma: no cover - exercised only when opencv missing
        raise ImportError(
            "opencv-python is required to read videos. Install with `pip install repify[pose]`"
        ) from exc

    cap = cv2.VideoCapture(str(video_path))
    if not cap.isOpened():
        raise RuntimeError(f"Failed to open video: {video_path}")

    orig_fps = float(cap.get(cv2.CAP_PROP_FPS) or 0.0)
    stride = 1
    if target_fps and target_fps > 0 and orig_fps > 0:
        stride = max(1, int(round(orig_fps / float(target_fps))))
    logger.info("Reading %s at %.1f fps (stride %d)", video_path, orig_fps, stride)

    try:
        with backend_factory() as backend:
            idx = 0
            while True:
                ok, frame = cap.read()
                if not ok:
                    break
                send = idx % stride == 0
                idx += 1
                if send:
                    yield backend.infer(frame)
    finally:
        cap.release()
