from __future__ import annotations

import numpy as np
import pytest

from pose.backend import PoseBackend, iter_video_landmarks


class _Result:
    pose_landmarks = None


class _CountingPose:
    def __init__(self) -> None:
        self.calls = 0

    def process(self, frame_rgb):
        self.calls += 1
        return _Result()


def _write_video(path, frames: int = 6, fps: float = 30.0) -> None:
    cv2 = pytest.importorskip("cv2", reason="opencv-python not installed; integration test skipped")
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), fps, (64, 48))
    if not writer.isOpened():
        pytest.skip("OpenCV build cannot write MJPG video")
    for i in range(frames):
        writer.write(np.full((48, 64, 3), i * 20, dtype=np.uint8))
    writer.release()


@pytest.mark.integration
def test_iter_video_landmarks_with_stride(tmp_path):
    video = tmp_path / "clip.avi"
    _write_video(video, frames=6, fps=30.0)

    model = _CountingPose()
    sets = list(iter_video_landmarks(video, target_fps=15.0, backend_factory=lambda: PoseBackend(pose_model=model)))
    assert sets == [{}, {}, {}]
    assert model.calls == 3


@pytest.mark.integration
def test_iter_video_landmarks_missing_file(tmp_path):
    pytest.importorskip("cv2", reason="opencv-python not installed; integration test skipped")
    with pytest.raises(RuntimeError):
        next(iter_video_landmarks(tmp_path / "nope.avi"))


@pytest.mark.integration
@pytest.mark.slow
def test_mediapipe_backend_on_blank_frame():
    pytest.importorskip("mediapipe", reason="mediapipe not installed; integration test skipped")
    with PoseBackend(model_complexity=0) as backend:
        kps = backend.infer(np.zeros((96, 96, 3), dtype=np.uint8))
    # A blank frame holds no person; whatever comes back must be a valid landmark set
    assert isinstance(kps, dict)
    for kp in kps.values():
        assert 0.0 <= kp.x <= 1.0 and 0.0 <= kp.y <= 1.0
