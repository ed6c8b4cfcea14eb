"""疲劳检测流水线：关键点 → EAR/偏航 → 融合 → 平滑 → 状态机"""

import logging
import threading
from typing import Optional, Sequence

from detectors.eye_analyzer import EyeAnalyzer
from detectors.eye_fuser import YawAdaptiveFuser
from detectors.head_pose_analyzer import HeadPoseAnalyzer
from evaluators.eye_state_tracker import DrowsinessListener, EyeStateTracker
from filters.ear_smoother import EarSmoother
from models.data_models import DrowsinessState, FrameResult

logger = logging.getLogger(__name__)

SMOOTHING_WINDOW = 3
NO_FACE_GRACE_FRAMES = 8


class SleepDetector:
    """逐帧驱动检测流水线，并处理人脸丢失宽限期。

    关键点回调可能运行在独立线程上，所有调用通过同一把锁串行执行。
    """

    def __init__(
        self,
        listener: Optional[DrowsinessListener],
        smoothing_window: int = SMOOTHING_WINDOW,
        no_face_grace_frames: int = NO_FACE_GRACE_FRAMES,
        **tracker_options,
    ):
        if no_face_grace_frames < 1:
            raise ValueError(f"人脸丢失宽限帧数必须 >= 1: {no_face_grace_frames}")

        self.no_face_grace_frames = no_face_grace_frames
        self.eye_analyzer = EyeAnalyzer()
        self.head_pose_analyzer = HeadPoseAnalyzer()
        self.fuser = YawAdaptiveFuser()
        self.smoother = EarSmoother(smoothing_window)
        self.tracker = EyeStateTracker(listener, **tracker_options)
        self._lock = threading.Lock()
        self._no_face_frames = 0

    def process_landmarks(
        self,
        landmarks: Optional[Sequence[Sequence[float]]],
        timestamp_ms: int,
    ) -> Optional[FrameResult]:
        """
        处理一帧关键点。

        Args:
            landmarks: 归一化人脸关键点序列；未检测到人脸时为 None 或空序列
            timestamp_ms: 帧时间戳（毫秒，单调不减）

        Returns:
            FrameResult；处理失败时记录日志并返回 None
        """
        with self._lock:
            try:
                if landmarks is None or len(landmarks) == 0:
                    return self._handle_no_face()
                return self._handle_face(landmarks, timestamp_ms)
            except Exception:
                logger.exception("帧处理失败 (timestamp=%s)", timestamp_ms)
                return None

    def reset(self) -> None:
        """重新开始校准"""
        with self._lock:
            self._no_face_frames = 0
            self.smoother.reset()
            self.tracker.reset()

    @property
    def calibration_progress(self) -> float:
        return self.tracker.calibration_progress

    @property
    def baseline(self) -> float:
        return self.tracker.baseline

    @property
    def current_state(self) -> DrowsinessState:
        return self.tracker.current_state

    def _handle_no_face(self) -> FrameResult:
        self._no_face_frames += 1
        if self._no_face_frames >= self.no_face_grace_frames:
            self.smoother.reset()
            self.tracker.on_face_not_detected()
        return FrameResult(face_detected=False, state=self.tracker.current_state)

    def _handle_face(self, landmarks, timestamp_ms: int) -> FrameResult:
        self._no_face_frames = 0

        eyes = self.eye_analyzer.analyze(landmarks)
        yaw = self.head_pose_analyzer.estimate_yaw(landmarks)
        fusion = self.fuser.fuse(eyes.left_ear, eyes.right_ear, yaw)
        smoothed = self.smoother.add(fusion.ratio)

        self.tracker.update(smoothed, timestamp_ms, fusion.calibration_eligible)

        logger.debug(
            "EAR L=%.3f R=%.3f blend=%.3f smooth=%.3f yaw=%.2f near=%s state=%s",
            eyes.left_ear, eyes.right_ear, fusion.ratio, smoothed, yaw,
            fusion.near_eye, self.tracker.phase_name,
        )

        return FrameResult(
            face_detected=True,
            state=self.tracker.current_state,
            left_ear=eyes.left_ear,
            right_ear=eyes.right_ear,
            yaw=yaw,
            fused_ear=fusion.ratio,
            smoothed_ear=smoothed,
            near_eye=fusion.near_eye,
        )
