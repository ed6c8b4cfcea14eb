"""人脸关键点检测模块，基于 MediaPipe FaceMesh"""

from typing import List, Optional, Tuple

import cv2
import mediapipe as mp
import numpy as np

# refine_landmarks=True 时输出 478 个点（含虹膜）
NUM_LANDMARKS = 478


class FaceDetector:
    """使用 MediaPipe FaceMesh 检测单个人脸的归一化关键点"""

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ):
        """初始化 MediaPipe FaceMesh"""
        self._face_mesh = mp.solutions.face_mesh.FaceMesh(
            max_num_faces=1,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
            refine_landmarks=True,
        )

    def detect(self, frame: np.ndarray) -> Optional[List[Tuple[float, float]]]:
        """
        检测单帧图像中的人脸关键点。

        Args:
            frame: BGR 格式的 OpenCV 图像帧

        Returns:
            归一化坐标 [(x, y), ...]；未检测到人脸时返回 None
        """
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb_frame.flags.writeable = False

        results = self._face_mesh.process(rgb_frame)

        if not results.multi_face_landmarks:
            return None

        face = results.multi_face_landmarks[0]
        return [(lm.x, lm.y) for lm in face.landmark]

    def close(self):
        """释放 MediaPipe 资源"""
        self._face_mesh.close()
