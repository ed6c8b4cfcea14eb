"""头部姿态分析模块，根据鼻尖与脸部轮廓的水平距离估计偏航比例"""

from typing import Sequence

# 偏航估计关键点
NOSE_TIP = 1
LEFT_FACE_CONTOUR = 234
RIGHT_FACE_CONTOUR = 454


def calculate_yaw_ratio(landmarks: Sequence[Sequence[float]]) -> float:
    """
    估计头部偏航比例，只使用较稳定的 x 坐标。

    Returns:
        [-1, 1] 范围内的偏航比例：0 为正脸，正值为向右转，负值为向左转；
        两侧距离都为零时返回 0.0
    """
    nose_x = landmarks[NOSE_TIP][0]
    left_dist = abs(nose_x - landmarks[LEFT_FACE_CONTOUR][0])
    right_dist = abs(nose_x - landmarks[RIGHT_FACE_CONTOUR][0])
    total = left_dist + right_dist

    if total == 0.0:
        return 0.0

    yaw = (right_dist - left_dist) / total
    return max(-1.0, min(1.0, yaw))


class HeadPoseAnalyzer:
    """头部偏航估计"""

    def estimate_yaw(self, landmarks: Sequence[Sequence[float]]) -> float:
        return calculate_yaw_ratio(landmarks)
