"""眼睛状态分析模块，负责从人脸关键点计算双眼 EAR 值"""

import math
from typing import Sequence

from models.data_models import EyeGeometry, EyeResult

# MediaPipe 478 点人脸网格索引（左右以被测者自身为准）
LEFT_EYE = EyeGeometry(lateral=362, upper_1=385, upper_2=387, medial=263, lower_1=373, lower_2=380)
RIGHT_EYE = EyeGeometry(lateral=33, upper_1=160, upper_2=158, medial=133, lower_1=153, lower_2=144)


def _distance(a: Sequence[float], b: Sequence[float]) -> float:
    """两个归一化关键点之间的 2D 欧氏距离（忽略深度）"""
    return math.hypot(a[0] - b[0], a[1] - b[1])


def calculate_ear(landmarks: Sequence[Sequence[float]], geometry: EyeGeometry) -> float:
    """
    计算单只眼睛的 EAR 值。

    公式: EAR = (|upper_1-lower_1| + |upper_2-lower_2|) / (2 * |lateral-medial|)

    Args:
        landmarks: 整张人脸的关键点序列，每个元素为 (x, y) 或 (x, y, z)
        geometry: 该眼睛的 6 个关键点索引

    Returns:
        EAR 值，分母为零时返回 0.0
    """
    vertical_1 = _distance(landmarks[geometry.upper_1], landmarks[geometry.lower_1])
    vertical_2 = _distance(landmarks[geometry.upper_2], landmarks[geometry.lower_2])
    horizontal = _distance(landmarks[geometry.lateral], landmarks[geometry.medial])

    if horizontal == 0.0:
        return 0.0

    return (vertical_1 + vertical_2) / (2.0 * horizontal)


class EyeAnalyzer:
    """按固定索引计算左右眼 EAR"""

    def __init__(self, left_eye: EyeGeometry = LEFT_EYE, right_eye: EyeGeometry = RIGHT_EYE):
        self.left_eye = left_eye
        self.right_eye = right_eye

    def analyze(self, landmarks: Sequence[Sequence[float]]) -> EyeResult:
        """
        分析双眼张开程度。

        Args:
            landmarks: 整张人脸的关键点序列

        Returns:
            EyeResult(left_ear, right_ear)
        """
        return EyeResult(
            left_ear=calculate_ear(landmarks, self.left_eye),
            right_ear=calculate_ear(landmarks, self.right_eye),
        )
