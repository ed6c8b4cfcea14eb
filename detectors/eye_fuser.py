"""偏航自适应 EAR 融合模块

侧脸时远端眼睛在画面中被压缩，其 2D EAR 不可靠，因此随偏航增大逐步只信任近端眼睛：

    |yaw| < 0.20          双眼平均（正脸）
    0.20 <= |yaw| < 0.35  从 50/50 线性过渡到近端眼睛
    |yaw| >= 0.35         只使用近端眼睛
"""

from models.data_models import FusionResult

YAW_BOTH_EYES = 0.20
YAW_NEAR_EYE_ONLY = 0.35
# 校准只接受比融合阈值更严格的正脸帧
YAW_CALIBRATION_MAX = 0.15


class YawAdaptiveFuser:
    """根据头部偏航融合左右眼 EAR"""

    def fuse(self, left_ear: float, right_ear: float, yaw: float) -> FusionResult:
        """
        融合双眼 EAR。

        Args:
            left_ear: 左眼 EAR
            right_ear: 右眼 EAR
            yaw: 偏航比例，正值时左眼为近端，负值时右眼为近端

        Returns:
            FusionResult(ratio, calibration_eligible, near_eye)
        """
        abs_yaw = abs(yaw)
        eligible = abs_yaw < YAW_CALIBRATION_MAX

        if abs_yaw < YAW_BOTH_EYES:
            return FusionResult(
                ratio=(left_ear + right_ear) / 2.0,
                calibration_eligible=eligible,
                near_eye="both",
            )

        if yaw > 0:
            near_eye, near_ear, far_ear = "left", left_ear, right_ear
        else:
            near_eye, near_ear, far_ear = "right", right_ear, left_ear

        if abs_yaw >= YAW_NEAR_EYE_ONLY:
            ratio = near_ear
        else:
            t = (abs_yaw - YAW_BOTH_EYES) / (YAW_NEAR_EYE_ONLY - YAW_BOTH_EYES)
            near_weight = 0.5 + 0.5 * t
            ratio = near_ear * near_weight + far_ear * (1.0 - near_weight)

        return FusionResult(ratio=ratio, calibration_eligible=eligible, near_eye=near_eye)
