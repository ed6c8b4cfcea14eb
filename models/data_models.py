"""核心数据模型定义"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

# 无法获得 EAR 时（例如未检测到人脸）事件中携带的占位值
NO_RATIO = -1.0


class DrowsinessState(Enum):
    """对外可见的疲劳状态"""
    AWAKE = "Awake"
    DROWSY = "Drowsy"
    FACE_NOT_DETECTED = "Face Not Detected"

    @property
    def label(self) -> str:
        return self.value


@dataclass(frozen=True)
class DrowsinessEvent:
    """状态变化事件，仅在状态真正切换时发出"""
    state: DrowsinessState
    ratio: float = NO_RATIO


@dataclass(frozen=True)
class EyeGeometry:
    """单只眼睛的 6 个关键点索引（一对水平眼角 + 两对上下眼睑）"""
    lateral: int
    upper_1: int
    upper_2: int
    medial: int
    lower_1: int
    lower_2: int


@dataclass
class EyeResult:
    """双眼 EAR 计算结果"""
    left_ear: float
    right_ear: float


@dataclass
class FusionResult:
    """偏航自适应融合结果"""
    ratio: float
    calibration_eligible: bool
    near_eye: str  # "both" | "left" | "right"


@dataclass
class FrameResult:
    """单帧处理结果，供界面显示和 Web API 使用"""
    face_detected: bool
    state: DrowsinessState
    left_ear: float = 0.0
    right_ear: float = 0.0
    yaw: float = 0.0
    fused_ear: float = 0.0
    smoothed_ear: float = 0.0
    near_eye: str = "both"


# ---- 状态机阶段（每个阶段只携带该阶段有效的数据） ----

@dataclass(frozen=True)
class Calibrating:
    """校准阶段：累计正脸帧的 EAR"""
    total: float = 0.0
    count: int = 0
    name = "CALIBRATING"


@dataclass(frozen=True)
class Awake:
    name = "AWAKE"


@dataclass(frozen=True)
class EyesClosedPending:
    """EAR 已低于闭眼阈值，等待判断是眨眼还是疲劳"""
    closed_since_ms: int
    name = "EYES_CLOSED_PENDING"


@dataclass(frozen=True)
class Drowsy:
    closed_since_ms: int
    name = "DROWSY"


TrackerPhase = Union[Calibrating, Awake, EyesClosedPending, Drowsy]


@dataclass
class TrackerState:
    """状态机的全部可变状态"""
    phase: TrackerPhase
    baseline: float
    close_threshold: float
    open_threshold: float
    last_reported: Optional[DrowsinessState] = None
