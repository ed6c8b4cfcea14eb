"""自适应校准的闭眼滞回状态机，区分眨眼与持续闭眼

固定 EAR 阈值在实际驾驶中并不可靠：不同人的眼型、摄像头角度和光照都会改变睁眼 EAR。
状态机先在约 2 秒内学习驾驶员本人的睁眼基线，再以基线的比例作为闭眼/睁眼阈值，
并在明显睁眼时缓慢跟踪基线漂移。

阶段:
    CALIBRATING          采集正脸帧的基线 EAR
    AWAKE                正常驾驶
    EYES_CLOSED_PENDING  EAR 低于闭眼阈值，等待判断是眨眼还是疲劳
    DROWSY               闭眼持续时间 >= drowsy_duration_ms
"""

import logging
from typing import Callable, Optional

from models.data_models import (
    NO_RATIO,
    Awake,
    Calibrating,
    DrowsinessEvent,
    DrowsinessState,
    Drowsy,
    EyesClosedPending,
    TrackerState,
)

logger = logging.getLogger(__name__)

CALIBRATION_FRAMES = 60  # 30 fps 下约 2 秒
DEFAULT_BASELINE_EAR = 0.26
BASELINE_MIN = 0.10
BASELINE_MAX = 0.50
CLOSE_RATIO = 0.55
OPEN_RATIO = 0.62
DROWSY_DURATION_MS = 1500
BASELINE_ADAPT_RATE = 0.005

DrowsinessListener = Callable[[DrowsinessEvent], None]


class EyeStateTracker:
    """接收平滑后的 EAR 和调用方提供的时间戳，只在状态真正变化时通知监听器。

    非线程安全：所有 update / on_face_not_detected / reset 调用必须由同一个写入方串行执行。
    """

    def __init__(
        self,
        listener: Optional[DrowsinessListener],
        calibration_frames: int = CALIBRATION_FRAMES,
        default_baseline: float = DEFAULT_BASELINE_EAR,
        close_ratio: float = CLOSE_RATIO,
        open_ratio: float = OPEN_RATIO,
        drowsy_duration_ms: int = DROWSY_DURATION_MS,
        baseline_adapt_rate: float = BASELINE_ADAPT_RATE,
    ):
        if listener is None:
            raise ValueError("必须提供状态变化监听器")
        if not callable(listener):
            raise TypeError(f"监听器必须可调用: {listener!r}")
        if calibration_frames < 1:
            raise ValueError(f"校准帧数必须 >= 1: {calibration_frames}")
        if not 0.0 <= close_ratio < open_ratio:
            raise ValueError(
                f"阈值比例无效: close_ratio={close_ratio}, open_ratio={open_ratio}"
            )
        if not BASELINE_MIN <= default_baseline <= BASELINE_MAX:
            raise ValueError(f"默认基线超出范围 [{BASELINE_MIN}, {BASELINE_MAX}]: {default_baseline}")
        if drowsy_duration_ms <= 0:
            raise ValueError(f"疲劳判定时长必须为正: {drowsy_duration_ms}")
        if not 0.0 < baseline_adapt_rate <= 1.0:
            raise ValueError(f"基线自适应速率必须在 (0, 1] 内: {baseline_adapt_rate}")

        self._listener = listener
        self.calibration_frames = calibration_frames
        self.default_baseline = default_baseline
        self.close_ratio = close_ratio
        self.open_ratio = open_ratio
        self.drowsy_duration_ms = drowsy_duration_ms
        self.baseline_adapt_rate = baseline_adapt_rate

        self._state = TrackerState(
            phase=Calibrating(),
            baseline=default_baseline,
            close_threshold=0.0,
            open_threshold=0.0,
        )
        self._recalculate_thresholds()

    # ---- 对外接口 ----

    def update(self, ratio: float, timestamp_ms: int, calibration_eligible: bool) -> None:
        """
        输入一帧平滑后的 EAR。

        Args:
            ratio: 平滑后的融合 EAR
            timestamp_ms: 当前帧时间戳（毫秒，单调不减）
            calibration_eligible: 该帧是否接近正脸，可用于基线校准
        """
        state = self._state

        # 从 FACE_NOT_DETECTED 恢复：先重新报告 AWAKE
        if state.last_reported is DrowsinessState.FACE_NOT_DETECTED:
            if not isinstance(state.phase, Calibrating):
                state.phase = Awake()
            self._report(DrowsinessState.AWAKE, ratio)

        phase = state.phase

        if isinstance(phase, Calibrating):
            if not calibration_eligible:
                return
            phase = Calibrating(total=phase.total + ratio, count=phase.count + 1)
            state.phase = phase
            if phase.count >= self.calibration_frames:
                self._finish_calibration(phase, ratio)

        elif isinstance(phase, Awake):
            if ratio > state.open_threshold:
                state.baseline += (ratio - state.baseline) * self.baseline_adapt_rate
                self._recalculate_thresholds()
            if ratio < state.close_threshold:
                state.phase = EyesClosedPending(closed_since_ms=timestamp_ms)
                logger.debug("开始闭眼 (EAR=%.3f < %.3f)", ratio, state.close_threshold)

        elif isinstance(phase, EyesClosedPending):
            elapsed = timestamp_ms - phase.closed_since_ms
            if ratio > state.open_threshold:
                logger.debug("眨眼 (%d ms)", elapsed)
                state.phase = Awake()
            elif elapsed >= self.drowsy_duration_ms:
                state.phase = Drowsy(closed_since_ms=phase.closed_since_ms)
                logger.warning("疲劳！持续闭眼 %d ms", elapsed)
                self._report(DrowsinessState.DROWSY, ratio)

        elif isinstance(phase, Drowsy):
            if ratio > state.open_threshold:
                state.phase = Awake()
                logger.debug("恢复清醒 (EAR=%.3f)", ratio)
                self._report(DrowsinessState.AWAKE, ratio)

    def on_face_not_detected(self) -> None:
        """连续多帧未检测到人脸（超过宽限期）时调用"""
        if not isinstance(self._state.phase, Calibrating):
            self._state.phase = Awake()
        self._report(DrowsinessState.FACE_NOT_DETECTED, NO_RATIO)

    def reset(self) -> None:
        """回到校准阶段，丢弃全部计时和校准数据。

        保留最近一次报告的状态：校准完成时只有状态确实改变（如 DROWSY → AWAKE）才通知监听器。
        """
        self._state = TrackerState(
            phase=Calibrating(),
            baseline=self.default_baseline,
            close_threshold=0.0,
            open_threshold=0.0,
            last_reported=self._state.last_reported,
        )
        self._recalculate_thresholds()

    # ---- 只读查询 ----

    @property
    def is_calibrating(self) -> bool:
        return isinstance(self._state.phase, Calibrating)

    @property
    def calibration_progress(self) -> float:
        """校准进度 0.0-1.0（1.0 表示已完成）"""
        phase = self._state.phase
        if not isinstance(phase, Calibrating):
            return 1.0
        return phase.count / self.calibration_frames

    @property
    def baseline(self) -> float:
        return self._state.baseline

    @property
    def close_threshold(self) -> float:
        return self._state.close_threshold

    @property
    def open_threshold(self) -> float:
        return self._state.open_threshold

    @property
    def phase_name(self) -> str:
        return self._state.phase.name

    @property
    def current_state(self) -> DrowsinessState:
        """最近一次报告给监听器的状态，尚未报告过时为 AWAKE"""
        if self._state.last_reported is None:
            return DrowsinessState.AWAKE
        return self._state.last_reported

    # ---- 内部方法 ----

    def _finish_calibration(self, phase: Calibrating, ratio: float) -> None:
        state = self._state
        baseline = phase.total / phase.count

        if baseline < BASELINE_MIN or baseline > BASELINE_MAX:
            logger.warning("校准值 %.3f 超出范围，使用默认基线 %.3f", baseline, self.default_baseline)
            baseline = self.default_baseline

        state.baseline = baseline
        self._recalculate_thresholds()
        state.phase = Awake()
        logger.info(
            "校准完成: baseline=%.3f close=%.3f open=%.3f",
            state.baseline, state.close_threshold, state.open_threshold,
        )
        self._report(DrowsinessState.AWAKE, ratio)

    def _recalculate_thresholds(self) -> None:
        state = self._state
        state.close_threshold = state.baseline * self.close_ratio
        state.open_threshold = state.baseline * self.open_ratio

    def _report(self, new_state: DrowsinessState, ratio: float) -> None:
        """与上次报告的状态比较，相同则不再通知"""
        if new_state is self._state.last_reported:
            return
        self._state.last_reported = new_state
        try:
            self._listener(DrowsinessEvent(state=new_state, ratio=ratio))
        except Exception:
            logger.exception("状态变化监听器执行失败: %s", new_state.name)
