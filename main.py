"""疲劳驾驶检测系统入口文件"""

import argparse
import json
import logging
import sys
import time

import cv2

from alerts.alert_manager import AlertManager, PygameAlarm
from detectors.face_detector import FaceDetector
from display.renderer import DisplayRenderer
from models.data_models import DrowsinessEvent
from pipeline.sleep_detector import SleepDetector

logger = logging.getLogger(__name__)

# 默认参数
_DEFAULTS = {
    "smoothing_window": 3,
    "no_face_grace_frames": 8,
    "calibration_frames": 60,
    "default_baseline": 0.26,
    "close_ratio": 0.55,
    "open_ratio": 0.62,
    "drowsy_duration_ms": 1500,
    "baseline_adapt_rate": 0.005,
    "camera_index": 0,
    "alarm_sound": None,  # 报警音频文件路径，None 时使用生成的蜂鸣音
}

_TRACKER_KEYS = (
    "calibration_frames",
    "default_baseline",
    "close_ratio",
    "open_ratio",
    "drowsy_duration_ms",
    "baseline_adapt_rate",
)


def build_sleep_detector(config, listener):
    """按配置创建检测流水线。"""
    return SleepDetector(
        listener,
        smoothing_window=config["smoothing_window"],
        no_face_grace_frames=config["no_face_grace_frames"],
        **{key: config[key] for key in _TRACKER_KEYS},
    )


def now_ms():
    """单调时钟毫秒时间戳。"""
    return int(time.monotonic() * 1000)


class DetectionSystem:
    """疲劳驾驶检测系统主程序，协调各模块并管理视频流主循环。"""

    def __init__(self, config_path=None, camera_index=None):
        self._cap = None
        self.config = self._load_config(config_path)
        if camera_index is not None:
            self.config["camera_index"] = camera_index

        self.face_detector = FaceDetector()
        self.alert_manager = AlertManager(PygameAlarm(self.config["alarm_sound"]))
        self.sleep_detector = build_sleep_detector(self.config, self._on_state_changed)
        self.renderer = DisplayRenderer()

    @staticmethod
    def _load_config(config_path):
        """从 JSON 配置文件加载参数，缺失字段使用默认值。"""
        config = dict(_DEFAULTS)

        if config_path is None:
            return config

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            print(f"警告: 配置文件不存在 {config_path}，使用默认参数")
            return config
        except json.JSONDecodeError:
            print(f"警告: 配置文件格式错误 {config_path}，使用默认参数")
            return config

        for key in _DEFAULTS:
            if key in data and data[key] is not None:
                config[key] = data[key]

        return config

    def _on_state_changed(self, event: DrowsinessEvent):
        """状态变化回调，在处理帧的线程上执行。"""
        logger.info("状态变化: %s (EAR=%.3f)", event.state.label, event.ratio)
        self.alert_manager.on_state_changed(event)

    def run(self):
        """启动主检测循环。"""
        self._cap = cv2.VideoCapture(self.config["camera_index"])

        if not self._cap.isOpened():
            print("无法打开摄像头")
            sys.exit(1)

        try:
            self._main_loop()
        finally:
            self.stop()

    def _main_loop(self):
        """视频流处理主循环。按 q 退出，按 r 重新校准。"""
        while True:
            ret, frame = self._cap.read()
            if not ret:
                continue

            landmarks = self.face_detector.detect(frame)
            result = self.sleep_detector.process_landmarks(landmarks, now_ms())

            rendered = self.renderer.render(
                frame, result, self.sleep_detector.current_state,
                calibration_progress=self.sleep_detector.calibration_progress,
                baseline=self.sleep_detector.baseline,
                landmarks=landmarks,
            )
            cv2.imshow("疲劳驾驶检测系统", rendered)

            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                break
            if key == ord("r"):
                logger.info("重新校准")
                self.sleep_detector.reset()

    def stop(self):
        """释放摄像头资源、停止报警、关闭所有窗口和人脸检测器。"""
        if self._cap is not None and self._cap.isOpened():
            self._cap.release()
        self.alert_manager.release()
        cv2.destroyAllWindows()
        self.face_detector.close()


def main():
    parser = argparse.ArgumentParser(description="疲劳驾驶检测系统")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON 参数配置文件路径",
    )
    parser.add_argument(
        "--camera",
        type=int,
        default=None,
        help="摄像头编号（覆盖配置文件）",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="输出逐帧调试日志",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    system = DetectionSystem(config_path=args.config, camera_index=args.camera)
    system.run()


if __name__ == "__main__":
    main()
