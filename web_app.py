"""Flask Web 前端 - 疲劳驾驶检测系统"""

import datetime
import logging
import threading
import time

import cv2
from flask import Flask, Response, jsonify, render_template, request

from alerts.alert_manager import AlertManager, PygameAlarm
from detectors.face_detector import FaceDetector
from display.renderer import DisplayRenderer
from main import DetectionSystem, build_sleep_detector, now_ms
from models.data_models import DrowsinessEvent, DrowsinessState

logger = logging.getLogger(__name__)

app = Flask(__name__, template_folder="web/templates")

_STATUS_NAMES = {
    DrowsinessState.AWAKE: "正常",
    DrowsinessState.DROWSY: "疲劳",
    DrowsinessState.FACE_NOT_DETECTED: "未检测到人脸",
}

_EVENT_LOG_LEVELS = {
    DrowsinessState.AWAKE: "info",
    DrowsinessState.DROWSY: "danger",
    DrowsinessState.FACE_NOT_DETECTED: "warning",
}


class WebDetectionSystem:
    """Web 版检测系统，支持 MJPEG 视频流推送和实时数据 API。"""

    MAX_LOG_ENTRIES = 200

    def __init__(self, config_path=None):
        self.config = DetectionSystem._load_config(config_path)
        self._cap = None
        self._running = False
        self._thread = None
        self._lock = threading.Lock()
        self._latest_frame = None
        self._latest_data = self._empty_data()
        self._logs = []
        self._log_lock = threading.Lock()

        self.face_detector = FaceDetector()
        self.alert_manager = AlertManager(PygameAlarm(self.config["alarm_sound"]))
        self.sleep_detector = build_sleep_detector(self.config, self._on_state_changed)
        self.renderer = DisplayRenderer()

    @staticmethod
    def _empty_data():
        return {
            "face_detected": False,
            "state": DrowsinessState.AWAKE.name,
            "status": _STATUS_NAMES[DrowsinessState.AWAKE],
            "left_ear": 0.0, "right_ear": 0.0,
            "smoothed_ear": 0.0, "yaw": 0.0, "near_eye": "both",
            "calibration_progress": 0.0, "baseline": 0.0,
        }

    def start(self):
        """启动摄像头和处理线程。"""
        if self._running:
            return True
        self._cap = cv2.VideoCapture(self.config["camera_index"])
        if not self._cap.isOpened():
            logger.warning("无法打开摄像头: %s", self.config["camera_index"])
            self._add_log("danger", "无法打开摄像头")
            return False
        self._running = True
        self._add_log("info", "系统启动，摄像头已开启，开始校准")
        self._thread = threading.Thread(target=self._process_loop, daemon=True)
        self._thread.start()
        return True

    def stop(self):
        """停止检测。"""
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._cap is not None and self._cap.isOpened():
            self._cap.release()
        self._cap = None
        self.alert_manager.stop_alert()
        self.sleep_detector.reset()
        self._add_log("info", "系统已停止")

    def reset(self):
        """重新校准。"""
        self.sleep_detector.reset()
        self._add_log("info", "重新开始校准，请保持睁眼")

    def _on_state_changed(self, event: DrowsinessEvent):
        """状态变化回调：记录日志并驱动报警。"""
        if event.state is DrowsinessState.FACE_NOT_DETECTED:
            message = "人脸丢失"
        else:
            message = f"状态: {_STATUS_NAMES[event.state]} (EAR={event.ratio:.2f})"
        self._add_log(_EVENT_LOG_LEVELS[event.state], message)
        self.alert_manager.on_state_changed(event)

    def _process_loop(self):
        """后台处理循环。"""
        while self._running:
            if not self._cap or not self._cap.isOpened():
                break
            ret, frame = self._cap.read()
            if not ret:
                continue

            landmarks = self.face_detector.detect(frame)
            result = self.sleep_detector.process_landmarks(landmarks, now_ms())
            self._publish(frame, landmarks, result)

    def _publish(self, frame, landmarks, result):
        """渲染帧并更新最新数据。"""
        detector = self.sleep_detector
        state = detector.current_state
        rendered = self.renderer.render(
            frame, result, state,
            calibration_progress=detector.calibration_progress,
            baseline=detector.baseline,
            landmarks=landmarks,
        )

        data = self._empty_data()
        data.update({
            "state": state.name,
            "status": _STATUS_NAMES[state],
            "calibration_progress": round(detector.calibration_progress, 3),
            "baseline": round(detector.baseline, 4),
        })
        if result is not None and result.face_detected:
            data.update({
                "face_detected": True,
                "left_ear": round(result.left_ear, 4),
                "right_ear": round(result.right_ear, 4),
                "smoothed_ear": round(result.smoothed_ear, 4),
                "yaw": round(result.yaw, 3),
                "near_eye": result.near_eye,
            })

        _, jpeg = cv2.imencode(".jpg", rendered, [cv2.IMWRITE_JPEG_QUALITY, 80])
        with self._lock:
            self._latest_data = data
            self._latest_frame = jpeg.tobytes()

    def _add_log(self, level, message):
        """添加一条系统日志。level: info / warning / danger"""
        entry = {
            "time": datetime.datetime.now().strftime("%H:%M:%S"),
            "level": level,
            "message": message,
        }
        with self._log_lock:
            self._logs.append(entry)
            if len(self._logs) > self.MAX_LOG_ENTRIES:
                self._logs = self._logs[-self.MAX_LOG_ENTRIES:]

    def get_logs(self, since=0):
        """获取日志，since 为起始索引。"""
        with self._log_lock:
            return self._logs[since:], len(self._logs)

    def get_frame(self):
        with self._lock:
            return self._latest_frame

    def get_data(self):
        with self._lock:
            return dict(self._latest_data)


# 全局检测系统实例
system = WebDetectionSystem()


# ---- Flask 路由 ----

@app.route("/")
def index():
    return render_template("index.html")


@app.route("/api/start", methods=["POST"])
def api_start():
    ok = system.start()
    return jsonify({"success": ok, "message": "摄像头启动成功" if ok else "无法打开摄像头"})


@app.route("/api/stop", methods=["POST"])
def api_stop():
    system.stop()
    return jsonify({"success": True, "message": "检测已停止"})


@app.route("/api/reset", methods=["POST"])
def api_reset():
    system.reset()
    return jsonify({"success": True, "message": "已重新开始校准"})


@app.route("/api/data")
def api_data():
    return jsonify(system.get_data())


@app.route("/api/logs")
def api_logs():
    since = request.args.get("since", 0, type=int)
    logs, total = system.get_logs(since)
    return jsonify({"logs": logs, "total": total})


@app.route("/video_feed")
def video_feed():
    def generate():
        while True:
            frame = system.get_frame()
            if frame is not None:
                yield (b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + frame + b"\r\n")
            time.sleep(0.03)
    return Response(generate(), mimetype="multipart/x-mixed-replace; boundary=frame")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.run(host="0.0.0.0", port=5000, debug=False, threaded=True)
