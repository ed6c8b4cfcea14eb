"""界面渲染模块 - 在视频帧上绘制状态边框、EAR 数值、校准进度和疲劳警告。"""

from typing import Optional

import cv2
import numpy as np

from detectors.eye_analyzer import LEFT_EYE, RIGHT_EYE
from models.data_models import DrowsinessState, FrameResult


def format_value(v: float) -> str:
    """格式化浮点数为两位小数字符串。"""
    return f"{v:.2f}"


class DisplayRenderer:
    """在视频帧上绘制检测状态。"""

    BORDER_WIDTH = 12

    # 边框颜色 (BGR)
    _BORDER_COLORS = {
        DrowsinessState.AWAKE: (0, 204, 0),
        DrowsinessState.FACE_NOT_DETECTED: (0, 136, 255),
        DrowsinessState.DROWSY: (0, 0, 255),
    }

    _STATUS_TEXT = {
        DrowsinessState.AWAKE: "状态: 正常",
        DrowsinessState.DROWSY: "疲劳警告！",
        DrowsinessState.FACE_NOT_DETECTED: "未检测到人脸",
    }

    _STATUS_TEXT_EN = {
        DrowsinessState.AWAKE: "Status: Normal",
        DrowsinessState.DROWSY: "DROWSY ALERT!",
        DrowsinessState.FACE_NOT_DETECTED: "Face not detected",
    }

    def __init__(self, font_path: str = "SimHei"):
        """初始化中文字体，字体不存在时回退到 OpenCV 默认英文字体。"""
        self._pil_font = None
        self._pil_font_large = None
        self._use_pil = False

        try:
            from PIL import ImageFont

            font = self._try_load_font(font_path)
            if font is not None:
                self._pil_font = font
                self._pil_font_large = ImageFont.truetype(font.path, 48)
                self._use_pil = True
        except (ImportError, OSError):
            self._use_pil = False

    @staticmethod
    def _try_load_font(font_path: str):
        """尝试加载字体文件，返回 PIL ImageFont 或 None。"""
        from PIL import ImageFont

        try:
            return ImageFont.truetype(font_path, 20)
        except (OSError, IOError):
            pass

        common_paths = [
            "/usr/share/fonts/truetype/simhei/SimHei.ttf",
            "/usr/share/fonts/SimHei.ttf",
            "C:\\Windows\\Fonts\\simhei.ttf",
            "/System/Library/Fonts/STHeiti Medium.ttc",
        ]
        for path in common_paths:
            try:
                return ImageFont.truetype(path, 20)
            except (OSError, IOError):
                continue

        return None

    def render(
        self,
        frame: np.ndarray,
        result: Optional[FrameResult],
        state: DrowsinessState,
        calibration_progress: float = 1.0,
        baseline: Optional[float] = None,
        landmarks=None,
    ) -> np.ndarray:
        """渲染检测结果到视频帧，返回渲染后的帧图像。"""
        output = frame.copy()

        if landmarks is not None:
            self._draw_eye_points(output, landmarks)

        lines = [self._status_line(state, calibration_progress)]
        if result is not None and result.face_detected:
            lines.append(f"EAR: {format_value(result.smoothed_ear)}")
            lines.append(f"Yaw: {format_value(result.yaw)} ({result.near_eye})")
        if baseline is not None and calibration_progress >= 1.0:
            lines.append(f"Baseline: {format_value(baseline)}")
        self._draw_lines(output, lines, x=24, y_start=30, color=(255, 255, 255))

        self._draw_border(output, state)

        if state is DrowsinessState.DROWSY:
            self._draw_drowsy_warning(output)

        return output

    def _status_line(self, state: DrowsinessState, calibration_progress: float) -> str:
        if calibration_progress < 1.0 and state is DrowsinessState.AWAKE:
            percent = int(calibration_progress * 100)
            if self._use_pil:
                return f"校准中，请保持睁眼 {percent}%"
            return f"Calibrating... keep eyes open {percent}%"
        if self._use_pil:
            return self._STATUS_TEXT[state]
        return self._STATUS_TEXT_EN[state]

    def _draw_border(self, frame: np.ndarray, state: DrowsinessState) -> None:
        """按状态绘制彩色边框。"""
        h, w = frame.shape[:2]
        cv2.rectangle(
            frame, (0, 0), (w - 1, h - 1),
            self._BORDER_COLORS[state], self.BORDER_WIDTH,
        )

    @staticmethod
    def _draw_eye_points(frame: np.ndarray, landmarks) -> None:
        """绘制双眼 EAR 关键点（归一化坐标转像素）。"""
        h, w = frame.shape[:2]
        for geometry in (LEFT_EYE, RIGHT_EYE):
            for idx in (
                geometry.lateral, geometry.upper_1, geometry.upper_2,
                geometry.medial, geometry.lower_1, geometry.lower_2,
            ):
                x, y = landmarks[idx][0], landmarks[idx][1]
                cv2.circle(frame, (int(x * w), int(y * h)), 2, (0, 255, 0), -1)

    def _draw_lines(self, frame: np.ndarray, lines: list, x: int, y_start: int, color: tuple) -> None:
        if self._use_pil:
            self._draw_pil_lines(frame, lines, x=x, y_start=y_start, color=color)
            return
        y = y_start
        for text in lines:
            cv2.putText(frame, text, (x, y), cv2.FONT_HERSHEY_SIMPLEX, 0.7, color, 2)
            y += 30

    def _draw_drowsy_warning(self, frame: np.ndarray) -> None:
        """在画面中央显示红色大字体疲劳警告。"""
        h, w = frame.shape[:2]
        warning = "疲劳驾驶！请休息！"

        if self._use_pil:
            from PIL import Image, ImageDraw

            img_pil = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
            draw = ImageDraw.Draw(img_pil)
            bbox = draw.textbbox((0, 0), warning, font=self._pil_font_large)
            text_w = bbox[2] - bbox[0]
            text_h = bbox[3] - bbox[1]
            x = (w - text_w) // 2
            y = (h - text_h) // 2
            draw.text((x, y), warning, font=self._pil_font_large, fill=(255, 0, 0))
            frame[:] = cv2.cvtColor(np.array(img_pil), cv2.COLOR_RGB2BGR)
        else:
            warning_en = "DROWSY! PLEASE REST!"
            font_scale = 1.5
            thickness = 3
            (text_w, text_h), _ = cv2.getTextSize(
                warning_en, cv2.FONT_HERSHEY_SIMPLEX, font_scale, thickness
            )
            x = (w - text_w) // 2
            y = (h + text_h) // 2
            cv2.putText(
                frame, warning_en, (x, y),
                cv2.FONT_HERSHEY_SIMPLEX, font_scale, (0, 0, 255), thickness,
            )

    def _draw_pil_lines(
        self,
        frame: np.ndarray,
        lines: list,
        x: int,
        y_start: int,
        color: tuple,
    ) -> None:
        """使用 PIL 在帧上绘制多行文字（BGR color -> RGB fill）。"""
        from PIL import Image, ImageDraw

        img_pil = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        draw = ImageDraw.Draw(img_pil)
        fill = (color[2], color[1], color[0])
        y = y_start
        for line in lines:
            draw.text((x, y), line, font=self._pil_font, fill=fill)
            y += 28
        frame[:] = cv2.cvtColor(np.array(img_pil), cv2.COLOR_RGB2BGR)
