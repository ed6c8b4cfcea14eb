"""Tests for main.py DetectionSystem - config loading and wiring logic."""

import json
import sys
from unittest.mock import MagicMock, patch

import pytest

# Mock mediapipe before importing main to avoid hanging
_mp_mock = MagicMock()
sys.modules.setdefault("mediapipe", _mp_mock)
sys.modules.setdefault("mediapipe.solutions", _mp_mock.solutions)
sys.modules.setdefault("mediapipe.solutions.face_mesh", _mp_mock.solutions.face_mesh)

from main import DetectionSystem, _DEFAULTS, build_sleep_detector, now_ms  # noqa: E402
from models.data_models import DrowsinessEvent, DrowsinessState  # noqa: E402


@pytest.fixture
def system():
    with patch("main.FaceDetector"):
        s = DetectionSystem()
    s.alert_manager = MagicMock()
    return s


class TestLoadConfig:
    """Test DetectionSystem._load_config static method."""

    def test_no_config_path_returns_defaults(self):
        config = DetectionSystem._load_config(None)
        assert config == _DEFAULTS

    def test_defaults_match_detector_constants(self):
        assert _DEFAULTS["smoothing_window"] == 3
        assert _DEFAULTS["no_face_grace_frames"] == 8
        assert _DEFAULTS["calibration_frames"] == 60
        assert _DEFAULTS["drowsy_duration_ms"] == 1500

    def test_valid_config_file(self, tmp_path):
        cfg = {
            "smoothing_window": 5,
            "no_face_grace_frames": 4,
            "calibration_frames": 30,
            "close_ratio": 0.5,
            "open_ratio": 0.7,
            "drowsy_duration_ms": 2000,
        }
        cfg_file = tmp_path / "config.json"
        cfg_file.write_text(json.dumps(cfg), encoding="utf-8")

        config = DetectionSystem._load_config(str(cfg_file))
        for key, value in cfg.items():
            assert config[key] == value

    def test_missing_config_file_uses_defaults(self, capsys):
        config = DetectionSystem._load_config("/nonexistent/path.json")
        assert config == _DEFAULTS
        captured = capsys.readouterr()
        assert "配置文件不存在" in captured.out

    def test_invalid_json_uses_defaults(self, tmp_path, capsys):
        cfg_file = tmp_path / "bad.json"
        cfg_file.write_text("not valid json {{{", encoding="utf-8")

        config = DetectionSystem._load_config(str(cfg_file))
        assert config == _DEFAULTS
        captured = capsys.readouterr()
        assert "配置文件格式错误" in captured.out

    def test_partial_config_fills_defaults(self, tmp_path):
        cfg_file = tmp_path / "partial.json"
        cfg_file.write_text(json.dumps({"close_ratio": 0.5}), encoding="utf-8")

        config = DetectionSystem._load_config(str(cfg_file))
        assert config["close_ratio"] == 0.5
        assert config["open_ratio"] == _DEFAULTS["open_ratio"]
        assert config["calibration_frames"] == _DEFAULTS["calibration_frames"]

    def test_null_values_in_config_use_defaults(self, tmp_path):
        cfg = {"close_ratio": None, "open_ratio": 0.7}
        cfg_file = tmp_path / "nulls.json"
        cfg_file.write_text(json.dumps(cfg), encoding="utf-8")

        config = DetectionSystem._load_config(str(cfg_file))
        assert config["close_ratio"] == _DEFAULTS["close_ratio"]
        assert config["open_ratio"] == 0.7

    def test_extra_fields_ignored(self, tmp_path):
        cfg = {"close_ratio": 0.5, "unknown_field": 999}
        cfg_file = tmp_path / "extra.json"
        cfg_file.write_text(json.dumps(cfg), encoding="utf-8")

        config = DetectionSystem._load_config(str(cfg_file))
        assert config["close_ratio"] == 0.5
        assert "unknown_field" not in config


class TestBuildSleepDetector:

    def test_options_forwarded(self):
        config = dict(_DEFAULTS, smoothing_window=4, calibration_frames=12, close_ratio=0.5)
        detector = build_sleep_detector(config, lambda event: None)
        assert detector.smoother.capacity == 4
        assert detector.tracker.calibration_frames == 12
        assert detector.tracker.close_ratio == 0.5

    def test_invalid_options_rejected(self):
        config = dict(_DEFAULTS, close_ratio=0.7, open_ratio=0.6)
        with pytest.raises(ValueError):
            build_sleep_detector(config, lambda event: None)

    def test_now_ms_is_monotonic(self):
        first = now_ms()
        assert now_ms() >= first


class TestDetectionSystemInit:
    """Test DetectionSystem initialization."""

    def test_init_with_config(self, tmp_path):
        cfg = {"calibration_frames": 30, "drowsy_duration_ms": 1000}
        cfg_file = tmp_path / "test_config.json"
        cfg_file.write_text(json.dumps(cfg), encoding="utf-8")

        with patch("main.FaceDetector"):
            system = DetectionSystem(config_path=str(cfg_file))
        assert system.sleep_detector.tracker.calibration_frames == 30
        assert system.sleep_detector.tracker.drowsy_duration_ms == 1000

    def test_alarm_sound_from_config(self, tmp_path):
        cfg_file = tmp_path / "alarm.json"
        cfg_file.write_text(json.dumps({"alarm_sound": "alarm.mp3"}), encoding="utf-8")

        with patch("main.FaceDetector"):
            system = DetectionSystem(config_path=str(cfg_file))
        assert system.alert_manager._alarm.sound_path == "alarm.mp3"

    def test_camera_argument_overrides_config(self):
        with patch("main.FaceDetector"):
            system = DetectionSystem(camera_index=2)
        assert system.config["camera_index"] == 2


class TestStateChanges:

    def test_drowsy_event_forwarded_to_alert_manager(self, system):
        event = DrowsinessEvent(DrowsinessState.DROWSY, 0.08)
        system._on_state_changed(event)
        system.alert_manager.on_state_changed.assert_called_once_with(event)

    def test_state_change_is_logged(self, system, caplog):
        with caplog.at_level("INFO", logger="main"):
            system._on_state_changed(DrowsinessEvent(DrowsinessState.AWAKE, 0.3))
        assert "状态变化" in caplog.text


class TestDetectionSystemStop:
    """Test DetectionSystem.stop method."""

    def test_stop_without_camera(self, system):
        """stop() should not raise even if camera was never opened."""
        system.stop()
        system.alert_manager.release.assert_called_once()
        system.face_detector.close.assert_called_once()
