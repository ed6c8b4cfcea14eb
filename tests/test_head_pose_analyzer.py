"""头部偏航估计单元测试"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from detectors.head_pose_analyzer import (
    LEFT_FACE_CONTOUR,
    NOSE_TIP,
    RIGHT_FACE_CONTOUR,
    HeadPoseAnalyzer,
    calculate_yaw_ratio,
)


def _face(nose_x, left_x, right_x):
    points = [(0.5, 0.5)] * 478
    points[NOSE_TIP] = (nose_x, 0.5)
    points[LEFT_FACE_CONTOUR] = (left_x, 0.5)
    points[RIGHT_FACE_CONTOUR] = (right_x, 0.5)
    return points


class TestCalculateYawRatio:

    def test_frontal_is_zero(self):
        assert calculate_yaw_ratio(_face(0.5, 0.3, 0.7)) == pytest.approx(0.0)

    def test_turned_right_is_positive(self):
        """鼻尖靠近左侧轮廓时为正值"""
        # left_dist = 0.1, right_dist = 0.3
        assert calculate_yaw_ratio(_face(0.4, 0.3, 0.7)) == pytest.approx(0.5)

    def test_turned_left_is_negative(self):
        assert calculate_yaw_ratio(_face(0.6, 0.3, 0.7)) == pytest.approx(-0.5)

    def test_degenerate_returns_zero(self):
        """所有点重合时返回 0.0"""
        assert calculate_yaw_ratio(_face(0.5, 0.5, 0.5)) == 0.0

    def test_matches_landmark_factory(self, make_landmarks):
        assert calculate_yaw_ratio(make_landmarks(yaw=0.27)) == pytest.approx(0.27)

    @given(
        nose=st.floats(min_value=0.0, max_value=1.0),
        left=st.floats(min_value=0.0, max_value=1.0),
        right=st.floats(min_value=0.0, max_value=1.0),
    )
    def test_always_within_unit_range(self, nose, left, right):
        yaw = calculate_yaw_ratio(_face(nose, left, right))
        assert -1.0 <= yaw <= 1.0


class TestHeadPoseAnalyzer:

    def test_estimate_yaw_delegates(self, make_landmarks):
        assert HeadPoseAnalyzer().estimate_yaw(make_landmarks(yaw=-0.4)) == pytest.approx(-0.4)
