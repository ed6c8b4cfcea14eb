import sys
import os

# Add project root to sys.path so tests can import from all modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest  # noqa: E402
from hypothesis import settings  # noqa: E402

from detectors.eye_analyzer import LEFT_EYE, RIGHT_EYE  # noqa: E402
from detectors.head_pose_analyzer import LEFT_FACE_CONTOUR, NOSE_TIP, RIGHT_FACE_CONTOUR  # noqa: E402

# CI profile: more examples for thorough testing
settings.register_profile("ci", max_examples=200)
# Dev profile: fewer examples for faster iteration
settings.register_profile("dev", max_examples=100)
# Default to dev profile
settings.load_profile("dev")

NUM_LANDMARKS = 478
EYE_WIDTH = 0.1
FACE_HALF_WIDTH = 0.2


def _place_eye(points, geometry, center_x, center_y, ear):
    """按给定 EAR 摆放一只眼睛的 6 个点：EAR = 眼睑高度 / 眼宽"""
    half_w = EYE_WIDTH / 2
    half_h = ear * EYE_WIDTH / 2
    points[geometry.lateral] = (center_x - half_w, center_y)
    points[geometry.medial] = (center_x + half_w, center_y)
    points[geometry.upper_1] = (center_x - half_w / 2, center_y - half_h)
    points[geometry.lower_1] = (center_x - half_w / 2, center_y + half_h)
    points[geometry.upper_2] = (center_x + half_w / 2, center_y - half_h)
    points[geometry.lower_2] = (center_x + half_w / 2, center_y + half_h)


def build_landmarks(left_ear=0.3, right_ear=0.3, yaw=0.0):
    """生成 478 个归一化关键点，双眼 EAR 和偏航比例为指定值"""
    points = [(0.5, 0.5)] * NUM_LANDMARKS
    _place_eye(points, LEFT_EYE, 0.6, 0.4, left_ear)
    _place_eye(points, RIGHT_EYE, 0.4, 0.4, right_ear)

    # yaw = (right_dist - left_dist) / (right_dist + left_dist)
    left_dist = FACE_HALF_WIDTH * (1.0 - yaw)
    right_dist = FACE_HALF_WIDTH * (1.0 + yaw)
    nose_x = 0.5
    points[NOSE_TIP] = (nose_x, 0.5)
    points[LEFT_FACE_CONTOUR] = (nose_x - left_dist, 0.5)
    points[RIGHT_FACE_CONTOUR] = (nose_x + right_dist, 0.5)
    return points


@pytest.fixture
def make_landmarks():
    return build_landmarks
