# live_pose_demo/pose_live/detection/keypoints.py
"""Canonical COCO-17 keypoint set shared by every backend and the visualizer."""
from typing import Tuple

import cv2
import numpy as np

COCO17_NAMES = [
    "nose",
    "left_eye",
    "right_eye",
    "left_ear",
    "right_ear",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
]

COCO_SKELETON = [
    (15, 13), (13, 11), (16, 14), (14, 12), (11, 12),
    (5, 11), (6, 12), (5, 6), (5, 7), (6, 8),
    (7, 9), (8, 10), (1, 2), (0, 1), (0, 2), (1, 3), (2, 4), (3, 5), (4, 6)
]


def letterbox(frame: np.ndarray, width: int, height: int) -> Tuple[np.ndarray, float, int, int]:
    """
    Resizes `frame` into a (height, width) canvas keeping aspect ratio.

    Returns the canvas, the scale applied and the (x, y) padding, so model
    coordinates can be mapped back with `(p - pad) / scale`.
    """
    h, w = frame.shape[:2]
    scale = min(width / w, height / h)
    nw, nh = max(1, int(round(w * scale))), max(1, int(round(h * scale)))
    resized = cv2.resize(frame, (nw, nh))
    canvas = np.zeros((height, width, 3), dtype=frame.dtype)
    pad_x, pad_y = (width - nw) // 2, (height - nh) // 2
    canvas[pad_y:pad_y + nh, pad_x:pad_x + nw] = resized
    return canvas, scale, pad_x, pad_y
