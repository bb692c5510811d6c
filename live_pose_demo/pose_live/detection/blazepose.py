# live_pose_demo/pose_live/detection/blazepose.py
from typing import List

import cv2
import numpy as np

from ..common.enums import BlazePoseModelType
from ..common.errors import LoadError
from ..common.models import BlazePoseModelConfig, EstimationOptions, Keypoint, Pose
from .base import PoseDetector
from .keypoints import COCO17_NAMES

MODEL_COMPLEXITY = {
    BlazePoseModelType.LITE: 0,
    BlazePoseModelType.FULL: 1,
    BlazePoseModelType.HEAVY: 2,
}


class BlazePoseDetector(PoseDetector):
    """MediaPipe Pose (BlazePose) reduced to the COCO-17 keypoints used everywhere else."""

    def __init__(self, config: BlazePoseModelConfig):
        super().__init__(name=f"BlazePose[{config.model_type.value}]")
        if config.runtime != "mediapipe":
            raise LoadError(f"BlazePose runtime '{config.runtime}' is not supported; use a mediapipe-* backend.")
        try:
            import mediapipe as mp
        except ImportError as e:
            raise LoadError("MediaPipe is not installed. Install with: pip install mediapipe") from e

        self.config = config
        self.mp_pose = mp.solutions.pose
        self.pose = self.mp_pose.Pose(
            static_image_mode=False,
            model_complexity=MODEL_COMPLEXITY[config.model_type],
            smooth_landmarks=True,
            enable_segmentation=False,
            min_detection_confidence=0.5,
            min_tracking_confidence=0.5,
        )
        landmarks = self.mp_pose.PoseLandmark
        self._indices = [int(getattr(landmarks, name.upper())) for name in COCO17_NAMES]

    def _estimate(self, frame_bgr: np.ndarray, options: EstimationOptions) -> List[Pose]:
        h, w = frame_bgr.shape[:2]
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        frame_rgb.flags.writeable = False
        results = self.pose.process(frame_rgb)

        if not results.pose_landmarks:
            return []
        lm = results.pose_landmarks.landmark
        keypoints = [
            Keypoint(x=float(lm[idx].x) * w, y=float(lm[idx].y) * h,
                     score=float(lm[idx].visibility), name=name)
            for name, idx in zip(COCO17_NAMES, self._indices)
        ]
        return [Pose(keypoints=keypoints, score=float(np.mean([kp.score for kp in keypoints])))]

    def _close(self) -> None:
        self.pose.close()
