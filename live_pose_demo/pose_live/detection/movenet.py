# live_pose_demo/pose_live/detection/movenet.py
import logging
from pathlib import Path
from typing import List

import cv2
import numpy as np

from ..common.enums import MoveNetModelType
from ..common.errors import InferenceError
from ..common.models import BoundingBox, EstimationOptions, Keypoint, MoveNetModelConfig, Pose
from .base import PoseDetector
from .keypoints import COCO17_NAMES, letterbox
from .onnx_model import OnnxModel
from .runtime import RuntimeEnvironment

logger = logging.getLogger(__name__)

SINGLE_POSE_INPUT_SIZE = {
    MoveNetModelType.SINGLEPOSE_LIGHTNING: 192,
    MoveNetModelType.SINGLEPOSE_THUNDER: 256,
}

# 17 x (y, x, score) followed by (ymin, xmin, ymax, xmax, score)
_MULTIPOSE_ROW = 56


def multipose_input_size(height: int, width: int, max_dimension: int) -> tuple:
    """Scales the longer side to `max_dimension`; both sides are multiples of 32."""
    def to32(v: float) -> int:
        return max(32, int(round(v / 32.0)) * 32)

    if width >= height:
        return to32(height * max_dimension / width), to32(max_dimension)
    return to32(max_dimension), to32(width * max_dimension / height)


class MoveNetDetector(PoseDetector):
    """MoveNet single-pose (lightning / thunder) and multi-pose models on onnxruntime."""

    def __init__(self, model_path: Path, config: MoveNetModelConfig, runtime: RuntimeEnvironment):
        super().__init__(name=f"MoveNet[{config.model_type.value}]")
        self.config = config
        self.model = OnnxModel(model_path, runtime)
        if config.enable_tracking:
            logger.warning("MoveNet tracking (%s) requested; poses are returned without track ids.",
                           config.tracker_type.value)

    def _estimate(self, frame_bgr: np.ndarray, options: EstimationOptions) -> List[Pose]:
        rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        if self.config.model_type == MoveNetModelType.MULTIPOSE_LIGHTNING:
            return self._estimate_multi(rgb)
        return self._estimate_single(rgb)

    def _estimate_single(self, rgb: np.ndarray) -> List[Pose]:
        size = self.model.static_hw() or (SINGLE_POSE_INPUT_SIZE[self.config.model_type],) * 2
        image, scale, pad_x, pad_y = letterbox(rgb, size[1], size[0])
        raw = np.asarray(next(iter(self.model.run(image).values())))
        if raw.size != 17 * 3:
            raise InferenceError(f"Unexpected MoveNet single-pose output shape {raw.shape}")

        kps = raw.reshape(17, 3)
        keypoints = [
            Keypoint(
                x=float((x * size[1] - pad_x) / scale),
                y=float((y * size[0] - pad_y) / scale),
                score=float(s),
                name=COCO17_NAMES[i],
            )
            for i, (y, x, s) in enumerate(kps)
        ]
        score = float(np.mean(kps[:, 2]))
        if score < self.config.min_pose_score:
            return []
        return [Pose(keypoints=keypoints, score=score)]

    def _estimate_multi(self, rgb: np.ndarray) -> List[Pose]:
        h, w = rgb.shape[:2]
        in_h, in_w = self.model.static_hw() or multipose_input_size(h, w, self.config.multi_pose_max_dimension)
        image = cv2.resize(rgb, (in_w, in_h))
        raw = np.asarray(next(iter(self.model.run(image).values())))
        if raw.ndim != 3 or raw.shape[-1] != _MULTIPOSE_ROW:
            raise InferenceError(f"Unexpected MoveNet multi-pose output shape {raw.shape}")

        poses = []
        for row in raw[0]:
            score = float(row[55])
            if score < self.config.min_pose_score:
                continue
            kps = row[:51].reshape(17, 3)
            keypoints = [
                Keypoint(x=float(x * w), y=float(y * h), score=float(s), name=COCO17_NAMES[i])
                for i, (y, x, s) in enumerate(kps)
            ]
            ymin, xmin, ymax, xmax = row[51:55]
            box = BoundingBox(x_min=float(xmin * w), y_min=float(ymin * h),
                              x_max=float(xmax * w), y_max=float(ymax * h))
            poses.append(Pose(keypoints=keypoints, score=score, box=box))
        poses.sort(key=lambda p: p.score, reverse=True)
        return poses

    def _close(self) -> None:
        self.model.close()
