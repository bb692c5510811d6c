# live_pose_demo/pose_live/detection/posenet.py
from pathlib import Path
from typing import List

import cv2
import numpy as np

from ..common.errors import InferenceError
from ..common.models import EstimationOptions, Keypoint, Pose, PoseNetModelConfig
from .base import PoseDetector
from .keypoints import COCO17_NAMES, letterbox
from .onnx_model import OnnxModel
from .runtime import RuntimeEnvironment


def decode_single_pose(heatmaps: np.ndarray, offsets: np.ndarray, output_stride: int) -> np.ndarray:
    """
    Single-pose PoseNet decoding.

    heatmaps: (H, W, 17) raw scores; offsets: (H, W, 34) with y offsets first.
    Returns (17, 3) rows of (x, y, score) in model input pixels.
    """
    n = heatmaps.shape[-1]
    scores = 1.0 / (1.0 + np.exp(-heatmaps))
    out = np.zeros((n, 3), dtype=np.float32)
    for k in range(n):
        cy, cx = np.unravel_index(np.argmax(scores[:, :, k]), scores.shape[:2])
        dy = offsets[cy, cx, k]
        dx = offsets[cy, cx, k + n]
        out[k] = (cx * output_stride + dx, cy * output_stride + dy, scores[cy, cx, k])
    return out


class PoseNetDetector(PoseDetector):
    """MobileNetV1 PoseNet exported to ONNX (heatmap and offset outputs)."""

    def __init__(self, model_path: Path, config: PoseNetModelConfig, runtime: RuntimeEnvironment):
        super().__init__(name=f"PoseNet[{config.architecture} x{config.multiplier}]")
        self.config = config
        self.model = OnnxModel(model_path, runtime)

    def _estimate(self, frame_bgr: np.ndarray, options: EstimationOptions) -> List[Pose]:
        in_h, in_w = self.model.static_hw() or (self.config.input_resolution["height"],
                                                 self.config.input_resolution["width"])
        rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        image, scale, pad_x, pad_y = letterbox(rgb, in_w, in_h)
        # MobileNetV1 expects inputs in [-1, 1]
        image = image.astype(np.float32) / 127.5 - 1.0

        outputs = list(self.model.run(image).values())
        heatmaps = next((o for o in outputs if o.shape[-1] == 17), None)
        offsets = next((o for o in outputs if o.shape[-1] == 34), None)
        if heatmaps is None or offsets is None:
            raise InferenceError(f"PoseNet outputs {[o.shape for o in outputs]} lack heatmaps/offsets")

        kps = decode_single_pose(heatmaps[0], offsets[0], self.config.output_stride)
        keypoints = [
            Keypoint(x=float((x - pad_x) / scale), y=float((y - pad_y) / scale), score=float(s), name=COCO17_NAMES[i])
            for i, (x, y, s) in enumerate(kps)
        ]
        return [Pose(keypoints=keypoints, score=float(np.mean(kps[:, 2])))]

    def _close(self) -> None:
        self.model.close()
