# live_pose_demo/pose_live/detection/base.py
import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from typing import List

import numpy as np

from ..common.errors import InferenceError
from ..common.models import EstimationOptions, Pose

logger = logging.getLogger(__name__)


class PoseDetector(ABC):
    """
    Owns one loaded pose-estimation model.

    Subclasses implement `_estimate` (blocking, runs in a worker thread) and
    `_close`. `estimate` and `dispose` share a lock, so disposing waits for an
    in-flight inference instead of pulling the model out from under it.
    """

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._disposed = False

    @abstractmethod
    def _estimate(self, frame_bgr: np.ndarray, options: EstimationOptions) -> List[Pose]:
        raise NotImplementedError

    @abstractmethod
    def _close(self) -> None:
        raise NotImplementedError

    @property
    def disposed(self) -> bool:
        return self._disposed

    def estimate_sync(self, frame_bgr: np.ndarray, options: EstimationOptions) -> List[Pose]:
        with self._lock:
            if self._disposed:
                raise InferenceError(f"{self.name} detector has been disposed")
            try:
                poses = self._estimate(frame_bgr, options)
            except InferenceError:
                raise
            except Exception as e:
                raise InferenceError(f"{self.name} failed to estimate poses: {e}") from e
        if options.flip_horizontal:
            poses = flip_poses(poses, frame_bgr.shape[1])
        return poses[:options.max_poses]

    async def estimate(self, frame_bgr: np.ndarray, options: EstimationOptions) -> List[Pose]:
        return await asyncio.to_thread(self.estimate_sync, frame_bgr, options)

    def dispose(self) -> None:
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            try:
                self._close()
            except Exception:
                logger.exception("Closing %s detector failed", self.name)
        logger.debug("%s detector disposed.", self.name)


def flip_poses(poses: List[Pose], width: int) -> List[Pose]:
    """Mirrors keypoints (and boxes) around the vertical axis of a `width`-wide frame."""
    flipped = []
    for pose in poses:
        keypoints = [kp.model_copy(update={"x": width - 1 - kp.x}) for kp in pose.keypoints]
        box = None
        if pose.box is not None:
            box = pose.box.model_copy(update={"x_min": width - 1 - pose.box.x_max,
                                              "x_max": width - 1 - pose.box.x_min})
        flipped.append(Pose(keypoints=keypoints, score=pose.score, box=box))
    return flipped
