# live_pose_demo/pose_live/camera/camera_manager.py
import asyncio
import cv2
import logging
import time
import threading
import numpy as np
from collections import deque
from typing import Tuple, Optional
from ..common.errors import DeviceError, NotReadyError
from ..common.models import CaptureParameters, FrameMetadata

logger = logging.getLogger(__name__)

class CameraManager:
    """Manages non-blocking camera I/O in a separate thread."""

    def __init__(self, params: CaptureParameters, capture=None):
        self.params = params
        self._source = params.source
        self._resolution = tuple(params.resolution)
        self._target_fps = params.target_fps
        self._cap = capture if capture is not None else cv2.VideoCapture(self._source)
        if not self._cap.isOpened():
            raise DeviceError(f"Cannot open camera source: {self._source}")

        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._resolution[0])
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._resolution[1])
        self._cap.set(cv2.CAP_PROP_FPS, self._target_fps)

        self._buffer = deque(maxlen=params.buffer_size)
        self._lock = threading.Lock()
        self._first_frame = threading.Event()
        self._thread = threading.Thread(target=self._update, daemon=True)
        self._running = False
        self._frame_id = 0
        self._dropped_frames = 0

    @classmethod
    async def setup(cls, params: CaptureParameters, capture=None) -> "CameraManager":
        """Opens the device off the event loop and starts the grab thread."""
        camera = await asyncio.to_thread(cls, params, capture)
        camera.start()
        return camera

    def _update(self):
        """The frame-grabbing loop running in a dedicated thread."""
        while self._running:
            grabbed = self._cap.grab()
            if not grabbed:
                self._dropped_frames += 1
                time.sleep(0.01)
                continue

            # The deque's maxlen drops the oldest frame when the buffer is full.
            ret, frame = self._cap.retrieve()
            if ret:
                timestamp = time.perf_counter()
                self._frame_id += 1
                with self._lock:
                    self._buffer.append((frame, self._frame_id, timestamp))
                self._first_frame.set()
            else:
                self._dropped_frames += 1

    def is_ready(self) -> bool:
        return self._first_frame.is_set()

    async def wait_until_ready(self, timeout: float) -> None:
        """Waits for the first frame; DeviceError if none arrives within `timeout` seconds."""
        ready = await asyncio.to_thread(self._first_frame.wait, timeout)
        if not ready:
            raise DeviceError(f"No frame from camera source {self._source} after {timeout:.1f}s")

    def current_frame(self) -> Tuple[np.ndarray, FrameMetadata]:
        """Returns the latest frame and its metadata; NotReadyError before the first frame."""
        frame, metadata = self.get_frame()
        if frame is None:
            raise NotReadyError(f"Camera source {self._source} has not produced a frame yet")
        return frame, metadata

    def get_frame(self) -> Tuple[Optional[np.ndarray], Optional[FrameMetadata]]:
        """Returns the latest frame and its metadata from the buffer."""
        with self._lock:
            if not self._buffer:
                return None, None
            frame, frame_id, timestamp = self._buffer[-1]

        metadata = FrameMetadata(
            frame_id=frame_id,
            timestamp=timestamp,
            source_resolution=(frame.shape[1], frame.shape[0])
        )
        return frame.copy(), metadata

    def get_stats(self) -> dict:
        """Returns camera health and performance statistics."""
        actual_resolution = None
        if self._cap is not None:
            actual_resolution = (self._cap.get(cv2.CAP_PROP_FRAME_WIDTH), self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        return {
            "is_running": self.is_running(),
            "buffer_size": len(self._buffer),
            "dropped_frames": self._dropped_frames,
            "target_fps": self._target_fps,
            "actual_resolution": actual_resolution,
        }

    def is_running(self) -> bool:
        return self._running

    def start(self):
        self._running = True
        self._thread.start()
        logger.info("CameraManager started (source=%s, %dx%d @ %d fps).",
                    self._source, self._resolution[0], self._resolution[1], self._target_fps)

    def release(self):
        """Stops the grab thread and releases the device. Safe to call twice."""
        was_running = self._running
        self._running = False
        if was_running and self._thread.is_alive():
            self._thread.join()
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("CameraManager stopped and resources released.")
