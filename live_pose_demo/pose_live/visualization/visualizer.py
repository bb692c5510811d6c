# live_pose_demo/pose_live/visualization/visualizer.py
import cv2
import logging
import time
import numpy as np
from typing import Callable, List, Optional
from ..common.models import Pose
from ..detection.keypoints import COCO_SKELETON

logger = logging.getLogger(__name__)


class AlertChannel:
    """User-visible failure channel: logs the message and keeps it on screen for a while."""

    def __init__(self, display_seconds: float = 5.0, clock: Callable[[], float] = time.monotonic):
        self.display_seconds = display_seconds
        self.clock = clock
        self.message: Optional[str] = None
        self._shown_at = 0.0

    def __call__(self, message: str) -> None:
        logger.error("ALERT: %s", message)
        self.message = message
        self._shown_at = self.clock()

    def current(self) -> Optional[str]:
        if self.message is None or self.clock() - self._shown_at > self.display_seconds:
            return None
        return self.message


class Visualizer:
    """Draws the camera frame, pose overlays and the HUD onto a canvas."""

    def __init__(self, config: dict, sink: Optional[Callable[[np.ndarray], None]] = None,
                 alerts: Optional[AlertChannel] = None, status: Optional[Callable[[], str]] = None):
        self.config = config
        self.sink = sink
        self.alerts = alerts
        self.status = status
        self.font = cv2.FONT_HERSHEY_SIMPLEX
        self.canvas: Optional[np.ndarray] = None
        self.fps: Optional[float] = None
        self.fps_max: float = 120.0

    def update_fps(self, fps: float, max_value: float) -> None:
        """Stats panel hook: the latest inference rate."""
        self.fps = fps
        self.fps_max = max_value
        logger.debug("Inference rate %.1f fps", fps)

    def draw_frame(self, frame: np.ndarray) -> None:
        self.canvas = frame.copy()

    def draw_results(self, poses: List[Pose]) -> None:
        min_score = self.config.get('keypoint_min_score', 0.3)
        for pose in poses:
            points = [(int(kp.x), int(kp.y)) if kp.score >= min_score else None for kp in pose.keypoints]
            for a, b in COCO_SKELETON:
                if a < len(points) and b < len(points) and points[a] and points[b]:
                    cv2.line(self.canvas, points[a], points[b], (200, 200, 200), 2, cv2.LINE_AA)
            for p in points:
                if p is not None:
                    cv2.circle(self.canvas, p, 3, (0, 255, 0), -1, cv2.LINE_AA)
            if pose.box is not None:
                cv2.rectangle(self.canvas, (int(pose.box.x_min), int(pose.box.y_min)),
                              (int(pose.box.x_max), int(pose.box.y_max)), (255, 160, 0), 1)

    def draw_indicators(self) -> None:
        """Canvas border and HUD, drawn every tick regardless of detector state; then presents."""
        if self.canvas is None:
            return
        h, w = self.canvas.shape[:2]
        cv2.rectangle(self.canvas, (0, 0), (w - 1, h - 1), (90, 90, 90), self.config.get('border_thickness', 2))
        if self.config.get('draw_hud', True):
            self._draw_hud(self.canvas)
        if self.sink is not None:
            self.sink(self.canvas)

    def _draw_hud(self, frame: np.ndarray):
        hud_elements = [f"FPS: {self.fps:.1f}" if self.fps is not None else "FPS: --"]
        if self.status is not None:
            hud_elements.append(self.status())
        for i, text in enumerate(hud_elements):
            cv2.putText(frame, text, (10, 30 + i * 30), self.font, 0.7, (240, 240, 240), 2, cv2.LINE_AA)

        alert = self.alerts.current() if self.alerts is not None else None
        if alert:
            cv2.putText(frame, alert[:80], (10, frame.shape[0] - 15), self.font, 0.5, (0, 0, 255), 1, cv2.LINE_AA)


class DisplayWindow:
    """OpenCV window sink; forwards key presses to `on_key`."""

    def __init__(self, name: str, on_key: Optional[Callable[[int], None]] = None):
        self.name = name
        self.on_key = on_key

    def __call__(self, frame: np.ndarray) -> None:
        cv2.imshow(self.name, frame)
        key = cv2.waitKey(1) & 0xFF
        if key != 0xFF and self.on_key is not None:
            self.on_key(key)

    def close(self) -> None:
        cv2.destroyAllWindows()
