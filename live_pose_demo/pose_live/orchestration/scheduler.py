# live_pose_demo/pose_live/orchestration/scheduler.py
import asyncio
from typing import Callable, Optional


class AsyncioFrameScheduler:
    """Frame-callback primitive on the running event loop, paced at `target_fps`."""

    def __init__(self, target_fps: float = 30.0):
        self.set_target_fps(target_fps)

    def set_target_fps(self, target_fps: float) -> None:
        self.interval = 1.0 / target_fps if target_fps and target_fps > 0 else 0.0

    def request_frame(self, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(self.interval, callback)

    def cancel_frame(self, handle: Optional[asyncio.TimerHandle]) -> None:
        if handle is not None:
            handle.cancel()
