import threading

import numpy as np

from pose_live.common.enums import SupportedModel
from pose_live.common.errors import InferenceError
from pose_live.common.models import Keypoint, Pose
from pose_live.common.state import ModelSettings, PoseAppState
from pose_live.orchestration.pose_loop import PoseLoop


def make_pose(score=0.9):
    return Pose(keypoints=[Keypoint(x=10.0, y=12.0, score=score, name="nose")], score=score)


class FakeCamera:
    def __init__(self, params, ready=True):
        self.params = params
        self.ready = ready
        self.released = False
        self.waited = 0
        self.frame = np.zeros((48, 64, 3), dtype=np.uint8)

    def is_ready(self):
        return self.ready

    async def wait_until_ready(self, timeout):
        self.waited += 1
        self.ready = True

    def current_frame(self):
        return self.frame, None

    def release(self):
        self.released = True


class CameraSetup:
    """Stands in for CameraManager.setup; records every camera it opens."""

    def __init__(self, ready=True):
        self.ready = ready
        self.cameras = []
        self.fail_with = None

    async def __call__(self, params):
        if self.fail_with is not None:
            raise self.fail_with
        camera = FakeCamera(params.model_copy(), ready=self.ready)
        self.cameras.append(camera)
        return camera


class Registry:
    """Counts live detectors across the whole test."""

    def __init__(self):
        self.alive = 0
        self.max_alive = 0


class FakeDetector:
    def __init__(self, registry, kind, poses=None):
        self.registry = registry
        self.kind = kind
        self.poses = [make_pose()] if poses is None else poses
        self.disposed = False
        self.calls = 0
        self.fail = False
        self.gate = None
        self.dispose_thread = None
        registry.alive += 1
        registry.max_alive = max(registry.max_alive, registry.alive)

    async def estimate(self, frame, options):
        assert not self.disposed, "estimate on a disposed detector"
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise InferenceError("bad model output")
        return list(self.poses)

    def dispose(self):
        if not self.disposed:
            self.disposed = True
            self.dispose_thread = threading.current_thread()
            self.registry.alive -= 1


class FakeFactory:
    def __init__(self, registry):
        self.registry = registry
        self.calls = []
        self.created = []
        self.fail_next = []
        self.gate = None

    async def create(self, kind, model_config):
        self.calls.append((kind, model_config))
        # The previous detector must be gone before a new one is built.
        assert self.registry.alive == 0
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_next:
            raise self.fail_next.pop(0)
        detector = FakeDetector(self.registry, kind)
        self.created.append(detector)
        return detector


class FakeRuntime:
    def __init__(self):
        self.applied = []

    async def apply(self, flags, backend):
        self.applied.append((dict(flags), backend))


class FakeRenderer:
    def __init__(self):
        self.calls = []
        self.fps = []

    def draw_frame(self, frame):
        self.calls.append("frame")

    def draw_results(self, poses):
        self.calls.append(("results", len(poses)))

    def draw_indicators(self):
        self.calls.append("indicators")

    def update_fps(self, fps, max_value):
        self.fps.append(fps)

    def results_drawn(self):
        return [c for c in self.calls if isinstance(c, tuple)]


class FakeHandle:
    def __init__(self, callback):
        self.callback = callback
        self.cancelled = False


class FakeScheduler:
    def __init__(self):
        self.pending = None
        self.requested = 0
        self.target_fps = None

    def set_target_fps(self, target_fps):
        self.target_fps = target_fps

    def request_frame(self, callback):
        self.requested += 1
        self.pending = FakeHandle(callback)
        return self.pending

    def cancel_frame(self, handle):
        if handle is not None:
            handle.cancelled = True
            if self.pending is handle:
                self.pending = None

    def fire(self):
        handle, self.pending = self.pending, None
        assert handle is not None and not handle.cancelled, "no frame requested"
        handle.callback()


class Harness:
    def __init__(self, ready=True, model=SupportedModel.MOVENET, model_type="lightning"):
        self.state = PoseAppState(model=model, model_config=ModelSettings(type=model_type))
        self.registry = Registry()
        self.factory = FakeFactory(self.registry)
        self.runtime = FakeRuntime()
        self.renderer = FakeRenderer()
        self.scheduler = FakeScheduler()
        self.camera_setup = CameraSetup(ready=ready)
        self.alerts = []
        self.loop = PoseLoop(
            self.state,
            self.factory,
            self.runtime,
            self.renderer,
            self.alerts.append,
            scheduler=self.scheduler,
            camera_setup=self.camera_setup,
        )

    async def start(self):
        await self.loop.start()
        await self.loop._tick_task

    async def tick(self):
        self.scheduler.fire()
        await self.loop._tick_task

