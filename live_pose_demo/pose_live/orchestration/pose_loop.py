# live_pose_demo/pose_live/orchestration/pose_loop.py
"""
The capture -> infer -> render loop and the detector lifecycle around it.

Each tick reconciles pending configuration changes (camera restart, detector
replacement), runs one inference on the latest frame, renders, and only then
asks the frame scheduler for the next tick, so tick bodies never overlap.

Detector replacements bump `generation`. A result is drawn only if the
generation it was dispatched under is still current and no model change is
pending; a model load that resolves after its generation was superseded (or
after stop) disposes what it built.
"""
import asyncio
import functools
import logging
from typing import Callable, Optional

from ..camera.camera_manager import CameraManager
from ..common.enums import LoopState
from ..common.errors import DeviceError, InferenceError, LoadError
from ..common.models import EstimationOptions
from ..common.state import PoseAppState
from ..detection.factory import DetectorFactory, build_model_config
from ..detection.runtime import RuntimeEnvironment
from .scheduler import AsyncioFrameScheduler
from .stats import InferenceStats

logger = logging.getLogger(__name__)


class PoseLoop:

    def __init__(
        self,
        state: PoseAppState,
        factory: DetectorFactory,
        runtime: RuntimeEnvironment,
        renderer,
        notify: Callable[[str], None],
        scheduler=None,
        camera_setup=CameraManager.setup,
        config: Optional[dict] = None,
        stats: Optional[InferenceStats] = None,
    ):
        config = config or {}
        self.state = state
        self.factory = factory
        self.runtime = runtime
        self.renderer = renderer
        self.notify = notify
        self.scheduler = scheduler or AsyncioFrameScheduler(state.camera.target_fps)
        self._camera_setup = camera_setup
        self.first_frame_timeout = float(config.get('first_frame_timeout_s', 10.0))
        self.stats = stats or InferenceStats(renderer.update_fps, interval_ms=config.get('stats_interval_ms', 1000))

        self.loop_state = LoopState.IDLE
        self.camera = None
        self.detector = None
        self.generation = 0
        self.reconfiguring = False
        self.error: Optional[BaseException] = None

        self._frame_handle = None
        self._tick_task: Optional[asyncio.Task] = None
        self._stopped = asyncio.Event()

    # ---------------------------
    # Lifecycle
    # ---------------------------

    async def start(self) -> None:
        """Opens the camera, builds the first detector and runs the first tick."""
        if self.loop_state is not LoopState.IDLE:
            raise RuntimeError(f"PoseLoop cannot start from state {self.loop_state.value}")
        try:
            self.camera = await self._camera_setup(self.state.camera)
        except DeviceError as e:
            logger.error("Capture setup failed: %s", e)
            self.error = e
            self.notify(str(e))
            raise
        # stop() may run while start() is suspended; it stays terminal.
        if self.loop_state is LoopState.STOPPED:
            await self._release_camera()
            return
        self.scheduler.set_target_fps(self.state.camera.target_fps)

        changes = self.state.changes
        try:
            await self._replace_detector(apply_runtime=True, revision=changes.model_revision)
        except Exception:
            await self._release_camera()
            raise
        if self.loop_state is LoopState.STOPPED:
            return

        self.loop_state = LoopState.RUNNING
        logger.info("Pose loop running (%s on %s).", self.state.model.value, self.state.backend)
        self._tick_task = asyncio.get_running_loop().create_task(self._tick())

    async def stop(self) -> None:
        if self.loop_state is LoopState.STOPPED:
            return
        self.loop_state = LoopState.STOPPED
        self.generation += 1
        self._cancel_frame()

        task, self._tick_task = self._tick_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        await self._dispose_detector()
        await self._release_camera()
        self._stopped.set()
        logger.info("Pose loop stopped.")

    async def wait_stopped(self) -> Optional[BaseException]:
        """Resolves once the loop is stopped; returns the fatal error, if any."""
        await self._stopped.wait()
        return self.error

    # ---------------------------
    # Tick
    # ---------------------------

    def _on_frame(self) -> None:
        self._frame_handle = None
        if self.loop_state is LoopState.RUNNING:
            self._tick_task = asyncio.get_running_loop().create_task(self._tick())

    def _cancel_frame(self) -> None:
        self.scheduler.cancel_frame(self._frame_handle)
        self._frame_handle = None

    async def _tick(self) -> None:
        try:
            await self._reconcile()
            if self.loop_state is not LoopState.RUNNING:
                return
            if not self.reconfiguration_pending():
                await self._render_result()
        except Exception as e:
            await self._fail(e)
            return
        if self.loop_state is LoopState.RUNNING:
            self._frame_handle = self.scheduler.request_frame(self._on_frame)

    async def _fail(self, error: Exception) -> None:
        if isinstance(error, DeviceError):
            logger.error("Capture failed, stopping: %s", error)
        else:
            logger.exception("Unexpected error in pose loop, stopping")
        self.error = error
        self.notify(str(error))
        await self.stop()

    def reconfiguration_pending(self) -> bool:
        return self.reconfiguring or self.state.changes.model_pending()

    # ---------------------------
    # Reconciliation
    # ---------------------------

    async def _reconcile(self) -> None:
        changes = self.state.changes
        if changes.capture_pending():
            revision = changes.capture_revision
            await self._restart_camera()
            changes.clear_capture(revision)

        if changes.model_pending():
            await self._replace_detector(apply_runtime=changes.runtime_pending(),
                                         revision=changes.model_revision)

    async def _restart_camera(self) -> None:
        params = self.state.camera
        logger.info("Restarting camera at %sx%s @ %s fps.", params.resolution[0], params.resolution[1], params.target_fps)
        await self._release_camera()
        self.camera = await self._camera_setup(params)
        self.scheduler.set_target_fps(params.target_fps)

    async def _replace_detector(self, apply_runtime: bool, revision: int) -> None:
        self.generation += 1
        generation = self.generation
        self.reconfiguring = True
        self._cancel_frame()
        await self._dispose_detector()

        detector = None
        try:
            if apply_runtime:
                await self.runtime.apply(self.state.flags, self.state.backend)
            kind, model_config = build_model_config(self.state)
            logger.info("Loading %s with %s", kind.value, model_config)
            load = asyncio.ensure_future(self.factory.create(kind, model_config))
            load.add_done_callback(functools.partial(self._discard_stale_detector, generation))
            detector = await asyncio.shield(load)
        except LoadError as e:
            logger.error("Detector load failed: %s", e)
            self.notify(str(e))

        if detector is not None and not self._is_current(generation):
            await asyncio.to_thread(detector.dispose)
            detector = None
        if self._is_current(generation):
            self.detector = detector
            self.reconfiguring = False
        self.state.changes.clear_model(revision)

    def _is_current(self, generation: int) -> bool:
        return generation == self.generation and self.loop_state is not LoopState.STOPPED

    def _discard_stale_detector(self, generation: int, load: asyncio.Future) -> None:
        if load.cancelled() or load.exception() is not None:
            return
        if not self._is_current(generation):
            logger.debug("Discarding detector from superseded generation %d.", generation)
            load.result().dispose()

    async def _release_camera(self) -> None:
        if self.camera is not None:
            camera, self.camera = self.camera, None
            await asyncio.to_thread(camera.release)

    async def _dispose_detector(self) -> None:
        if self.detector is not None:
            detector, self.detector = self.detector, None
            await asyncio.to_thread(detector.dispose)

    # ---------------------------
    # Inference and rendering
    # ---------------------------

    async def _render_result(self) -> None:
        camera = self.camera
        if not camera.is_ready():
            await camera.wait_until_ready(self.first_frame_timeout)
        frame, _metadata = camera.current_frame()

        poses = None
        generation = self.generation
        detector = self.detector
        # Detector is None when the last load failed or inference blew up.
        if detector is not None and not self.reconfiguring:
            settings = self.state.model_config
            options = EstimationOptions(max_poses=settings.max_poses, flip_horizontal=settings.flip_horizontal)
            self.stats.begin()
            try:
                poses = await detector.estimate(frame, options)
            except InferenceError as e:
                self.stats.cancel()
                logger.error("Inference failed, dropping detector: %s", e)
                if self.detector is detector:
                    self.detector = None
                await asyncio.to_thread(detector.dispose)
                self.notify(str(e))
            else:
                self.stats.end()

        self.renderer.draw_frame(frame)
        # A result from a model that is being replaced must not be drawn.
        if poses and generation == self.generation and not self.reconfiguration_pending():
            self.renderer.draw_results(poses)
        self.renderer.draw_indicators()
