# live_pose_demo/pose_live/controls/control_panel.py
import logging
from typing import Any, Callable, Optional, Tuple

from ..common.enums import SupportedModel
from ..common.state import BACKENDS, MODEL_TYPES, PoseAppState

logger = logging.getLogger(__name__)

RESOLUTIONS = [(640, 480), (1280, 720), (320, 240)]
FPS_STEPS = [5, 10, 15, 30, 60]


class ControlPanel:
    """The only writer of PoseAppState values; each write raises the matching change flag."""

    def __init__(self, state: PoseAppState):
        self.state = state

    def _model_changed(self, **flags: bool) -> None:
        changes = self.state.changes
        for name, value in flags.items():
            setattr(changes, name, getattr(changes, name) or value)
        changes.model_revision += 1

    def _capture_changed(self, **flags: bool) -> None:
        changes = self.state.changes
        for name, value in flags.items():
            setattr(changes, name, getattr(changes, name) or value)
        changes.capture_revision += 1

    def select_model(self, model: SupportedModel) -> None:
        """Switches model family, resetting its type and backend to that family's defaults."""
        state = self.state
        backend_changed = state.backend not in BACKENDS[model]
        state.model = model
        state.model_config.type = MODEL_TYPES[model][0]
        state.model_config.custom_model = ""
        if backend_changed:
            state.backend = BACKENDS[model][0]
        self._model_changed(model_changed=True, backend_changed=backend_changed)

    def set_model_type(self, model_type: Optional[str]) -> None:
        self.state.model_config.type = model_type
        self._model_changed(model_changed=True)

    def set_custom_model(self, url: str) -> None:
        self.state.model_config.custom_model = url or ""
        self._model_changed(model_changed=True)

    def set_max_poses(self, max_poses: int) -> None:
        # Read per inference; no reconfiguration needed.
        self.state.model_config.max_poses = max(1, int(max_poses))

    def set_backend(self, backend: str) -> None:
        self.state.backend = backend
        self._model_changed(backend_changed=True)

    def set_flag(self, name: str, value: Any) -> None:
        self.state.flags[name] = value
        self._model_changed(flags_changed=True)

    def set_target_fps(self, target_fps: int) -> None:
        self.state.camera.target_fps = int(target_fps)
        self._capture_changed(target_fps_changed=True)

    def set_size(self, resolution: Tuple[int, int]) -> None:
        self.state.camera.resolution = tuple(resolution)
        self._capture_changed(size_changed=True)


def _next(options: list, current) -> Any:
    if current not in options:
        return options[0]
    return options[(options.index(current) + 1) % len(options)]


class KeyboardControls:
    """
    Maps display-window keys onto ControlPanel writes.

    1/2/3 select PoseNet/BlazePose/MoveNet, t cycles model type, b cycles
    backend, f/F lower/raise target fps, s cycles resolution, q or Esc quits.
    """

    MODEL_KEYS = {
        ord('1'): SupportedModel.POSENET,
        ord('2'): SupportedModel.BLAZEPOSE,
        ord('3'): SupportedModel.MOVENET,
    }

    def __init__(self, panel: ControlPanel, on_quit: Callable[[], None]):
        self.panel = panel
        self.on_quit = on_quit

    def __call__(self, key: int) -> None:
        state = self.panel.state
        if key in (ord('q'), 27):
            logger.info("Shutdown signal received.")
            self.on_quit()
            return
        elif key in self.MODEL_KEYS:
            self.panel.select_model(self.MODEL_KEYS[key])
        elif key == ord('t'):
            self.panel.set_model_type(_next(MODEL_TYPES[state.model], state.model_config.type))
        elif key == ord('b'):
            self.panel.set_backend(_next(BACKENDS[state.model], state.backend))
        elif key in (ord('f'), ord('F')):
            steps = FPS_STEPS
            lower = [f for f in steps if f < state.camera.target_fps]
            higher = [f for f in steps if f > state.camera.target_fps]
            target = (lower[-1] if lower else steps[0]) if key == ord('f') else (higher[0] if higher else steps[-1])
            self.panel.set_target_fps(target)
        elif key == ord('s'):
            self.panel.set_size(_next(RESOLUTIONS, tuple(state.camera.resolution)))
        else:
            return
        logger.info("Control change: model=%s type=%s backend=%s camera=%sx%s@%s",
                    state.model.value, state.model_config.type, state.backend,
                    state.camera.resolution[0], state.camera.resolution[1], state.camera.target_fps)
