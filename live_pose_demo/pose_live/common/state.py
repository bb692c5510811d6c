# live_pose_demo/pose_live/common/state.py
"""
Shared, mutable configuration for one live session.

The control panel is the only writer of values (and the only code that raises
change flags); the pose loop reads values and is the only code that clears
flags. Nothing else should touch an instance directly.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .enums import SupportedModel, TrackerType
from .models import CaptureParameters, TrackerConfig

# Per-model choices offered by the control panel; the first entry is the default.
MODEL_TYPES: Dict[SupportedModel, List[Optional[str]]] = {
    SupportedModel.POSENET: [None],
    SupportedModel.BLAZEPOSE: ["full", "lite", "heavy"],
    SupportedModel.MOVENET: ["lightning", "thunder", "multipose"],
}

BACKENDS: Dict[SupportedModel, List[str]] = {
    SupportedModel.POSENET: ["onnxruntime-cpu", "onnxruntime-cuda"],
    SupportedModel.BLAZEPOSE: ["mediapipe-cpu", "mediapipe-gpu"],
    SupportedModel.MOVENET: ["onnxruntime-cpu", "onnxruntime-cuda"],
}


class ModelSettings(BaseModel):
    type: Optional[str] = None
    custom_model: str = ""
    max_poses: int = 1
    flip_horizontal: bool = False


class TrackerSettings(BaseModel):
    enabled: bool = False
    type: TrackerType = TrackerType.BOUNDING_BOX
    config: TrackerConfig = Field(default_factory=TrackerConfig)


@dataclass
class ChangeFlags:
    """What changed since the last reconciliation."""

    model_changed: bool = False
    backend_changed: bool = False
    flags_changed: bool = False
    target_fps_changed: bool = False
    size_changed: bool = False

    # Bumped on every write that raises the matching flags.
    model_revision: int = 0
    capture_revision: int = 0

    def capture_pending(self) -> bool:
        return self.target_fps_changed or self.size_changed

    def model_pending(self) -> bool:
        return self.model_changed or self.backend_changed or self.flags_changed

    def runtime_pending(self) -> bool:
        return self.backend_changed or self.flags_changed

    def clear_capture(self, revision: int) -> bool:
        """Clear the capture flags unless a newer write arrived after `revision`."""
        if revision != self.capture_revision:
            return False
        self.target_fps_changed = False
        self.size_changed = False
        return True

    def clear_model(self, revision: int) -> bool:
        """Clear the model flags unless a newer write arrived after `revision`."""
        if revision != self.model_revision:
            return False
        self.model_changed = False
        self.backend_changed = False
        self.flags_changed = False
        return True


@dataclass
class PoseAppState:
    model: SupportedModel = SupportedModel.MOVENET
    backend: str = "onnxruntime-cpu"
    flags: Dict[str, Any] = field(default_factory=dict)
    model_config: ModelSettings = field(default_factory=ModelSettings)
    tracker: TrackerSettings = field(default_factory=TrackerSettings)
    camera: CaptureParameters = field(default_factory=CaptureParameters)
    changes: ChangeFlags = field(default_factory=ChangeFlags)

    @classmethod
    def from_config(cls, config: dict, model: SupportedModel) -> "PoseAppState":
        """Builds the initial state from the `app` and `camera` sections of config.yaml."""
        app = config.get('app', {})
        model_type = app.get('type') or MODEL_TYPES[model][0]
        backend = app.get('backend') or BACKENDS[model][0]
        return cls(
            model=model,
            backend=backend,
            flags=dict(app.get('flags') or {}),
            model_config=ModelSettings(
                type=model_type,
                custom_model=app.get('custom_model') or "",
                max_poses=app.get('max_poses', 1),
                flip_horizontal=app.get('flip_horizontal', False),
            ),
            tracker=TrackerSettings(**(app.get('tracker') or {})),
            camera=CaptureParameters(**config.get('camera', {})),
        )
