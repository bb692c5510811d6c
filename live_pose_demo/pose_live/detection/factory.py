# live_pose_demo/pose_live/detection/factory.py
"""
Detector factory.

`build_model_config` turns the current app state into the parameter record for
the selected model family; `DetectorFactory.create` builds the detector for
that record off the event loop. Every construction failure leaves here as
LoadError.
"""
import asyncio
import logging
from typing import Tuple, Union

from ..common.enums import BlazePoseModelType, MoveNetModelType, SupportedModel
from ..common.errors import LoadError
from ..common.models import BlazePoseModelConfig, MoveNetModelConfig, PoseNetModelConfig
from ..common.state import PoseAppState
from .base import PoseDetector
from .model_files import resolve_model_path
from .runtime import RuntimeEnvironment

logger = logging.getLogger(__name__)

ModelConfig = Union[PoseNetModelConfig, BlazePoseModelConfig, MoveNetModelConfig]

MOVENET_TYPES = {
    "lightning": MoveNetModelType.SINGLEPOSE_LIGHTNING,
    "thunder": MoveNetModelType.SINGLEPOSE_THUNDER,
    "multipose": MoveNetModelType.MULTIPOSE_LIGHTNING,
}

_MOVENET_DEFAULT_KEYS = {
    MoveNetModelType.SINGLEPOSE_LIGHTNING: "movenet_lightning",
    MoveNetModelType.SINGLEPOSE_THUNDER: "movenet_thunder",
    MoveNetModelType.MULTIPOSE_LIGHTNING: "movenet_multipose",
}


def build_model_config(state: PoseAppState) -> Tuple[SupportedModel, ModelConfig]:
    """Parameter record for the selected model; LoadError on an invalid selection."""
    settings = state.model_config
    custom_model = (settings.custom_model or "").strip() or None
    try:
        if state.model == SupportedModel.POSENET:
            return state.model, PoseNetModelConfig(model_url=custom_model)

        if state.model == SupportedModel.BLAZEPOSE:
            runtime = state.backend.split("-")[0]
            return state.model, BlazePoseModelConfig(
                runtime=runtime,
                model_type=BlazePoseModelType(settings.type or BlazePoseModelType.FULL.value),
            )

        if state.model == SupportedModel.MOVENET:
            if settings.type not in MOVENET_TYPES:
                raise LoadError(f"Unknown MoveNet type '{settings.type}'. "
                                f"Expected one of: {', '.join(MOVENET_TYPES)}")
            fields = {"model_type": MOVENET_TYPES[settings.type]}
            if custom_model is not None:
                fields["model_url"] = custom_model
            if state.tracker.enabled:
                fields.update(enable_tracking=True, tracker_type=state.tracker.type,
                              tracker_config=state.tracker.config)
            return state.model, MoveNetModelConfig(**fields)
    except ValueError as e:
        raise LoadError(f"Invalid {state.model.value} configuration: {e}") from e

    raise LoadError(f"Unsupported model '{state.model}'.")


class DetectorFactory:
    """Builds detectors for a model kind, using default model files from config['models']."""

    def __init__(self, config: dict, runtime: RuntimeEnvironment):
        self.config = config
        self.runtime = runtime
        self.models_dir = config.get('models_dir', 'models')

    def _location(self, model_url, default_key: str) -> str:
        return model_url or self.config.get(default_key, "")

    def _build(self, kind: SupportedModel, model_config: ModelConfig) -> PoseDetector:
        # Backends are imported lazily so a missing optional runtime only fails its own model.
        if kind == SupportedModel.MOVENET:
            from .movenet import MoveNetDetector
            path = resolve_model_path(self._location(model_config.model_url, _MOVENET_DEFAULT_KEYS[model_config.model_type]),
                                      self.models_dir)
            return MoveNetDetector(path, model_config, self.runtime)
        if kind == SupportedModel.BLAZEPOSE:
            from .blazepose import BlazePoseDetector
            return BlazePoseDetector(model_config)
        if kind == SupportedModel.POSENET:
            from .posenet import PoseNetDetector
            path = resolve_model_path(self._location(model_config.model_url, "posenet"), self.models_dir)
            return PoseNetDetector(path, model_config, self.runtime)
        raise LoadError(f"Unsupported model '{kind}'.")

    async def create(self, kind: SupportedModel, model_config: ModelConfig) -> PoseDetector:
        try:
            detector = await asyncio.to_thread(self._build, kind, model_config)
        except LoadError:
            raise
        except Exception as e:
            raise LoadError(f"Failed to create {kind.value} detector: {e}") from e
        logger.info("Created %s detector on %s.", detector.name, self.runtime.backend)
        return detector
