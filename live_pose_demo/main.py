# live_pose_demo/main.py
import argparse
import asyncio
import logging
import yaml

from pose_live.common.enums import SupportedModel
from pose_live.common.errors import DeviceError
from pose_live.common.settings import DEFAULT_CONFIG_PATH, configure_logging, load_config
from pose_live.common.state import PoseAppState
from pose_live.controls.control_panel import ControlPanel, KeyboardControls
from pose_live.detection.factory import DetectorFactory
from pose_live.detection.runtime import RuntimeEnvironment
from pose_live.orchestration.pose_loop import PoseLoop
from pose_live.visualization.visualizer import AlertChannel, DisplayWindow, Visualizer

logger = logging.getLogger("live_pose_demo")


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Live pose estimation demo (PoseNet / BlazePose / MoveNet)")
    p.add_argument("--model", choices=[m.value for m in SupportedModel],
                   help="Model family to start with.")
    p.add_argument("--type", help="Model type, e.g. lightning / thunder / multipose or lite / full / heavy.")
    p.add_argument("--backend", help="Runtime backend, e.g. onnxruntime-cpu or mediapipe-cpu.")
    p.add_argument("--custom-model", default=None, help="URL or path of a custom model file.")
    p.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to config.yaml.")
    return p.parse_args(argv)


def build_state(args: argparse.Namespace, config: dict) -> PoseAppState:
    app = dict(config.get('app', {}) or {})
    for key, value in (("type", args.type), ("backend", args.backend), ("custom_model", args.custom_model)):
        if value is not None:
            app[key] = value
    return PoseAppState.from_config(dict(config, app=app), SupportedModel(args.model))


def describe_status(state: PoseAppState, camera=None) -> str:
    """HUD line: active model, backend and, once capture runs, dropped frames."""
    status = f"{state.model.value} {state.model_config.type or ''} [{state.backend}]"
    if camera is not None:
        status += f" dropped {camera.get_stats()['dropped_frames']}"
    return status


class QuitHandler:
    """Keyboard quit callback; holds the stop task until it finishes."""

    def __init__(self, pose_loop=None):
        self.pose_loop = pose_loop
        self.task = None

    def __call__(self):
        if self.task is None and self.pose_loop is not None:
            self.task = asyncio.get_running_loop().create_task(self.pose_loop.stop())


async def run(args: argparse.Namespace, config: dict) -> int:
    state = build_state(args, config)
    viz_config = config.get('visualization', {}) or {}

    alerts = AlertChannel()
    runtime = RuntimeEnvironment()
    factory = DetectorFactory(config.get('models', {}) or {}, runtime)
    panel = ControlPanel(state)

    quit_handler = QuitHandler()
    window = DisplayWindow(viz_config.get('window_name', 'Live Pose Demo'),
                           on_key=KeyboardControls(panel, on_quit=quit_handler))
    visualizer = Visualizer(
        viz_config,
        sink=window,
        alerts=alerts,
        status=lambda: describe_status(state, pose_loop.camera),
    )
    pose_loop = PoseLoop(state, factory, runtime, visualizer, alerts, config=config.get('loop', {}) or {})
    quit_handler.pose_loop = pose_loop

    try:
        await pose_loop.start()
        error = await pose_loop.wait_stopped()
    finally:
        await pose_loop.stop()
        window.close()
    return 1 if error is not None else 0


def main(argv=None) -> int:
    args = parse_args(argv)
    if not args.model:
        print("ERROR: Cannot find model in the arguments. Pass --model PoseNet|BlazePose|MoveNet.")
        return 2

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        print(f"ERROR: Configuration file '{args.config}' not found.")
        return 2
    except yaml.YAMLError as e:
        print(f"ERROR: Failed to parse configuration file '{args.config}'. {e}")
        return 2
    configure_logging(config)

    try:
        return asyncio.run(run(args, config))
    except DeviceError as e:
        logger.error("Failed to initialize capture: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Shutdown signal received.")
        return 0
    finally:
        logger.info("Application terminated.")


if __name__ == "__main__":
    raise SystemExit(main())
