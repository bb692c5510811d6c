import asyncio
import threading

import pytest

from conftest import Harness
from pose_live.common.enums import LoopState, MoveNetModelType, SupportedModel
from pose_live.common.errors import DeviceError, LoadError
from pose_live.controls.control_panel import ControlPanel


async def settle(n=5):
    for _ in range(n):
        await asyncio.sleep(0)


def test_start_builds_detector_and_renders_first_tick():
    async def scenario():
        h = Harness()
        await h.start()

        assert h.loop.loop_state is LoopState.RUNNING
        assert len(h.factory.calls) == 1
        kind, model_config = h.factory.calls[0]
        assert kind is SupportedModel.MOVENET
        assert model_config.model_type is MoveNetModelType.SINGLEPOSE_LIGHTNING
        assert h.runtime.applied == [({}, "onnxruntime-cpu")]
        assert h.renderer.calls == ["frame", ("results", 1), "indicators"]
        assert h.scheduler.requested == 1
        assert h.loop.error is None

    asyncio.run(scenario())


def test_device_error_on_setup_never_enters_running():
    async def scenario():
        h = Harness()
        h.camera_setup.fail_with = DeviceError("Cannot open camera source: 0")

        with pytest.raises(DeviceError):
            await h.loop.start()

        assert h.loop.loop_state is LoopState.IDLE
        assert h.alerts == ["Cannot open camera source: 0"]
        assert h.factory.calls == []
        assert h.scheduler.requested == 0

    asyncio.run(scenario())


def test_first_frame_is_awaited_once():
    async def scenario():
        h = Harness(ready=False)
        await h.start()
        camera = h.camera_setup.cameras[0]
        assert camera.waited == 1
        assert ("results", 1) in h.renderer.calls

        await h.tick()
        assert camera.waited == 1

    asyncio.run(scenario())


def test_load_failure_degrades_to_raw_frames_until_reselection():
    async def scenario():
        h = Harness()
        h.factory.fail_next.append(LoadError("model.json returned 404"))
        await h.start()

        assert h.loop.detector is None
        assert not h.loop.reconfiguring
        assert h.alerts == ["model.json returned 404"]
        assert h.loop.loop_state is LoopState.RUNNING

        await h.tick()
        await h.tick()
        assert h.renderer.results_drawn() == []
        assert h.renderer.calls.count("frame") == 3
        assert h.renderer.calls.count("indicators") == 3

        # Reselecting is the only way to retry.
        ControlPanel(h.state).set_model_type("lightning")
        await h.tick()
        assert len(h.factory.calls) == 2
        assert h.renderer.results_drawn() == [("results", 1)]

    asyncio.run(scenario())


def test_model_change_disposes_old_detector_before_building_new_one():
    async def scenario():
        h = Harness()
        await h.start()
        first = h.factory.created[0]

        ControlPanel(h.state).select_model(SupportedModel.BLAZEPOSE)
        await h.tick()

        assert first.disposed
        assert h.factory.calls[-1][0] is SupportedModel.BLAZEPOSE
        assert h.runtime.applied[-1] == ({}, "mediapipe-cpu")
        assert h.loop.detector is h.factory.created[1]
        assert h.loop.generation == 2
        assert h.registry.max_alive == 1
        assert not h.state.changes.model_pending()

    asyncio.run(scenario())


def test_model_type_change_does_not_reapply_runtime():
    async def scenario():
        h = Harness()
        await h.start()

        ControlPanel(h.state).set_model_type("thunder")
        await h.tick()

        assert len(h.runtime.applied) == 1
        assert h.factory.calls[-1][1].model_type is MoveNetModelType.SINGLEPOSE_THUNDER

    asyncio.run(scenario())


def test_inference_failure_drops_detector_and_keeps_looping():
    async def scenario():
        h = Harness()
        await h.start()
        detector = h.factory.created[0]
        detector.fail = True
        h.renderer.calls.clear()

        await h.tick()
        assert detector.disposed
        assert h.loop.detector is None
        assert h.alerts == ["bad model output"]
        assert h.renderer.calls == ["frame", "indicators"]

        await h.tick()
        assert detector.calls == 2
        assert h.loop.loop_state is LoopState.RUNNING
        assert h.registry.alive == 0

    asyncio.run(scenario())


def test_result_in_flight_during_model_change_is_not_drawn():
    async def scenario():
        h = Harness()
        await h.start()
        detector = h.factory.created[0]
        detector.gate = asyncio.Event()
        h.renderer.calls.clear()

        h.scheduler.fire()
        task = h.loop._tick_task
        while detector.calls < 2:
            await asyncio.sleep(0)

        ControlPanel(h.state).set_model_type("thunder")
        assert h.loop.reconfiguration_pending()
        detector.gate.set()
        await task

        assert h.renderer.calls == ["frame", "indicators"]

        await h.tick()
        assert detector.disposed
        assert h.factory.calls[-1][1].model_type is MoveNetModelType.SINGLEPOSE_THUNDER
        assert h.renderer.results_drawn() == [("results", 1)]

    asyncio.run(scenario())


def test_change_during_load_is_not_lost():
    async def scenario():
        h = Harness()
        await h.start()
        panel = ControlPanel(h.state)
        h.factory.gate = asyncio.Event()
        h.renderer.calls.clear()

        panel.set_model_type("thunder")
        h.scheduler.fire()
        task = h.loop._tick_task
        while len(h.factory.calls) < 2:
            await asyncio.sleep(0)
        assert h.loop.reconfiguring

        panel.set_model_type("multipose")
        h.factory.gate.set()
        await task

        assert h.state.changes.model_changed
        assert h.renderer.calls == []

        h.factory.gate = None
        await h.tick()
        assert h.factory.calls[-1][1].model_type is MoveNetModelType.MULTIPOSE_LIGHTNING
        assert not h.state.changes.model_pending()
        assert h.registry.max_alive == 1
        assert h.renderer.results_drawn() == [("results", 1)]

    asyncio.run(scenario())


def test_load_resolving_after_stop_is_disposed():
    async def scenario():
        h = Harness()
        await h.start()
        h.factory.gate = asyncio.Event()

        ControlPanel(h.state).select_model(SupportedModel.POSENET)
        h.scheduler.fire()
        while len(h.factory.calls) < 2:
            await asyncio.sleep(0)

        await h.loop.stop()
        assert h.loop.loop_state is LoopState.STOPPED

        h.factory.gate.set()
        await settle()

        late = h.factory.created[-1]
        assert late.kind is SupportedModel.POSENET
        assert late.disposed
        assert h.loop.detector is None
        assert h.registry.alive == 0

    asyncio.run(scenario())


def test_capture_and_model_changes_in_same_tick():
    async def scenario():
        h = Harness()
        await h.start()
        panel = ControlPanel(h.state)

        panel.set_size((1280, 720))
        panel.set_target_fps(15)
        panel.select_model(SupportedModel.BLAZEPOSE)
        await h.tick()

        cameras = h.camera_setup.cameras
        assert len(cameras) == 2
        assert cameras[0].released
        assert cameras[1].params.resolution == (1280, 720)
        assert h.scheduler.target_fps == 15
        assert not h.state.changes.capture_pending()
        assert h.factory.calls[-1][0] is SupportedModel.BLAZEPOSE
        assert h.renderer.results_drawn()[-1] == ("results", 1)

    asyncio.run(scenario())


def test_capture_failure_while_running_is_fatal():
    async def scenario():
        h = Harness()
        await h.start()
        detector = h.factory.created[0]

        h.camera_setup.fail_with = DeviceError("camera unplugged")
        ControlPanel(h.state).set_target_fps(10)
        await h.tick()

        assert h.loop.loop_state is LoopState.STOPPED
        assert isinstance(await h.loop.wait_stopped(), DeviceError)
        assert h.alerts == ["camera unplugged"]
        assert detector.disposed
        assert h.scheduler.pending is None

    asyncio.run(scenario())


def test_stop_releases_everything_and_is_idempotent():
    async def scenario():
        h = Harness()
        await h.start()
        detector = h.factory.created[0]
        handle = h.scheduler.pending

        await h.loop.stop()
        await h.loop.stop()

        assert handle.cancelled
        assert detector.disposed
        assert detector.dispose_thread is not threading.main_thread()
        assert h.camera_setup.cameras[0].released
        assert h.loop.camera is None
        assert await h.loop.wait_stopped() is None

    asyncio.run(scenario())


def test_stop_during_first_load_keeps_loop_stopped():
    async def scenario():
        h = Harness()
        h.factory.gate = asyncio.Event()
        starting = asyncio.ensure_future(h.loop.start())
        while not h.factory.calls:
            await asyncio.sleep(0)

        await h.loop.stop()
        h.factory.gate.set()
        await starting

        assert h.loop.loop_state is LoopState.STOPPED
        assert h.loop._tick_task is None
        assert h.loop.detector is None
        assert h.factory.created[0].disposed
        assert h.registry.alive == 0
        assert h.camera_setup.cameras[0].released
        assert h.scheduler.requested == 0
        assert h.renderer.calls == []

    asyncio.run(scenario())


def test_start_twice_is_rejected():
    async def scenario():
        h = Harness()
        await h.start()
        with pytest.raises(RuntimeError):
            await h.loop.start()
        await h.loop.stop()

    asyncio.run(scenario())
