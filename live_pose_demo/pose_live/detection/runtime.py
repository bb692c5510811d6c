# live_pose_demo/pose_live/detection/runtime.py
import asyncio
import logging
from typing import Any, Dict, List

from ..common.errors import LoadError

logger = logging.getLogger(__name__)

_ONNX_PROVIDERS = {
    "cpu": ["CPUExecutionProvider"],
    "cuda": ["CUDAExecutionProvider", "CPUExecutionProvider"],
}

_GRAPH_OPTIMIZATION = {
    "disable": "ORT_DISABLE_ALL",
    "basic": "ORT_ENABLE_BASIC",
    "extended": "ORT_ENABLE_EXTENDED",
    "all": "ORT_ENABLE_ALL",
}

KNOWN_RUNTIMES = ("onnxruntime", "mediapipe")


class RuntimeEnvironment:
    """
    Backend selection plus runtime flags, applied before a detector is built.

    `backend` is "<runtime>-<device>", e.g. "onnxruntime-cuda" or "mediapipe-cpu".
    """

    def __init__(self):
        self.runtime = "onnxruntime"
        self.device = "cpu"
        self.flags: Dict[str, Any] = {}

    @property
    def backend(self) -> str:
        return f"{self.runtime}-{self.device}"

    def _apply(self, flags: Dict[str, Any], backend: str) -> None:
        runtime, _, device = (backend or "").partition("-")
        if runtime not in KNOWN_RUNTIMES:
            raise LoadError(f"Unknown backend '{backend}'. Expected one of: "
                            + ", ".join(f"{r}-<device>" for r in KNOWN_RUNTIMES))
        device = device or "cpu"
        if runtime == "onnxruntime":
            if device not in _ONNX_PROVIDERS:
                raise LoadError(f"Unsupported onnxruntime device '{device}'.")
            optimization = str(flags.get("graph_optimization", "all")).lower()
            if optimization not in _GRAPH_OPTIMIZATION:
                raise LoadError(f"Unknown graph_optimization flag '{optimization}'.")
        self.runtime = runtime
        self.device = device
        self.flags = dict(flags)
        logger.info("Runtime backend set to %s with flags %s", self.backend, self.flags)

    async def apply(self, flags: Dict[str, Any], backend: str) -> None:
        await asyncio.to_thread(self._apply, flags, backend)

    def onnx_providers(self) -> List[str]:
        return list(_ONNX_PROVIDERS.get(self.device, _ONNX_PROVIDERS["cpu"]))

    def onnx_session_options(self):
        import onnxruntime as ort

        opts = ort.SessionOptions()
        threads = int(self.flags.get("intra_op_num_threads", 0) or 0)
        if threads > 0:
            opts.intra_op_num_threads = threads
        level = _GRAPH_OPTIMIZATION[str(self.flags.get("graph_optimization", "all")).lower()]
        opts.graph_optimization_level = getattr(ort.GraphOptimizationLevel, level)
        return opts
