# live_pose_demo/pose_live/detection/onnx_model.py
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np

from ..common.errors import LoadError
from .runtime import RuntimeEnvironment

logger = logging.getLogger(__name__)


class OnnxModel:
    """Thin wrapper over an onnxruntime session with a single NHWC image input."""

    def __init__(self, path: Path, runtime: RuntimeEnvironment):
        try:
            import onnxruntime as ort
        except ImportError as e:
            raise LoadError("onnxruntime is not installed. Install with: pip install onnxruntime") from e

        try:
            self.session = ort.InferenceSession(
                str(path),
                sess_options=runtime.onnx_session_options(),
                providers=runtime.onnx_providers(),
            )
        except Exception as e:
            raise LoadError(f"Could not load ONNX model {path}: {e}") from e

        inp = self.session.get_inputs()[0]
        self.input_name = inp.name
        self.input_dtype = np.int32 if "int32" in inp.type else np.float32
        self.input_shape = tuple(inp.shape)
        logger.info("Loaded %s (input %s %s, providers %s)", path.name, self.input_name,
                    self.input_shape, self.session.get_providers())

    def static_hw(self) -> Optional[Tuple[int, int]]:
        """(height, width) if the model declares a fixed NHWC input size."""
        if len(self.input_shape) != 4:
            return None
        h, w = self.input_shape[1], self.input_shape[2]
        if isinstance(h, int) and isinstance(w, int):
            return h, w
        return None

    def run(self, image: np.ndarray) -> Dict[str, np.ndarray]:
        blob = image[None, ...].astype(self.input_dtype)
        outputs = self.session.run(None, {self.input_name: blob})
        names = [o.name for o in self.session.get_outputs()]
        return dict(zip(names, outputs))

    def close(self) -> None:
        self.session = None
