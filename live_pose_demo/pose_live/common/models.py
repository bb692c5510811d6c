# live_pose_demo/pose_live/common/models.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Tuple
from .enums import BlazePoseModelType, MoveNetModelType, TrackerType

class FrameMetadata(BaseModel):
    """Metadata associated with a single camera frame."""
    frame_id: int
    timestamp: float
    source_resolution: Tuple[int, int]

class CaptureParameters(BaseModel):
    """Parameters the capture source is (re)initialized with."""
    source: Any = 0
    resolution: Tuple[int, int] = (640, 480)
    target_fps: int = 30
    buffer_size: int = 5

class EstimationOptions(BaseModel):
    max_poses: int = 1
    flip_horizontal: bool = False

class Keypoint(BaseModel):
    """A single 2D keypoint in pixel coordinates."""
    x: float
    y: float
    score: float = 0.0
    name: Optional[str] = None

class BoundingBox(BaseModel):
    x_min: float
    y_min: float
    x_max: float
    y_max: float

class Pose(BaseModel):
    """One detected person: keypoints plus optional overall score and box."""
    keypoints: List[Keypoint] = Field(default_factory=list)
    score: Optional[float] = None
    box: Optional[BoundingBox] = None

# ---------------------------
# Model parameter variants
# ---------------------------

class TrackerConfig(BaseModel):
    max_tracks: int = 18
    max_age: int = 1000
    min_similarity: float = 0.2
    keypoint_confidence_threshold: float = 0.3
    min_number_of_keypoints: int = 4

class PoseNetModelConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    architecture: str = "MobileNetV1"
    output_stride: int = 16
    input_resolution: Dict[str, int] = Field(default_factory=lambda: {"width": 500, "height": 500})
    multiplier: float = 0.75
    quant_bytes: int = 4
    model_url: Optional[str] = None

class BlazePoseModelConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    runtime: str = "mediapipe"
    model_type: BlazePoseModelType = BlazePoseModelType.FULL

class MoveNetModelConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_type: MoveNetModelType = MoveNetModelType.SINGLEPOSE_LIGHTNING
    model_url: Optional[str] = None
    min_pose_score: float = 0.25
    multi_pose_max_dimension: int = 256
    enable_tracking: bool = False
    tracker_type: TrackerType = TrackerType.BOUNDING_BOX
    tracker_config: Optional[TrackerConfig] = None
