# live_pose_demo/pose_live/common/enums.py
from enum import Enum

class SupportedModel(str, Enum):
    """Pose-estimation model families the detector factory can build."""
    POSENET = "PoseNet"
    BLAZEPOSE = "BlazePose"
    MOVENET = "MoveNet"

class MoveNetModelType(str, Enum):
    SINGLEPOSE_LIGHTNING = "SinglePose.Lightning"
    SINGLEPOSE_THUNDER = "SinglePose.Thunder"
    MULTIPOSE_LIGHTNING = "MultiPose.Lightning"

class BlazePoseModelType(str, Enum):
    LITE = "lite"
    FULL = "full"
    HEAVY = "heavy"

class TrackerType(str, Enum):
    KEYPOINT = "keypoint"
    BOUNDING_BOX = "boundingBox"

class LoopState(str, Enum):
    """Defines the lifecycle state of the PoseLoop."""
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"

class LogLevel(str, Enum):
    """Defines logging levels accepted in config.yaml."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
