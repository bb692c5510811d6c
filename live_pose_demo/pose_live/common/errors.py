# live_pose_demo/pose_live/common/errors.py

class PoseLiveError(Exception):
    """Base class for errors raised by the pose loop and its collaborators."""

class LoadError(PoseLiveError):
    """Model construction failed (unreachable or malformed model, bad runtime)."""

class DeviceError(PoseLiveError, IOError):
    """The capture device could not be opened or stopped producing frames."""

class InferenceError(PoseLiveError):
    """The detector rejected a frame or produced output it could not decode."""

class NotReadyError(PoseLiveError):
    """A frame was requested before the capture source produced its first one."""
