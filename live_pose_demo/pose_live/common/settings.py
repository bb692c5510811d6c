# live_pose_demo/pose_live/common/settings.py
import logging
import os
import yaml

from .enums import LogLevel

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), 'config.yaml')

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def load_config(path: str = DEFAULT_CONFIG_PATH) -> dict:
    """Reads config.yaml. Raises IOError / yaml.YAMLError like the callers expect."""
    with open(path, 'r') as f:
        config = yaml.safe_load(f) or {}
    if not isinstance(config, dict):
        raise yaml.YAMLError(f"Top level of '{path}' must be a mapping.")
    return config


def configure_logging(config: dict) -> LogLevel:
    """Applies the `logging` section; unknown levels fall back to INFO."""
    section = config.get('logging', {}) or {}
    try:
        level = LogLevel(str(section.get('level', LogLevel.INFO.value)).upper())
    except ValueError:
        level = LogLevel.INFO
    logging.basicConfig(level=getattr(logging, level.value), format=section.get('format', LOG_FORMAT))
    return level
