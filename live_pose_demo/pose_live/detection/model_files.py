# live_pose_demo/pose_live/detection/model_files.py
"""
Resolves a model location (local path or URL) into a local file.

URLs are downloaded once into `models_dir/<url digest>/` (temp file, then
atomic rename) and reused afterwards. Any failure surfaces as LoadError so
the pose loop can recover from a bad custom model URL.
"""
import hashlib
import logging
import os
import tempfile
import urllib.request
from pathlib import Path
from typing import Union
from urllib.parse import urlparse

from ..common.errors import LoadError

logger = logging.getLogger(__name__)


def is_url(s: str) -> bool:
    u = urlparse(s)
    return bool(u.scheme in ("http", "https", "file") and (u.netloc or u.scheme == "file"))


def _url_key(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]


def _download(url: str, dst: Path) -> Path:
    dst.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(delete=False, dir=str(dst.parent)) as tmp:
        tmp_path = Path(tmp.name)
    try:
        with urllib.request.urlopen(url) as r, tmp_path.open("wb") as f:
            while True:
                chunk = r.read(1 << 20)
                if not chunk:
                    break
                f.write(chunk)
        tmp_path.replace(dst)
        return dst.resolve()
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def resolve_model_path(location: Union[str, Path], models_dir: Union[str, Path] = "models") -> Path:
    s = str(location).strip()
    if not s:
        raise LoadError("No model location configured.")

    if is_url(s):
        filename = Path(urlparse(s).path).name or "model.onnx"
        dst = Path(models_dir) / _url_key(s) / filename
        if dst.exists():
            return dst.resolve()
        logger.info("Downloading model %s -> %s", s, dst)
        try:
            return _download(s, dst)
        except (OSError, ValueError) as e:
            raise LoadError(f"Could not download model from {s}: {e}") from e

    p = Path(os.path.expanduser(s))
    if not p.is_file():
        raise LoadError(f"Model file not found: {p}")
    return p.resolve()
