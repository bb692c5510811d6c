import pytest

from pose_live.common.errors import LoadError
from pose_live.detection.model_files import is_url, resolve_model_path


def test_is_url():
    assert is_url("https://host/models/movenet.onnx")
    assert is_url("file:///tmp/model.onnx")
    assert not is_url("models/movenet.onnx")
    assert not is_url("https://")


def test_local_path_is_resolved(tmp_path):
    model = tmp_path / "posenet.onnx"
    model.write_bytes(b"onnx")
    assert resolve_model_path(str(model)) == model.resolve()


def test_empty_and_missing_locations_raise_load_error(tmp_path):
    with pytest.raises(LoadError):
        resolve_model_path("  ")
    with pytest.raises(LoadError, match="not found"):
        resolve_model_path(tmp_path / "absent.onnx")


def test_url_is_downloaded_once_into_models_dir(tmp_path):
    source = tmp_path / "remote" / "custom.onnx"
    source.parent.mkdir()
    source.write_bytes(b"weights")
    models_dir = tmp_path / "models"

    path = resolve_model_path(source.as_uri(), models_dir)
    assert path.name == "custom.onnx"
    assert path.parent.parent == models_dir.resolve()
    assert path.read_bytes() == b"weights"

    source.unlink()
    assert resolve_model_path(source.as_uri(), models_dir) == path
    assert [p.name for p in path.parent.iterdir()] == ["custom.onnx"]


def test_urls_sharing_a_filename_are_cached_apart(tmp_path):
    models_dir = tmp_path / "models"
    paths = []
    for folder, payload in (("a", b"AAAA"), ("b", b"BBBB")):
        source = tmp_path / folder / "model.onnx"
        source.parent.mkdir()
        source.write_bytes(payload)
        paths.append(resolve_model_path(source.as_uri(), models_dir))

    assert paths[0] != paths[1]
    assert paths[0].read_bytes() == b"AAAA"
    assert paths[1].read_bytes() == b"BBBB"
