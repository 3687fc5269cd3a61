import json

import pytest

from seqlandmarks.io_utils import list_images, load_yaml, read_json, write_json


def test_write_json_replaces_file_without_leftovers(tmp_path):
    path = tmp_path / "sequence.json"
    path.write_text("stale")

    write_json(path, {"frames": [1, 2]})

    assert read_json(path) == {"frames": [1, 2]}
    assert json.loads(path.read_text()) == {"frames": [1, 2]}
    assert [p.name for p in tmp_path.iterdir()] == ["sequence.json"]


def test_load_yaml_rejects_non_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n")

    with pytest.raises(ValueError):
        load_yaml(path)


def test_load_yaml_empty_file_is_empty_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")

    assert load_yaml(path) == {}


def test_list_images_sorted_and_filtered(tmp_path):
    for name in ("b.png", "a.JPG", "notes.txt"):
        (tmp_path / name).write_bytes(b"")

    assert [p.name for p in list_images(tmp_path)] == ["a.JPG", "b.png"]
    assert list_images(tmp_path / "missing") == []
