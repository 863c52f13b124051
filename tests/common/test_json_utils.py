import json

import pytest

from common.json_utils import load_json_file


def test_load_json_file_tolerates_bom(tmp_path):
    path = tmp_path / "app.json"
    path.write_text('{"name": "Main App"}', encoding="utf-8-sig")

    assert load_json_file(path) == {"name": "Main App"}


def test_load_json_file_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_json_file(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    with pytest.raises(json.JSONDecodeError):
        load_json_file(broken)
