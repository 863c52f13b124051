# common/json_utils.py
# -*- coding: utf-8 -*-
"""
Helpers for JSON files such as the AL app.json manifest.
"""

import json
from pathlib import Path
from typing import Any


def load_json_file(file_path: Path) -> Any:
    """
    Load a JSON document, tolerating a UTF-8 byte order mark.

    AL tooling on Windows commonly writes app.json with a BOM, which the
    plain utf-8 codec rejects.

    Raises:
        FileNotFoundError: The file does not exist.
        json.JSONDecodeError: The content is not valid JSON.
    """
    return json.loads(Path(file_path).read_text(encoding="utf-8-sig"))
