# tests/conftest.py
import io
import json
import logging
import zipfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from settings.config_models import HarnessSettings
from workflow.bc_helper import BcContainerHelper


@pytest.fixture
def app_settings(tmp_path):
    """Settings rooted in a temporary project directory."""
    return HarnessSettings(
        paths={"base_dir": str(tmp_path)},
        symbols={"success": "✅", "error": "❌", "warning": "!", "info": "ℹ️"},
    )


@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def mock_helper():
    helper = MagicMock(spec=BcContainerHelper)
    helper.last_output = ""
    return helper


def write_app_json(directory: Path, **fields) -> Path:
    manifest = {
        "id": "11111111-2222-3333-4444-555555555555",
        "name": "Main App",
        "publisher": "Contoso",
        "version": "1.0.0.0",
    }
    manifest.update(fields)
    manifest = {k: v for k, v in manifest.items() if v is not None}
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "app.json"
    path.write_text(json.dumps(manifest), encoding="utf-8")
    return path


def build_app_file(
    path: Path,
    name: str = "Main App",
    publisher: str = "Contoso",
    version: str = "1.0.0.0",
    app_id: str = "11111111-2222-3333-4444-555555555555",
    dependencies=(),
) -> Path:
    """Write a minimal .app: a NAVX header followed by a zip with the manifest."""
    dependency_xml = "".join(
        f'<Dependency Id="{d.get("id", "")}" Name="{d["name"]}" '
        f'Publisher="{d["publisher"]}" MinVersion="{d.get("version", "1.0.0.0")}" />'
        for d in dependencies
    )
    manifest = (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<Package xmlns="http://schemas.microsoft.com/navx/2015/manifest">'
        f'<App Id="{app_id}" Name="{name}" Publisher="{publisher}" Version="{version}" />'
        f"<Dependencies>{dependency_xml}</Dependencies>"
        "</Package>"
    )
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("NavxManifest.xml", manifest)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"NAVX" + b"\x00" * 36 + buffer.getvalue())
    return path


@pytest.fixture
def make_app_json():
    return write_app_json


@pytest.fixture
def make_app_file():
    return build_app_file
