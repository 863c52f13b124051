# -*- coding: utf-8 -*-
"""
Tests for the harness configuration loader.
"""

import pytest

from common.errors import ConfigurationError
from settings.config_loader import (
    build_cli_overrides,
    build_harness_settings,
    deep_merge,
    dump_settings,
    find_missing_keys,
    get_nested_value,
    load_harness_settings,
    read_config_file,
)
from settings.config_models import HarnessSettings


def test_deep_merge_nested_override():
    base = {"publishing": {"scope": "tenant", "sync_mode": "ForceSync"}}
    overrides = {"publishing": {"scope": "global"}}

    merged = deep_merge(base, overrides)

    assert merged == {"publishing": {"scope": "global", "sync_mode": "ForceSync"}}
    assert base["publishing"]["scope"] == "tenant"


def test_deep_merge_non_dict_replaces():
    merged = deep_merge({"a": {"b": 1}, "c": [1]}, {"a": 5, "c": [2]})

    assert merged == {"a": 5, "c": [2]}


def test_get_nested_value():
    mapping = {"testing": {"timeout_seconds": 60, "extension_id": None}}

    assert get_nested_value(mapping, "testing.timeout_seconds") == 60
    assert get_nested_value(mapping, "testing.missing", "dflt") == "dflt"
    assert get_nested_value(mapping, "testing.timeout_seconds.deeper") is None


def test_find_missing_keys_lists_exactly_the_missing():
    mapping = {
        "environment": {"container_name": "bctdd"},
        "testing": {"extension_id": None},
    }

    missing = find_missing_keys(
        mapping,
        ["environment.container_name", "testing.extension_id", "paths.main_source"],
    )

    assert missing == ["testing.extension_id", "paths.main_source"]


def test_read_config_file_missing(tmp_path, mock_logger):
    assert read_config_file(tmp_path / "nope.yaml", mock_logger) == {}


def test_read_config_file_unparseable(tmp_path, mock_logger):
    path = tmp_path / "bc-tdd.yaml"
    path.write_text("environment: [unclosed", encoding="utf-8")

    assert read_config_file(path, mock_logger) == {}
    mock_logger.warning.assert_called_once()


def test_read_config_file_not_a_mapping(tmp_path, mock_logger):
    path = tmp_path / "bc-tdd.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    assert read_config_file(path, mock_logger) == {}
    mock_logger.warning.assert_called_once()


def test_load_defaults_without_file(tmp_path):
    settings = load_harness_settings(tmp_path / "missing.yaml")

    assert isinstance(settings, HarnessSettings)
    assert settings.environment.container_name == "bctdd"
    assert settings.publishing.scope == "tenant"
    assert settings.testing.codeunit_filter == "*"


def test_load_file_then_overrides(tmp_path):
    path = tmp_path / "bc-tdd.yaml"
    path.write_text(
        "publishing:\n  scope: global\n  timeout_seconds: 300\n"
        "testing:\n  fail_fast: true\n",
        encoding="utf-8",
    )

    settings = load_harness_settings(
        path, overrides={"publishing": {"timeout_seconds": 120}}
    )

    assert settings.publishing.scope == "global"
    assert settings.publishing.timeout_seconds == 120
    assert settings.publishing.sync_mode == "ForceSync"
    assert settings.testing.fail_fast is True


def test_load_json_config(tmp_path):
    path = tmp_path / "bc-tdd.json"
    path.write_text('{"environment": {"container_name": "bcjson"}}', encoding="utf-8")

    settings = load_harness_settings(path)

    assert settings.environment.container_name == "bcjson"


def test_load_required_keys_present(tmp_path):
    settings = load_harness_settings(
        tmp_path / "missing.yaml",
        required_keys=["environment.container_name", "publishing.scope"],
    )

    assert settings is not None


def test_load_required_keys_missing(tmp_path, mock_logger):
    settings = load_harness_settings(
        tmp_path / "missing.yaml",
        required_keys=["testing.extension_id", "environment.container_name", "paths.nope"],
        current_logger=mock_logger,
    )

    assert settings is None
    mock_logger.error.assert_called_once_with(
        "Configuration validation failed. Missing required keys: testing.extension_id, paths.nope"
    )


def test_load_invalid_value(tmp_path, mock_logger):
    path = tmp_path / "bc-tdd.yaml"
    path.write_text("publishing:\n  scope: everywhere\n", encoding="utf-8")

    assert load_harness_settings(path, current_logger=mock_logger) is None
    mock_logger.error.assert_called_once()


def test_environment_variables_are_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("BC_CONTAINER_NAME", "fromenv")

    settings = load_harness_settings(tmp_path / "missing.yaml")

    assert settings.environment.container_name == "fromenv"


def test_invalid_environment_variable_returns_none(tmp_path, monkeypatch, mock_logger):
    monkeypatch.setenv("BC_AUTH", "Bogus")

    settings = load_harness_settings(
        tmp_path / "missing.yaml", current_logger=mock_logger
    )

    assert settings is None
    assert "environment variables" in mock_logger.error.call_args[0][0]


def test_build_settings_raises_configuration_error(tmp_path):
    path = tmp_path / "bc-tdd.yaml"
    path.write_text("publishing:\n  scope: everywhere\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="validation failed"):
        build_harness_settings(path)
    with pytest.raises(ConfigurationError, match="Missing required keys: paths.nope"):
        build_harness_settings(
            tmp_path / "missing.yaml", required_keys=["paths.nope"]
        )


def test_build_cli_overrides_drops_none():
    overrides = build_cli_overrides(
        environment__container_name="bc1",
        testing__results_file=None,
        publishing__timeout_seconds=30,
    )

    assert overrides == {
        "environment": {"container_name": "bc1"},
        "publishing": {"timeout_seconds": 30},
    }


def test_dump_settings_masks_password():
    values = dump_settings(HarnessSettings())

    assert values["environment"]["password"] == "********"
    assert "symbols" not in values


@pytest.mark.parametrize(
    "results_format, results_file, expected_name",
    [
        ("xml", "TestResults.xml", "TestResults.xml"),
        ("json", "TestResults.xml", "TestResults.json"),
        ("json", "out.json", "out.json"),
    ],
)
def test_results_file_path(tmp_path, results_format, results_file, expected_name):
    settings = HarnessSettings(
        paths={"base_dir": str(tmp_path)},
        testing={"results_format": results_format, "results_file": results_file},
    )

    path = settings.results_file_path()

    assert path == tmp_path.resolve() / ".build" / "results" / expected_name
