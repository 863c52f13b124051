# settings/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the harness.

Handles loading settings from Pydantic model defaults, a YAML configuration
file and explicit overrides (usually command-line options), applying the
following order of precedence:
1. Pydantic Model Defaults (including environment variables read by BaseSettings)
2. YAML Configuration File
3. Explicit Overrides

A missing or unreadable configuration file is never fatal. A failed
required-key check is.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml
from pydantic import ValidationError

from common.errors import ConfigurationError

from .config_models import CONFIG_FILE_DEFAULT, HarnessSettings

module_logger = logging.getLogger(__name__)

_MISSING = object()


def deep_merge(
    base: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively merges `overrides` into a copy of `base`.

    If a key exists in both dictionaries and both values are dictionaries,
    the nested dictionaries are merged recursively. Otherwise the value from
    `overrides` replaces the one in `base`. Neither input is modified.

    Parameters:
        base: Dict[str, Any]
            The dictionary holding the lower-precedence values.
        overrides: Dict[str, Any]
            The dictionary holding the values that win.

    Returns:
        Dict[str, Any]: A new dictionary with the merged values.
    """
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in merged
            and isinstance(merged[key], dict)
        ):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def get_nested_value(
    mapping: Dict[str, Any], dotted_key: str, default: Any = None
) -> Any:
    """
    Resolve a dot-separated key (e.g. ``publishing.scope``) in a nested mapping.

    Returns `default` when any segment is absent or when an intermediate
    value is not a mapping.
    """
    current: Any = mapping
    for part in dotted_key.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def find_missing_keys(
    mapping: Dict[str, Any], required_keys: Iterable[str]
) -> List[str]:
    """
    Return the required keys that do not resolve to a present value.

    A key counts as present when it resolves to anything other than None.
    The order of `required_keys` is preserved.
    """
    missing: List[str] = []
    for key in required_keys:
        value = get_nested_value(mapping, key, _MISSING)
        if value is _MISSING or value is None:
            missing.append(key)
    return missing


def read_config_file(
    config_file_path: Union[str, Path],
    current_logger: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """
    Read a YAML (or JSON) configuration file into a dictionary.

    Any problem with the file (absent, unreadable, unparseable, not a
    mapping) is logged as a warning and an empty dictionary is returned so
    that defaults apply.

    Args:
        config_file_path: Path to the configuration file.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        The parsed mapping, or an empty dictionary.
    """
    logger_to_use = current_logger if current_logger else module_logger
    path = Path(config_file_path)

    if not path.is_file():
        logger_to_use.info(
            f"Configuration file '{path}' not found. Using defaults."
        )
        return {}

    try:
        with open(path, "r", encoding="utf-8-sig") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger_to_use.warning(
            f"Could not parse config file '{path}': {e}. Using defaults."
        )
        return {}
    except OSError as e:
        logger_to_use.warning(
            f"Could not read config file '{path}': {e}. Using defaults."
        )
        return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger_to_use.warning(
            f"Config file '{path}' does not contain a mapping. Ignoring."
        )
        return {}

    logger_to_use.info(f"Loaded configuration from {path}")
    return data


def build_harness_settings(
    config_file_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
    required_keys: Optional[Iterable[str]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> HarnessSettings:
    """
    Merge defaults, file values and overrides into validated settings.

    Precedence, lowest first:
    1. Pydantic Model Defaults (BaseSettings also reads environment variables).
    2. Values from the YAML configuration file (overrides defaults).
    3. Explicit overrides (highest precedence).

    Raises:
        ConfigurationError: Required keys are missing, or the defaults, the
            environment or the merged values fail model validation.
    """
    logger_to_use = current_logger if current_logger else module_logger

    try:
        merged: Dict[str, Any] = HarnessSettings().model_dump(mode="python")
    except ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed (environment variables): {e}"
        ) from e

    file_values = read_config_file(
        config_file_path or CONFIG_FILE_DEFAULT, logger_to_use
    )
    if file_values:
        merged = deep_merge(merged, file_values)

    if overrides:
        merged = deep_merge(merged, overrides)

    if required_keys:
        missing = find_missing_keys(merged, required_keys)
        if missing:
            raise ConfigurationError(
                f"Configuration validation failed. Missing required keys: {', '.join(missing)}"
            )

    try:
        return HarnessSettings(**merged)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


def load_harness_settings(
    config_file_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
    required_keys: Optional[Iterable[str]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Optional[HarnessSettings]:
    """
    Loads harness settings, see `build_harness_settings` for precedence.

    Args:
        config_file_path: Path to the configuration file. Defaults to
            ``bc-tdd.yaml`` in the current directory.
        overrides: Nested mapping of values that win over everything else.
        required_keys: Dotted keys that must resolve in the merged
            configuration, e.g. ``["publishing.scope"]``.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        A validated HarnessSettings instance, or None when required keys are
        missing or the values (environment variables included) fail model
        validation.
    """
    logger_to_use = current_logger if current_logger else module_logger

    try:
        settings = build_harness_settings(
            config_file_path, overrides, required_keys, logger_to_use
        )
    except ConfigurationError as e:
        logger_to_use.error(str(e))
        return None

    logger_to_use.debug("Successfully loaded and validated harness settings")
    return settings


def build_cli_overrides(**cli_values: Any) -> Dict[str, Any]:
    """
    Map flat command-line option values onto the nested settings layout.

    Keyword names take the form ``<section>__<field>``; None values are
    dropped so that unset options never mask file or default values.

    Example:
        build_cli_overrides(environment__container_name="bc1")
        -> {"environment": {"container_name": "bc1"}}
    """
    overrides: Dict[str, Any] = {}
    for cli_key, cli_value in cli_values.items():
        if cli_value is None:
            continue
        section, _, field = cli_key.partition("__")
        if not field:
            overrides[section] = cli_value
            continue
        overrides.setdefault(section, {})[field] = cli_value
    return overrides


SECRET_FIELDS = (("environment", "password"),)
SECRET_MASK = "********"


def dump_settings(
    settings: HarnessSettings, mask_secrets: bool = True
) -> Dict[str, Any]:
    """Plain, JSON-compatible view of the settings, secrets masked."""
    values = settings.model_dump(mode="json", exclude={"symbols"})
    if mask_secrets:
        for section, field in SECRET_FIELDS:
            if values.get(section, {}).get(field):
                values[section][field] = SECRET_MASK
    return values
