# common/docker_utils.py
# -*- coding: utf-8 -*-
"""
Container runtime queries.

All status checks use the runtime's JSON output
(``--format '{{json ...}}'``) rather than parsing human-readable text.
"""

import json
import logging
import subprocess
from typing import Any, Dict, Optional

from settings.config_models import HarnessSettings

from .command_utils import get_symbols, log_message, run_command

module_logger = logging.getLogger(__name__)


def _docker(app_settings: Optional[HarnessSettings]) -> str:
    if app_settings:
        return app_settings.environment.docker_command
    return "docker"


def _inspect_json(
    container_name: str,
    template: str,
    app_settings: Optional[HarnessSettings],
    current_logger: Optional[logging.Logger] = None,
) -> Optional[Any]:
    """
    Run ``container inspect`` with a JSON template.

    Returns None when the container does not exist or the output cannot be
    decoded.
    """
    logger_to_use = current_logger if current_logger else module_logger
    try:
        result = run_command(
            [
                _docker(app_settings),
                "container",
                "inspect",
                "--format",
                f"{{{{json {template}}}}}",
                container_name,
            ],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=logger_to_use,
            log_output=False,
        )
    except FileNotFoundError:
        return None
    if result.returncode != 0:
        return None
    try:
        return json.loads(result.stdout.strip() or "null")
    except json.JSONDecodeError:
        log_message(
            f"{get_symbols(app_settings).get('warning', '!')} Unexpected inspect output for {container_name}: {result.stdout.strip()[:200]}",
            "warning",
            logger_to_use,
            app_settings,
        )
        return None


def is_docker_available(
    app_settings: Optional[HarnessSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Check that the container runtime CLI is installed and its daemon answers.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    try:
        result = run_command(
            [_docker(app_settings), "info", "--format", "{{json .ServerVersion}}"],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=logger_to_use,
            log_output=False,
            timeout=60,
        )
    except FileNotFoundError:
        return False
    except subprocess.TimeoutExpired:
        log_message(
            f"{symbols.get('warning', '!')} Container runtime did not answer within 60 seconds.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False

    if result.returncode != 0:
        return False
    try:
        server_version = json.loads(result.stdout.strip() or "null")
    except json.JSONDecodeError:
        return False
    if not server_version:
        return False
    log_message(
        f"Container runtime server version: {server_version}",
        "debug",
        logger_to_use,
        app_settings,
    )
    return True


def get_container_state(
    container_name: str,
    app_settings: Optional[HarnessSettings],
    current_logger: Optional[logging.Logger] = None,
) -> Optional[Dict[str, Any]]:
    """Return the container's ``.State`` object, or None if it does not exist."""
    state = _inspect_json(
        container_name, ".State", app_settings, current_logger
    )
    return state if isinstance(state, dict) else None


def container_exists(
    container_name: str,
    app_settings: Optional[HarnessSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    return (
        get_container_state(container_name, app_settings, current_logger)
        is not None
    )


def is_container_running(
    container_name: str,
    app_settings: Optional[HarnessSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    state = get_container_state(container_name, app_settings, current_logger)
    return bool(state and state.get("Running"))


def get_container_address(
    container_name: str,
    app_settings: Optional[HarnessSettings],
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """
    Return the first network address of the container.

    Falls back to the container name, which the helper registers in the
    hosts file when it creates the container.
    """
    networks = _inspect_json(
        container_name,
        ".NetworkSettings.Networks",
        app_settings,
        current_logger,
    )
    if isinstance(networks, dict):
        for network in networks.values():
            if isinstance(network, dict) and network.get("IPAddress"):
                return str(network["IPAddress"])
    return container_name
