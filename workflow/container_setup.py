# workflow/container_setup.py
# -*- coding: utf-8 -*-
"""
Provisions a new Business Central container through the container helper.
"""

import logging
import subprocess
from typing import Any, Dict, Optional

from common.command_utils import get_symbols, log_message
from common.docker_utils import get_container_address
from common.errors import HelperInvocationError
from common.results import OperationResult
from common.validation_utils import (
    validate_container_name,
    validate_credential,
)
from settings.config_models import HarnessSettings

from .bc_helper import BcContainerHelper, credential_expression
from .models import ContainerDescriptor

module_logger = logging.getLogger(__name__)


def _dangling_container_warning(
    container_name: str,
    app_settings: HarnessSettings,
    logger_to_use: logging.Logger,
) -> None:
    symbols = get_symbols(app_settings)
    log_message(
        f"{symbols.get('warning', '!')} Container '{container_name}' may have been partially created. "
        f"Remove it with 'Remove-BcContainer -containerName {container_name}' before retrying.",
        "warning",
        logger_to_use,
        app_settings,
    )


def create_container(
    app_settings: HarnessSettings,
    name: Optional[str] = None,
    auth: Optional[str] = None,
    memory_limit: Optional[str] = None,
    test_toolkit: Optional[bool] = None,
    performance_toolkit: Optional[bool] = None,
    premium_plan: Optional[bool] = None,
    current_logger: Optional[logging.Logger] = None,
    helper: Optional[BcContainerHelper] = None,
    context: Optional[Dict[str, Any]] = None,
) -> OperationResult:
    """
    Create and configure a new container.

    Arguments left as None fall back to the environment section of the
    settings. The steps run in order and stop at the first failure; nothing is
    rolled back, so a failed creation may leave a container behind.

    Parameters:
        app_settings (HarnessSettings): Harness settings.
        name (Optional[str]): Container name.
        auth (Optional[str]): Authentication mode.
        memory_limit (Optional[str]): Memory limit such as "8G".
        test_toolkit (Optional[bool]): Import the test toolkit.
        performance_toolkit (Optional[bool]): Import the performance toolkit.
        premium_plan (Optional[bool]): Assign the premium plan to the admin.
        current_logger (Optional[logging.Logger]): Logger to use.
        helper (Optional[BcContainerHelper]): Helper bridge to use.
        context: Shared pipeline context; unused.

    Returns:
        OperationResult: On success ``data["container"]`` holds the
        ContainerDescriptor and ``data["values"]`` the effective options.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    env = app_settings.environment
    helper = helper or BcContainerHelper(app_settings, logger_to_use)

    values: Dict[str, Any] = {
        "name": name or env.container_name,
        "auth": auth or env.auth,
        "memory_limit": memory_limit or env.memory_limit,
        "test_toolkit": env.include_test_toolkit
        if test_toolkit is None
        else test_toolkit,
        "performance_toolkit": env.include_performance_toolkit
        if performance_toolkit is None
        else performance_toolkit,
        "premium_plan": env.assign_premium_plan
        if premium_plan is None
        else premium_plan,
    }
    container_name = values["name"]

    log_message(
        f"{symbols.get('step', '➡️')} Creating container '{container_name}'...",
        "info",
        logger_to_use,
        app_settings,
    )

    if not validate_container_name(container_name):
        message = (
            f"Invalid container name '{container_name}'. Use a letter followed by up to "
            "14 letters, digits or hyphens."
        )
        log_message(
            f"{symbols.get('error', '❌')} {message}",
            "error",
            logger_to_use,
            app_settings,
        )
        return OperationResult.fail(message, values=values)

    if not validate_credential(env):
        message = "Container credentials are incomplete: username and password are required."
        log_message(
            f"{symbols.get('error', '❌')} {message}",
            "error",
            logger_to_use,
            app_settings,
        )
        return OperationResult.fail(message, values=values)

    artifact_url = env.artifact_url
    if not artifact_url:
        try:
            artifact_url = helper.get_artifact_url(
                env.artifact_type, env.artifact_country, env.artifact_select
            )
        except (HelperInvocationError, subprocess.TimeoutExpired) as e:
            log_message(
                f"{symbols.get('error', '❌')} Artifact lookup failed: {e}",
                "error",
                logger_to_use,
                app_settings,
            )
            return OperationResult.fail(
                f"Artifact lookup failed: {e}", values=values
            )
        if not artifact_url:
            message = (
                f"No artifact found for type={env.artifact_type} "
                f"country={env.artifact_country} select={env.artifact_select}."
            )
            log_message(
                f"{symbols.get('error', '❌')} {message}",
                "error",
                logger_to_use,
                app_settings,
            )
            return OperationResult.fail(message, values=values)
    values["artifact_url"] = artifact_url
    log_message(
        f"{symbols.get('info', 'ℹ️')} Using artifact {artifact_url}",
        "info",
        logger_to_use,
        app_settings,
    )

    parameters: Dict[str, Any] = {
        "accept_eula": env.accept_eula,
        "containerName": container_name,
        "artifactUrl": artifact_url,
        "auth": values["auth"],
        "credential": credential_expression(env.username),
        "memoryLimit": values["memory_limit"],
        "isolation": env.isolation,
        "includeTestToolkit": values["test_toolkit"],
        "includePerformanceToolkit": values["performance_toolkit"],
        "assignPremiumPlan": values["premium_plan"],
        "updateHosts": True,
    }

    try:
        helper.new_container(parameters)
    except (HelperInvocationError, subprocess.TimeoutExpired) as e:
        log_message(
            f"{symbols.get('error', '❌')} Container creation failed: {e}",
            "error",
            logger_to_use,
            app_settings,
        )
        _dangling_container_warning(
            container_name, app_settings, logger_to_use
        )
        return OperationResult.fail(
            f"Container creation failed: {e}", values=values
        )

    try:
        helper.setup_test_users(container_name, env.username)
    except (HelperInvocationError, subprocess.TimeoutExpired) as e:
        log_message(
            f"{symbols.get('error', '❌')} Test user setup failed: {e}",
            "error",
            logger_to_use,
            app_settings,
        )
        _dangling_container_warning(
            container_name, app_settings, logger_to_use
        )
        return OperationResult.fail(
            f"Test user setup failed: {e}", values=values
        )

    descriptor = ContainerDescriptor(
        name=container_name,
        address=get_container_address(
            container_name, app_settings, logger_to_use
        ),
        auth=values["auth"],
    )
    log_message(
        f"{symbols.get('success', '✅')} Container '{container_name}' is ready at {descriptor.web_client_url}",
        "info",
        logger_to_use,
        app_settings,
    )
    return OperationResult.ok(
        f"Container '{container_name}' created.",
        container=descriptor,
        values=values,
    )
