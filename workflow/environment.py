# workflow/environment.py
# -*- coding: utf-8 -*-
"""
Environment verification and automatic remediation.

The initializer walks a small state machine:

    UNVERIFIED -> VERIFYING -> READY
                            -> NEEDS_CREATE -> READY | FAILED
                            -> NEEDS_START  -> READY | FAILED
                            -> FAILED

A missing container is created, a stopped one is started. Anything else that
is wrong with the host (no container runtime, no PowerShell or helper module)
is reported with a remediation hint and is not retried.
"""

import logging
import subprocess
from enum import Enum
from typing import Any, Dict, List, Optional

from common.command_utils import command_exists, get_symbols, log_message
from common.docker_utils import (
    container_exists,
    get_container_address,
    is_container_running,
    is_docker_available,
)
from common.errors import HelperInvocationError
from common.results import OperationResult
from settings.config_models import HarnessSettings

from .bc_helper import BcContainerHelper
from .container_setup import create_container
from .models import ContainerDescriptor

module_logger = logging.getLogger(__name__)

DOCKER_HINT = (
    "Start Docker (Docker Desktop or the docker service) and make sure the "
    "current user can talk to the daemon."
)
POWERSHELL_HINT = (
    "Install PowerShell or set environment.powershell_command to the "
    "executable to use (powershell or pwsh)."
)
HELPER_HINT = (
    "Install the helper module in PowerShell: "
    "Install-Module BcContainerHelper -Force"
)


class EnvironmentState(str, Enum):
    UNVERIFIED = "UNVERIFIED"
    VERIFYING = "VERIFYING"
    READY = "READY"
    NEEDS_CREATE = "NEEDS_CREATE"
    NEEDS_START = "NEEDS_START"
    FAILED = "FAILED"


class EnvironmentInitializer:
    """Verifies the host and brings the configured container to READY."""

    def __init__(
        self,
        app_settings: HarnessSettings,
        current_logger: Optional[logging.Logger] = None,
        helper: Optional[BcContainerHelper] = None,
    ):
        self.app_settings = app_settings
        self.logger = current_logger or module_logger
        self.helper = helper or BcContainerHelper(app_settings, self.logger)
        self.state = EnvironmentState.UNVERIFIED
        self.state_history: List[EnvironmentState] = [self.state]

    @property
    def container_name(self) -> str:
        return self.app_settings.environment.container_name

    def _transition(self, new_state: EnvironmentState) -> None:
        log_message(
            f"Environment state: {self.state.value} -> {new_state.value}",
            "debug",
            self.logger,
            self.app_settings,
        )
        self.state = new_state
        self.state_history.append(new_state)

    def _fail(self, message: str, hint: Optional[str] = None) -> OperationResult:
        symbols = get_symbols(self.app_settings)
        self._transition(EnvironmentState.FAILED)
        log_message(
            f"{symbols.get('error', '❌')} {message}",
            "error",
            self.logger,
            self.app_settings,
        )
        if hint:
            log_message(
                f"{symbols.get('info', 'ℹ️')} {hint}",
                "info",
                self.logger,
                self.app_settings,
            )
        return OperationResult.fail(
            message, state=self.state.value, hint=hint
        )

    def _ready(
        self, descriptor: ContainerDescriptor, message: str
    ) -> OperationResult:
        self._transition(EnvironmentState.READY)
        log_message(
            f"{get_symbols(self.app_settings).get('success', '✅')} {message}",
            "info",
            self.logger,
            self.app_settings,
        )
        return OperationResult.ok(
            message, container=descriptor, state=self.state.value
        )

    def _descriptor(self, address: Optional[str] = None) -> ContainerDescriptor:
        return ContainerDescriptor(
            name=self.container_name,
            address=address or self.container_name,
            auth=self.app_settings.environment.auth,
        )

    def initialize(self, skip_verification: bool = False) -> OperationResult:
        """
        Bring the environment to READY.

        Returns:
            OperationResult: On success ``data["container"]`` holds the
            ContainerDescriptor.
        """
        symbols = get_symbols(self.app_settings)

        if skip_verification:
            return self._ready(
                self._descriptor(),
                f"Environment verification skipped; assuming '{self.container_name}' is ready.",
            )

        self._transition(EnvironmentState.VERIFYING)
        log_message(
            f"{symbols.get('step', '➡️')} Verifying environment for container '{self.container_name}'...",
            "info",
            self.logger,
            self.app_settings,
        )

        if not is_docker_available(self.app_settings, self.logger):
            return self._fail("Container runtime is not available.", DOCKER_HINT)

        powershell = self.app_settings.environment.powershell_command
        if not command_exists(powershell):
            return self._fail(
                f"PowerShell executable '{powershell}' was not found.",
                POWERSHELL_HINT,
            )

        if not self.helper.is_module_available():
            return self._fail(
                f"PowerShell module {self.app_settings.environment.helper_module} is not available.",
                HELPER_HINT,
            )

        if not container_exists(
            self.container_name, self.app_settings, self.logger
        ):
            return self._create()

        if not is_container_running(
            self.container_name, self.app_settings, self.logger
        ):
            return self._start()

        return self._ready(
            self._descriptor(
                get_container_address(
                    self.container_name, self.app_settings, self.logger
                )
            ),
            f"Container '{self.container_name}' is running.",
        )

    def _create(self) -> OperationResult:
        self._transition(EnvironmentState.NEEDS_CREATE)
        log_message(
            f"{get_symbols(self.app_settings).get('warning', '!')} Container '{self.container_name}' does not exist; creating it.",
            "warning",
            self.logger,
            self.app_settings,
        )
        result = create_container(
            self.app_settings,
            current_logger=self.logger,
            helper=self.helper,
        )
        if not result.success:
            return self._fail(
                f"Could not create container '{self.container_name}': {result.message}"
            )
        return self._ready(
            result.data["container"],
            f"Container '{self.container_name}' created and ready.",
        )

    def _start(self) -> OperationResult:
        self._transition(EnvironmentState.NEEDS_START)
        log_message(
            f"{get_symbols(self.app_settings).get('warning', '!')} Container '{self.container_name}' is stopped; starting it.",
            "warning",
            self.logger,
            self.app_settings,
        )
        try:
            self.helper.start_container(self.container_name)
        except (HelperInvocationError, subprocess.TimeoutExpired) as e:
            return self._fail(
                f"Could not start container '{self.container_name}': {e}"
            )
        return self._ready(
            self._descriptor(
                get_container_address(
                    self.container_name, self.app_settings, self.logger
                )
            ),
            f"Container '{self.container_name}' started.",
        )


def initialize_environment(
    app_settings: HarnessSettings,
    skip_verification: bool = False,
    current_logger: Optional[logging.Logger] = None,
    context: Optional[Dict[str, Any]] = None,
) -> OperationResult:
    """Run the environment state machine once and return its result."""
    initializer = EnvironmentInitializer(app_settings, current_logger)
    result = initializer.initialize(skip_verification=skip_verification)
    result.data["state_history"] = [s.value for s in initializer.state_history]
    if context is not None and result.success:
        context["container"] = result.data["container"]
    return result
