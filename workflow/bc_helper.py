# workflow/bc_helper.py
# -*- coding: utf-8 -*-
"""
Bridge to the BcContainerHelper PowerShell module.

Each call runs one PowerShell process that imports the module, executes a
single cmdlet and, when a value is expected back, prints a marker line
followed by the value serialized with ConvertTo-Json. Everything the module
writes before the marker is host chatter and only logged at debug level.

The container password travels through an environment variable so it never
shows up on a logged command line.
"""

import json
import logging
import os
import subprocess
from typing import Any, Dict, List, Optional

from common.command_utils import get_symbols, log_message, run_command
from common.errors import HelperInvocationError
from settings.config_models import HarnessSettings

from .models import InstalledApp

module_logger = logging.getLogger(__name__)

RESULT_MARKER = "###BCTDD-RESULT###"
PASSWORD_ENV_VAR = "BCTDD_CONTAINER_PASSWORD"


class PsExpression(str):
    """A PowerShell expression that is inserted verbatim, never quoted."""


def ps_quote(value: str) -> str:
    """Quote a string as a PowerShell single-quoted literal."""
    return "'" + str(value).replace("'", "''") + "'"


def format_ps_value(value: Any) -> str:
    if isinstance(value, PsExpression):
        return str(value)
    if isinstance(value, bool):
        return "$true" if value else "$false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "@(" + ",".join(format_ps_value(v) for v in value) + ")"
    return ps_quote(str(value))


def build_cmdlet_call(cmdlet: str, parameters: Dict[str, Any]) -> str:
    """
    Render a cmdlet invocation from a parameter mapping.

    True becomes a bare switch, False and None are omitted, everything else
    is rendered as ``-name value``.
    """
    parts = [cmdlet]
    for name, value in parameters.items():
        if value is None or value is False:
            continue
        if value is True:
            parts.append(f"-{name}")
        else:
            parts.append(f"-{name} {format_ps_value(value)}")
    return " ".join(parts)


def credential_expression(username: str) -> PsExpression:
    """PSCredential built from `username` and the password env variable."""
    return PsExpression(
        "(New-Object System.Management.Automation.PSCredential("
        f"{ps_quote(username)}, "
        f"(ConvertTo-SecureString $env:{PASSWORD_ENV_VAR} -AsPlainText -Force)))"
    )


def timespan_expression(seconds: int) -> PsExpression:
    return PsExpression(f"([timespan]::FromSeconds({int(seconds)}))")


def parse_marker_output(stdout: str) -> Any:
    """
    Return the JSON value printed after the last result marker.

    Raises:
        HelperInvocationError: The marker is missing or the payload is not JSON.
    """
    if RESULT_MARKER not in stdout:
        raise HelperInvocationError(
            "Helper output did not contain a result marker.", output=stdout
        )
    payload = stdout.rsplit(RESULT_MARKER, 1)[1].strip()
    if not payload:
        return None
    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        raise HelperInvocationError(
            f"Helper returned malformed JSON: {e}", output=payload
        ) from e


class BcContainerHelper:
    """Thin, logged wrapper over the helper module's cmdlets."""

    def __init__(
        self,
        app_settings: HarnessSettings,
        current_logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = current_logger or module_logger
        self.last_output = ""

    @property
    def environment(self):
        return self.app_settings.environment

    def build_script(self, body: str, expect_result: bool) -> str:
        lines = [
            "$ErrorActionPreference = 'Stop'",
            "$ProgressPreference = 'SilentlyContinue'",
            f"Import-Module {ps_quote(self.environment.helper_module)} -DisableNameChecking",
        ]
        if expect_result:
            lines.append(f"$bcTddResult = {body}")
            lines.append(f"Write-Output '{RESULT_MARKER}'")
            lines.append(
                "if ($null -ne $bcTddResult) { ConvertTo-Json -InputObject $bcTddResult -Depth 6 -Compress }"
            )
        else:
            lines.append(body)
        return "; ".join(lines)

    def _command(self, script: str) -> List[str]:
        return [
            self.environment.powershell_command,
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            script,
        ]

    def _env(self) -> Dict[str, str]:
        env = dict(os.environ)
        env[PASSWORD_ENV_VAR] = self.environment.password
        return env

    def invoke(
        self,
        body: str,
        expect_result: bool = False,
        timeout: Optional[float] = None,
        script: Optional[str] = None,
    ) -> Any:
        """
        Run one helper call.

        Args:
            body: The PowerShell statement to run after importing the module.
            expect_result: Parse and return the statement's value.
            timeout: Seconds before the PowerShell process is killed.
            script: A complete script to run instead of wrapping `body`.

        Returns:
            The decoded result when `expect_result` is set, otherwise None.

        Raises:
            HelperInvocationError: PowerShell is missing, exited non-zero, or
                returned unusable output.
            subprocess.TimeoutExpired: The timeout elapsed.
        """
        symbols = get_symbols(self.app_settings)
        full_script = script or self.build_script(body, expect_result)
        log_message(
            f"{symbols.get('gear', '⚙️')} Helper: {body}",
            "info",
            self.logger,
            self.app_settings,
        )
        try:
            result = run_command(
                self._command(full_script),
                self.app_settings,
                check=False,
                capture_output=True,
                current_logger=self.logger,
                env=self._env(),
                timeout=timeout,
                log_output=False,
            )
        except FileNotFoundError as e:
            raise HelperInvocationError(
                f"PowerShell executable '{self.environment.powershell_command}' was not found."
            ) from e

        output = result.stdout or ""
        self.last_output = output
        chatter = output.split(RESULT_MARKER, 1)[0].strip()
        if chatter:
            log_message(
                f"   helper output: {chatter}",
                "debug",
                self.logger,
                self.app_settings,
            )

        if result.returncode != 0:
            error_text = (result.stderr or "").strip() or chatter
            raise HelperInvocationError(
                f"Helper call failed (rc {result.returncode}): {error_text[-1000:]}",
                returncode=result.returncode,
                output=output,
            )

        if expect_result:
            return parse_marker_output(output)
        return None

    # --- environment ------------------------------------------------------

    def is_module_available(self) -> bool:
        """Ask PowerShell whether the helper module can be imported."""
        module = ps_quote(self.environment.helper_module)
        script = (
            "$ErrorActionPreference = 'Stop'; "
            f"$bcTddResult = [bool](Get-Module -ListAvailable -Name {module}); "
            f"Write-Output '{RESULT_MARKER}'; "
            "ConvertTo-Json -InputObject $bcTddResult -Compress"
        )
        try:
            return bool(
                self.invoke(
                    f"Get-Module -ListAvailable -Name {module}",
                    expect_result=True,
                    timeout=120,
                    script=script,
                )
            )
        except (HelperInvocationError, subprocess.TimeoutExpired) as e:
            log_message(
                f"{get_symbols(self.app_settings).get('warning', '!')} Could not query PowerShell for {self.environment.helper_module}: {e}",
                "warning",
                self.logger,
                self.app_settings,
            )
            return False

    def get_artifact_url(
        self, artifact_type: str, country: str, select: str
    ) -> Optional[str]:
        url = self.invoke(
            build_cmdlet_call(
                "Get-BCArtifactUrl",
                {"type": artifact_type, "country": country, "select": select},
            ),
            expect_result=True,
        )
        if isinstance(url, list):
            url = url[0] if url else None
        return str(url) if url else None

    def new_container(self, parameters: Dict[str, Any]) -> None:
        self.invoke(build_cmdlet_call("New-BcContainer", parameters))

    def start_container(self, container_name: str) -> None:
        self.invoke(
            build_cmdlet_call(
                "Start-BcContainer", {"containerName": container_name}
            )
        )

    def setup_test_users(self, container_name: str, username: str) -> None:
        self.invoke(
            build_cmdlet_call(
                "Setup-BcContainerTestUsers",
                {
                    "containerName": container_name,
                    "Password": PsExpression(
                        f"(ConvertTo-SecureString $env:{PASSWORD_ENV_VAR} -AsPlainText -Force)"
                    ),
                    "credential": credential_expression(username),
                },
            )
        )

    # --- compile ----------------------------------------------------------

    def compile_app(self, parameters: Dict[str, Any]) -> Optional[str]:
        """Compile-AppInBcContainer; returns the produced app file path."""
        app_file = self.invoke(
            build_cmdlet_call("Compile-AppInBcContainer", parameters),
            expect_result=True,
        )
        if isinstance(app_file, list):
            app_file = app_file[-1] if app_file else None
        return str(app_file) if app_file else None

    # --- deploy -----------------------------------------------------------

    def get_installed_apps(self, container_name: str) -> List[InstalledApp]:
        raw = self.invoke(
            build_cmdlet_call(
                "Get-BcContainerAppInfo",
                {
                    "containerName": container_name,
                    "tenantSpecificProperties": True,
                    "sort": "None",
                },
            ),
            expect_result=True,
        )
        if raw is None:
            return []
        if isinstance(raw, dict):
            raw = [raw]
        return [
            InstalledApp.from_helper(item)
            for item in raw
            if isinstance(item, dict)
        ]

    def unpublish_app(
        self,
        container_name: str,
        app_name: str,
        publisher: str,
        version: str,
    ) -> None:
        self.invoke(
            build_cmdlet_call(
                "Unpublish-BcContainerApp",
                {
                    "containerName": container_name,
                    "appName": app_name,
                    "publisher": publisher,
                    "version": version,
                    "unInstall": True,
                    "doNotSaveData": True,
                },
            )
        )

    def publish_app(
        self,
        container_name: str,
        app_file: str,
        scope: str,
        sync_mode: str,
        skip_verification: bool,
        install: bool,
        timeout: Optional[float] = None,
    ) -> None:
        self.invoke(
            build_cmdlet_call(
                "Publish-BcContainerApp",
                {
                    "containerName": container_name,
                    "appFile": app_file,
                    "skipVerification": skip_verification,
                    "sync": True,
                    "syncMode": sync_mode,
                    "install": install,
                    "scope": scope,
                },
            ),
            timeout=timeout,
        )

    # --- test -------------------------------------------------------------

    def run_tests(
        self, parameters: Dict[str, Any], timeout: Optional[float] = None
    ) -> bool:
        """Run-TestsInBcContainer; True when every test passed."""
        all_passed = self.invoke(
            build_cmdlet_call("Run-TestsInBcContainer", parameters),
            expect_result=True,
            timeout=timeout,
        )
        if isinstance(all_passed, list):
            all_passed = all(bool(v) for v in all_passed)
        return bool(all_passed)
