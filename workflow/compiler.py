# workflow/compiler.py
# -*- coding: utf-8 -*-
"""
Compiles a prepared AL project into an .app package.

Two modes are supported. With ``compilation.compiler_path`` set, the AL
compiler (alc) runs directly on the host; otherwise the container helper
compiles inside the container.
"""

import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from common.command_utils import get_symbols, log_message, run_command
from common.errors import HelperInvocationError
from common.file_utils import resolve_path
from common.results import OperationResult
from settings.config_models import HarnessSettings

from .bc_helper import BcContainerHelper, credential_expression
from .models import ContainerDescriptor, PackageRole
from .source_prep import MANIFEST_NAME, load_manifest

module_logger = logging.getLogger(__name__)

DIAGNOSTIC_PATTERN = re.compile(r"\b(error|warning)\s+AL\d{4}\b", re.IGNORECASE)

ANALYZER_DLLS = {
    "enable_code_cop": "Microsoft.Dynamics.Nav.CodeCop.dll",
    "enable_ui_cop": "Microsoft.Dynamics.Nav.UICop.dll",
    "enable_per_tenant_extension_cop": "Microsoft.Dynamics.Nav.PerTenantExtensionCop.dll",
}


def count_diagnostics(output: str) -> Tuple[int, int]:
    """Count ``error AL####`` and ``warning AL####`` lines in compiler output."""
    errors = 0
    warnings = 0
    for match in DIAGNOSTIC_PATTERN.finditer(output or ""):
        if match.group(1).lower() == "error":
            errors += 1
        else:
            warnings += 1
    return errors, warnings


def build_alc_command(
    app_settings: HarnessSettings,
    project_dir: Path,
    output_file: Path,
    symbols_dir: Path,
) -> List[str]:
    compilation = app_settings.compilation
    compiler = Path(compilation.compiler_path or "alc")
    command = [
        str(compiler),
        f"/project:{project_dir}",
        f"/out:{output_file}",
        f"/packagecachepath:{symbols_dir}",
    ]
    # Code analyzers ship in an Analyzers folder next to alc.
    analyzers_dir = compiler.parent / "Analyzers"
    for flag, dll in ANALYZER_DLLS.items():
        if getattr(compilation, flag):
            command.append(f"/analyzer:{analyzers_dir / dll}")
    if compilation.treat_warnings_as_errors:
        command.append("/warnaserror+")
    command.extend(compilation.extra_args)
    return command


def _stage_symbols(output_dir: Path, symbols_dir: Path) -> int:
    """Copy every compiled app into the symbol cache."""
    staged = 0
    for app_file in sorted(output_dir.glob("*.app")):
        shutil.copy2(app_file, symbols_dir / app_file.name)
        staged += 1
    return staged


def compile_app(
    app_settings: HarnessSettings,
    role: Any,
    project_dir: Optional[str] = None,
    container: Optional[ContainerDescriptor] = None,
    current_logger: Optional[logging.Logger] = None,
    helper: Optional[BcContainerHelper] = None,
    context: Optional[Dict[str, Any]] = None,
) -> OperationResult:
    """
    Compile one app.

    Parameters:
        app_settings (HarnessSettings): Harness settings.
        role: Main or Test.
        project_dir (Optional[str]): Project to compile. Defaults to the
            prepared directory of the role.
        container (Optional[ContainerDescriptor]): Target container for
            container mode. Falls back to ``context["container"]`` and then
            to the configured container name.
        current_logger (Optional[logging.Logger]): Logger to use.
        helper (Optional[BcContainerHelper]): Helper bridge to use.
        context: Shared pipeline context.

    Returns:
        OperationResult: Data holds ``app_file``, ``errors`` and ``warnings``.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    try:
        role = PackageRole.parse(role)
    except ValueError as e:
        return OperationResult.fail(str(e))

    paths = app_settings.paths
    project = (
        resolve_path(project_dir, paths.base_path())
        if project_dir
        else paths.prepared_path(role.value)
    )
    output_dir = resolve_path(paths.output_path(), create=True)
    symbols_dir = resolve_path(paths.symbols_path(), create=True)

    log_message(
        f"{symbols.get('step', '➡️')} Compiling {role.value} app from {project}...",
        "info",
        logger_to_use,
        app_settings,
    )

    manifest_path = project / MANIFEST_NAME
    if not manifest_path.is_file():
        message = f"{MANIFEST_NAME} not found in {project}. Prepare the sources first."
        log_message(
            f"{symbols.get('error', '❌')} {message}",
            "error",
            logger_to_use,
            app_settings,
        )
        return OperationResult.fail(message)
    try:
        manifest = load_manifest(manifest_path)
    except ValueError as e:
        return OperationResult.fail(f"{MANIFEST_NAME} is invalid: {e}")

    if role == PackageRole.TEST:
        staged = _stage_symbols(output_dir, symbols_dir)
        log_message(
            f"Staged {staged} compiled app(s) into {symbols_dir}",
            "debug",
            logger_to_use,
            app_settings,
        )

    if app_settings.compilation.compiler_path:
        output_file = output_dir / manifest.app_file_name()
        command = build_alc_command(
            app_settings, project, output_file, symbols_dir
        )
        try:
            result = run_command(
                command,
                app_settings,
                check=False,
                capture_output=True,
                current_logger=logger_to_use,
                log_output=False,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            return OperationResult.fail(f"Compiler could not be run: {e}")
        output = f"{result.stdout or ''}\n{result.stderr or ''}"
        returncode = result.returncode
    else:
        if container is None and context:
            container = context.get("container")
        container_name = (
            container.name
            if container
            else app_settings.environment.container_name
        )
        helper = helper or BcContainerHelper(app_settings, logger_to_use)
        compilation = app_settings.compilation
        parameters: Dict[str, Any] = {
            "containerName": container_name,
            "credential": credential_expression(
                app_settings.environment.username
            ),
            "appProjectFolder": str(project),
            "appOutputFolder": str(output_dir),
            "appSymbolsFolder": str(symbols_dir),
            "EnableCodeCop": compilation.enable_code_cop,
            "EnableUICop": compilation.enable_ui_cop,
            "EnablePerTenantExtensionCop": compilation.enable_per_tenant_extension_cop,
            "FailOn": "warning"
            if compilation.treat_warnings_as_errors
            else "error",
        }
        try:
            produced = helper.compile_app(parameters)
            returncode = 0
        except HelperInvocationError as e:
            produced = None
            returncode = e.returncode
        except subprocess.TimeoutExpired as e:
            return OperationResult.fail(f"Compilation timed out: {e}")
        output = helper.last_output
        output_file = (
            Path(produced)
            if produced
            else output_dir / manifest.app_file_name()
        )

    errors, warnings = count_diagnostics(output)
    for line in output.splitlines():
        if DIAGNOSTIC_PATTERN.search(line):
            log_message(
                f"   {line.strip()}",
                "warning" if "warning" in line.lower() else "error",
                logger_to_use,
                app_settings,
            )

    if returncode != 0:
        message = f"Compilation of {role.value} failed with {errors} error(s), {warnings} warning(s)."
        log_message(
            f"{symbols.get('error', '❌')} {message}",
            "error",
            logger_to_use,
            app_settings,
        )
        return OperationResult.fail(message, errors=errors, warnings=warnings)

    if not output_file.is_file():
        message = f"Compiler reported success but {output_file} was not produced."
        log_message(
            f"{symbols.get('error', '❌')} {message}",
            "error",
            logger_to_use,
            app_settings,
        )
        return OperationResult.fail(message, errors=errors, warnings=warnings)

    log_message(
        f"{symbols.get('success', '✅')} Compiled {output_file.name} ({errors} errors, {warnings} warnings).",
        "info",
        logger_to_use,
        app_settings,
    )
    if context is not None:
        context[f"{role.key}_app_file"] = output_file
    return OperationResult.ok(
        f"{role.value} app compiled.",
        app_file=output_file,
        errors=errors,
        warnings=warnings,
    )


def expected_app_file(
    app_settings: HarnessSettings, role: PackageRole
) -> Optional[Path]:
    """Where a previous compile of `role` left its app, if it exists."""
    manifest_path = (
        app_settings.paths.prepared_path(role.value) / MANIFEST_NAME
    )
    try:
        manifest = load_manifest(manifest_path)
    except (OSError, ValueError):
        return None
    app_file = app_settings.paths.output_path() / manifest.app_file_name()
    return app_file if app_file.is_file() else None
