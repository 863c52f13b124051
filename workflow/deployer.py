# workflow/deployer.py
# -*- coding: utf-8 -*-
"""
Publishes a compiled app into the container, replacing any installed version.

Installed apps that depend on the target are removed first, deepest
dependent first, followed by every installed version of the target itself.
Removal problems are logged as warnings; the publish is attempted regardless.
"""

import logging
import subprocess
import xml.etree.ElementTree as ET
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from common.command_utils import get_symbols, log_message
from common.errors import HelperInvocationError, ValidationError
from common.results import OperationResult
from settings.config_models import HarnessSettings

from .bc_helper import BcContainerHelper
from .compiler import expected_app_file
from .models import AppDependency, AppIdentity, InstalledApp, PackageRole

module_logger = logging.getLogger(__name__)

NAVX_MANIFEST = "NavxManifest.xml"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _read_navx_manifest(app_file: Path) -> ET.Element:
    """
    Return the root element of the manifest inside an .app package.

    An .app file is a NAVX header followed by a zip archive; zipfile copes
    with the leading bytes on its own.

    Raises:
        ValidationError: The file is missing, not an archive, or has no
            readable manifest.
    """
    if not app_file.is_file():
        raise ValidationError(f"App file not found: {app_file}")
    try:
        with zipfile.ZipFile(app_file) as archive:
            manifest_bytes = archive.read(NAVX_MANIFEST)
    except (zipfile.BadZipFile, KeyError, OSError) as e:
        raise ValidationError(
            f"Cannot read {NAVX_MANIFEST} from {app_file}: {e}"
        ) from e
    try:
        return ET.fromstring(manifest_bytes)
    except ET.ParseError as e:
        raise ValidationError(
            f"{NAVX_MANIFEST} in {app_file} is not valid XML: {e}"
        ) from e


def read_app_identity(app_file: Path) -> AppIdentity:
    """Read name, publisher, version and id from a compiled app."""
    root = _read_navx_manifest(Path(app_file))
    for element in root.iter():
        if _local_name(element.tag) == "App":
            attributes = element.attrib
            missing = [
                key
                for key in ("Name", "Publisher", "Version")
                if not attributes.get(key)
            ]
            if missing:
                raise ValidationError(
                    f"App manifest in {app_file} lacks: {', '.join(missing)}"
                )
            return AppIdentity(
                name=attributes["Name"],
                publisher=attributes["Publisher"],
                version=attributes["Version"],
                app_id=attributes.get("Id"),
            )
    raise ValidationError(f"No App element in the manifest of {app_file}")


def read_app_dependencies(app_file: Path) -> List[AppDependency]:
    root = _read_navx_manifest(Path(app_file))
    dependencies = []
    for element in root.iter():
        if _local_name(element.tag) == "Dependency":
            attributes = element.attrib
            dependencies.append(
                AppDependency(
                    id=attributes.get("Id"),
                    name=attributes.get("Name"),
                    publisher=attributes.get("Publisher"),
                    version=attributes.get("MinVersion")
                    or attributes.get("Version"),
                )
            )
    return dependencies


def _app_key(app: InstalledApp) -> Tuple[str, str, str]:
    return (app.name.lower(), app.publisher.lower(), app.version)


def _collect_dependents(
    identity: AppIdentity,
    installed: List[InstalledApp],
    target: AppIdentity,
    visited: Set[Tuple[str, str, str]],
    order: List[InstalledApp],
) -> None:
    for app in installed:
        key = _app_key(app)
        if key in visited or target.matches(app.name, app.publisher):
            continue
        if app.depends_on(identity):
            visited.add(key)
            _collect_dependents(
                app.identity, installed, target, visited, order
            )
            order.append(app)


def compute_removal_order(
    target: AppIdentity, installed: List[InstalledApp]
) -> List[InstalledApp]:
    """
    Apps to remove before `target` can be republished.

    Returns every installed app that transitively depends on the target,
    deepest dependent first, followed by every installed version of the
    target. Returns an empty list when the target is not installed.
    """
    target_versions = [
        app for app in installed if target.matches(app.name, app.publisher)
    ]
    if not target_versions:
        return []
    order: List[InstalledApp] = []
    _collect_dependents(target, installed, target, set(), order)
    return order + target_versions


def deploy_app(
    app_settings: HarnessSettings,
    app_file: Any,
    role: Any,
    container_name: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    helper: Optional[BcContainerHelper] = None,
    context: Optional[Dict[str, Any]] = None,
) -> OperationResult:
    """
    Replace the app in the container with `app_file`.

    Returns:
        OperationResult: Data holds ``identity``, ``removed`` (in removal
        order) and ``warnings``.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    publishing = app_settings.publishing

    try:
        role = PackageRole.parse(role)
    except ValueError as e:
        return OperationResult.fail(str(e))

    if app_file is None and context:
        app_file = context.get(f"{role.key}_app_file")
    if app_file is None:
        app_file = expected_app_file(app_settings, role)
    if app_file is None:
        return OperationResult.fail(
            f"No compiled {role.value} app to deploy. Compile it first."
        )
    app_file = Path(app_file)

    if container_name is None:
        container = context.get("container") if context else None
        container_name = (
            container.name
            if container
            else app_settings.environment.container_name
        )
    helper = helper or BcContainerHelper(app_settings, logger_to_use)

    try:
        identity = read_app_identity(app_file)
    except ValidationError as e:
        log_message(
            f"{symbols.get('error', '❌')} {e}",
            "error",
            logger_to_use,
            app_settings,
        )
        return OperationResult.fail(f"Cannot deploy {app_file.name}: {e}")

    log_message(
        f"{symbols.get('package', '📦')} Deploying {identity} to '{container_name}'...",
        "info",
        logger_to_use,
        app_settings,
    )

    warnings: List[str] = []
    removed: List[str] = []

    try:
        installed = helper.get_installed_apps(container_name)
    except (HelperInvocationError, subprocess.TimeoutExpired) as e:
        installed = []
        warnings.append(f"Could not list installed apps: {e}")

    for app in compute_removal_order(identity, installed):
        try:
            helper.unpublish_app(
                container_name, app.name, app.publisher, app.version
            )
            removed.append(str(app.identity))
            log_message(
                f"Removed {app.identity}",
                "info",
                logger_to_use,
                app_settings,
            )
        except (HelperInvocationError, subprocess.TimeoutExpired) as e:
            warnings.append(f"Could not remove {app.identity}: {e}")

    if role == PackageRole.TEST:
        remaining = [
            app for app in installed if str(app.identity) not in removed
        ]
        try:
            dependencies = read_app_dependencies(app_file)
        except ValidationError:
            dependencies = []
        for dependency in dependencies:
            if not any(
                app.identity.matches(dependency.name, dependency.publisher)
                for app in remaining
            ):
                warnings.append(
                    f"Dependency {dependency.name} by {dependency.publisher} is not installed."
                )

    for warning in warnings:
        log_message(
            f"{symbols.get('warning', '!')} {warning}",
            "warning",
            logger_to_use,
            app_settings,
        )

    try:
        helper.publish_app(
            container_name,
            str(app_file),
            scope=publishing.scope,
            sync_mode=publishing.sync_mode,
            skip_verification=publishing.skip_verification,
            install=publishing.install,
            timeout=publishing.timeout_seconds,
        )
    except subprocess.TimeoutExpired:
        message = f"Publishing {identity} timed out after {publishing.timeout_seconds} seconds."
        log_message(
            f"{symbols.get('error', '❌')} {message}",
            "error",
            logger_to_use,
            app_settings,
        )
        return OperationResult.fail(
            message, identity=identity, removed=removed, warnings=warnings
        )
    except HelperInvocationError as e:
        message = f"Publishing {identity} failed: {e}"
        log_message(
            f"{symbols.get('error', '❌')} {message}",
            "error",
            logger_to_use,
            app_settings,
        )
        return OperationResult.fail(
            message, identity=identity, removed=removed, warnings=warnings
        )

    log_message(
        f"{symbols.get('success', '✅')} Published {identity}.",
        "info",
        logger_to_use,
        app_settings,
    )
    return OperationResult.ok(
        f"{role.value} app deployed.",
        identity=identity,
        removed=removed,
        warnings=warnings,
    )
