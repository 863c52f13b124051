# workflow/source_prep.py
# -*- coding: utf-8 -*-
"""
Copies an AL project into the build tree, leaving editor, VCS and build
artifacts behind, and validates the copied app.json.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from common.command_utils import get_symbols, log_message
from common.file_utils import (
    cleanup_directory,
    copy_filtered_tree,
    ensure_ignore_marker,
    resolve_path,
)
from common.json_utils import load_json_file
from common.results import OperationResult
from settings.config_models import HarnessSettings

from .models import AppManifest, PackageRole

module_logger = logging.getLogger(__name__)

EXCLUDED_PATTERNS: Tuple[str, ...] = (
    ".alpackages",
    ".snapshots",
    ".output",
    ".git",
    ".vs",
    ".vscode",
    "node_modules",
    "__pycache__",
    "rad.json",
    ".build",
)

# Compiled packages, matched against the end of the file name only.
EXCLUDED_SUFFIXES: Tuple[str, ...] = (".app",)

MANIFEST_NAME = "app.json"


def load_manifest(manifest_path: Path) -> AppManifest:
    """
    Parse an app.json file.

    Raises:
        FileNotFoundError: The manifest does not exist.
        json.JSONDecodeError: The manifest is not valid JSON.
        pydantic.ValidationError: A field has the wrong shape.
    """
    return AppManifest.model_validate(load_json_file(manifest_path))


def prepare_sources(
    app_settings: HarnessSettings,
    role: Any,
    source_dir: Optional[str] = None,
    output_dir: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    context: Optional[Dict[str, Any]] = None,
) -> OperationResult:
    """
    Prepare the sources of one app for compilation.

    The output directory is emptied first so files deleted from the source do
    not linger in the build tree.

    Returns:
        OperationResult: Data holds ``files_copied``, ``files_skipped``,
        ``manifest`` and ``output_dir``.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    try:
        role = PackageRole.parse(role)
    except ValueError as e:
        return OperationResult.fail(str(e))

    paths = app_settings.paths
    base_dir = paths.base_path()
    source = (
        resolve_path(source_dir, base_dir)
        if source_dir
        else paths.source_path(role.value)
    )
    output = (
        resolve_path(output_dir, base_dir)
        if output_dir
        else paths.prepared_path(role.value)
    )

    log_message(
        f"{symbols.get('step', '➡️')} Preparing {role.value} sources: {source} -> {output}",
        "info",
        logger_to_use,
        app_settings,
    )

    if not source.is_dir():
        message = f"{role.value} source directory not found: {source}"
        log_message(
            f"{symbols.get('error', '❌')} {message}",
            "error",
            logger_to_use,
            app_settings,
        )
        return OperationResult.fail(message)

    ensure_ignore_marker(
        paths.build_path(), paths.ignore_marker, app_settings, logger_to_use
    )
    if not cleanup_directory(
        output,
        app_settings,
        ensure_dir_exists_after=True,
        current_logger=logger_to_use,
    ):
        return OperationResult.fail(
            f"Could not reset output directory {output}."
        )

    try:
        copied, skipped = copy_filtered_tree(
            source,
            output,
            EXCLUDED_PATTERNS,
            app_settings,
            logger_to_use,
            excluded_suffixes=EXCLUDED_SUFFIXES,
        )
    except OSError as e:
        log_message(
            f"{symbols.get('error', '❌')} Copy failed: {e}",
            "error",
            logger_to_use,
            app_settings,
            exc_info=True,
        )
        return OperationResult.fail(f"Copying sources failed: {e}")

    manifest_path = output / MANIFEST_NAME
    try:
        manifest = load_manifest(manifest_path)
    except FileNotFoundError:
        message = f"{MANIFEST_NAME} not found in {output}."
        log_message(
            f"{symbols.get('error', '❌')} {message}",
            "error",
            logger_to_use,
            app_settings,
        )
        return OperationResult.fail(
            message, files_copied=copied, files_skipped=skipped
        )
    except (json.JSONDecodeError, PydanticValidationError) as e:
        message = f"{MANIFEST_NAME} in {output} is invalid: {e}"
        log_message(
            f"{symbols.get('error', '❌')} {message}",
            "error",
            logger_to_use,
            app_settings,
        )
        return OperationResult.fail(
            message, files_copied=copied, files_skipped=skipped
        )

    missing = manifest.missing_fields()
    if missing:
        message = (
            f"{MANIFEST_NAME} is missing required fields: {', '.join(missing)}"
        )
        log_message(
            f"{symbols.get('error', '❌')} {message}",
            "error",
            logger_to_use,
            app_settings,
        )
        return OperationResult.fail(
            message, files_copied=copied, files_skipped=skipped
        )

    log_message(
        f"{symbols.get('success', '✅')} Prepared {manifest.name} {manifest.version}: {copied} files copied, {skipped} skipped.",
        "info",
        logger_to_use,
        app_settings,
    )
    return OperationResult.ok(
        f"{role.value} sources prepared.",
        files_copied=copied,
        files_skipped=skipped,
        manifest=manifest,
        output_dir=output,
    )
