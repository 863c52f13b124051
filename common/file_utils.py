# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system utility functions: path resolution, directory cleanup and
filtered tree copies.
"""

import logging
import shutil
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

from settings.config_models import HarnessSettings

from .command_utils import get_symbols, log_message

module_logger = logging.getLogger(__name__)

IGNORE_MARKER_CONTENT = "*\n"


def resolve_path(
    path: Union[str, Path],
    base_dir: Optional[Union[str, Path]] = None,
    create: bool = False,
    app_settings: Optional[HarnessSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Resolve a possibly relative path against a base directory.

    Absolute paths are returned as-is (normalized). With `create`, the
    resulting directory is created when it does not already exist; an
    existing directory is left untouched, so repeated calls are idempotent.

    Parameters:
        path (Union[str, Path]): The path to resolve.
        base_dir (Optional[Union[str, Path]]): Directory relative paths are
            anchored to. Defaults to the current working directory.
        create (bool): Create the directory if it is missing.
        app_settings (Optional[HarnessSettings]): Settings for log symbols.
        current_logger (Optional[logging.Logger]): Logger to use.

    Returns:
        Path: The absolute path.
    """
    logger_to_use = current_logger if current_logger else module_logger
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        anchor = Path(base_dir).expanduser() if base_dir else Path.cwd()
        candidate = anchor / candidate
    resolved = candidate.resolve()

    if create and not resolved.is_dir():
        resolved.mkdir(parents=True, exist_ok=True)
        log_message(
            f"{get_symbols(app_settings).get('success', '✅')} Created directory: {resolved}",
            "info",
            logger_to_use,
            app_settings,
        )
    return resolved


def ensure_ignore_marker(
    directory: Path,
    marker_name: str = ".gitignore",
    app_settings: Optional[HarnessSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Make sure `directory` exists and holds a catch-all ignore marker.

    An existing marker is never rewritten.
    """
    logger_to_use = current_logger if current_logger else module_logger
    directory.mkdir(parents=True, exist_ok=True)
    marker = directory / marker_name
    if not marker.exists():
        marker.write_text(IGNORE_MARKER_CONTENT, encoding="utf-8")
        log_message(
            f"Created ignore marker {marker}",
            "debug",
            logger_to_use,
            app_settings,
        )
    return marker


def cleanup_directory(
    directory_path: Path,
    app_settings: Optional[HarnessSettings],
    ensure_dir_exists_after: bool = False,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Removes a directory and its contents, optionally recreating it empty.

    Parameters:
        directory_path (Path): The directory to clean.
        app_settings (Optional[HarnessSettings]): Settings for log symbols.
        ensure_dir_exists_after (bool): Recreate the directory after cleanup.
        current_logger (Optional[logging.Logger]): Logger to use.

    Returns:
        bool: False if the directory could not be removed or recreated.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    log_message(
        f"Attempting to clean directory: {directory_path}",
        "debug",
        logger_to_use,
        app_settings,
    )
    if directory_path.exists():
        if directory_path.is_dir():
            try:
                shutil.rmtree(directory_path)
                log_message(
                    f"Removed directory and its contents: {directory_path}",
                    "debug",
                    logger_to_use,
                    app_settings,
                )
            except OSError as e:
                log_message(
                    f"{symbols.get('error', '❌')} Error removing directory {directory_path}: {e}",
                    "error",
                    logger_to_use,
                    app_settings,
                    exc_info=True,
                )
                return False
        else:
            log_message(
                f"{symbols.get('warning', '!')} Path {directory_path} exists but is not a directory.",
                "warning",
                logger_to_use,
                app_settings,
            )
            return False

    if ensure_dir_exists_after:
        try:
            directory_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log_message(
                f"{symbols.get('error', '❌')} Error creating directory {directory_path} after cleanup: {e}",
                "error",
                logger_to_use,
                app_settings,
                exc_info=True,
            )
            return False
    return True


def is_excluded(
    relative_path: str,
    exclusions: Iterable[str],
    excluded_suffixes: Iterable[str] = (),
) -> bool:
    """
    True when any exclusion pattern occurs as a substring of the path, or
    when the file name ends with one of `excluded_suffixes`.
    """
    normalized = relative_path.replace("\\", "/")
    if any(pattern in normalized for pattern in exclusions):
        return True
    file_name = normalized.rsplit("/", 1)[-1].lower()
    return any(file_name.endswith(suffix.lower()) for suffix in excluded_suffixes)


def copy_filtered_tree(
    source_dir: Path,
    destination_dir: Path,
    exclusions: Iterable[str],
    app_settings: Optional[HarnessSettings] = None,
    current_logger: Optional[logging.Logger] = None,
    excluded_suffixes: Iterable[str] = (),
) -> Tuple[int, int]:
    """
    Copy every file below `source_dir` into `destination_dir`.

    Files whose path relative to `source_dir` contains one of the exclusion
    substrings, or whose name ends with one of `excluded_suffixes`, are
    skipped. Relative structure is preserved.

    Returns:
        Tuple[int, int]: (files copied, files skipped).
    """
    logger_to_use = current_logger if current_logger else module_logger
    exclusion_list = list(exclusions)
    suffix_list = list(excluded_suffixes)
    copied = 0
    skipped = 0

    for source_file in sorted(source_dir.rglob("*")):
        if not source_file.is_file():
            continue
        relative = source_file.relative_to(source_dir).as_posix()
        if is_excluded(relative, exclusion_list, suffix_list):
            skipped += 1
            log_message(
                f"Skipping {relative}", "debug", logger_to_use, app_settings
            )
            continue
        target = destination_dir / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source_file, target)
        copied += 1

    return copied, skipped
