# common/validation_utils.py
# -*- coding: utf-8 -*-
"""
Input validation helpers and a uniform guarded-call wrapper.
"""

import logging
import re
from typing import Any, Callable, Mapping, Optional

from settings.config_models import HarnessSettings

from .command_utils import get_symbols, log_message

module_logger = logging.getLogger(__name__)

# Container names double as host names inside the container, which limits
# them to 15 characters.
CONTAINER_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9-]{0,14}$")


def validate_container_name(name: Optional[str]) -> bool:
    """
    Check a container name against the allowed pattern.

    The name must start with a letter, contain only letters, digits and
    hyphens, and be at most 15 characters long.
    """
    if not name or not isinstance(name, str):
        return False
    return bool(CONTAINER_NAME_PATTERN.match(name))


def _credential_field(credential: Any, field: str) -> Any:
    if isinstance(credential, Mapping):
        return credential.get(field)
    return getattr(credential, field, None)


def validate_credential(credential: Any) -> bool:
    """
    Check that a credential carries a non-empty username and password.

    Accepts a mapping with ``username``/``password`` keys or any object with
    those attributes.
    """
    if credential is None:
        return False
    for field in ("username", "password"):
        value = _credential_field(credential, field)
        if not isinstance(value, str) or not value.strip():
            return False
    return True


def invoke_safely(
    description: str,
    func: Callable[..., Any],
    *args: Any,
    app_settings: Optional[HarnessSettings] = None,
    current_logger: Optional[logging.Logger] = None,
    **kwargs: Any,
) -> bool:
    """
    Run `func` and report success as a boolean.

    Any exception is logged with the description and turned into False. A
    function returning False (or a falsy OperationResult) also counts as a
    failure; any other return value is success.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    try:
        outcome = func(*args, **kwargs)
    except Exception as e:
        log_message(
            f"{symbols.get('error', '❌')} {description} failed: {e}",
            "error",
            logger_to_use,
            app_settings,
            exc_info=True,
        )
        return False

    if outcome is False or (
        outcome is not None
        and hasattr(outcome, "success")
        and not outcome.success
    ):
        log_message(
            f"{symbols.get('error', '❌')} {description} reported failure.",
            "error",
            logger_to_use,
            app_settings,
        )
        return False
    return True
