from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from common.results import OperationResult
from common.validation_utils import (
    invoke_safely,
    validate_container_name,
    validate_credential,
)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("bctdd", True),
        ("BC-Dev-01", True),
        ("a", True),
        ("abcdefghijklmno", True),
        ("abcdefghijklmnop", False),
        ("1bc", False),
        ("-bc", False),
        ("bc_tdd", False),
        ("bc tdd", False),
        ("", False),
        (None, False),
    ],
)
def test_validate_container_name(name, expected):
    assert validate_container_name(name) is expected


def test_validate_credential_mapping():
    assert validate_credential({"username": "admin", "password": "pw"})
    assert not validate_credential({"username": "admin", "password": ""})
    assert not validate_credential({"username": "  ", "password": "pw"})


def test_validate_credential_object():
    assert validate_credential(SimpleNamespace(username="admin", password="pw"))
    assert not validate_credential(SimpleNamespace(username="admin"))
    assert not validate_credential(None)


def test_invoke_safely_success(app_settings):
    func = MagicMock(return_value="anything")

    assert invoke_safely("Step", func, 1, app_settings=app_settings, flag=True)
    func.assert_called_once_with(1, flag=True)


def test_invoke_safely_exception(app_settings, mock_logger):
    func = MagicMock(side_effect=RuntimeError("boom"))

    assert (
        invoke_safely(
            "Step", func, app_settings=app_settings, current_logger=mock_logger
        )
        is False
    )
    assert "Step failed: boom" in mock_logger.error.call_args[0][0]


def test_invoke_safely_false_and_failed_result(app_settings):
    assert invoke_safely("Step", lambda: False, app_settings=app_settings) is False
    assert (
        invoke_safely(
            "Step", lambda: OperationResult.fail("no"), app_settings=app_settings
        )
        is False
    )
    assert invoke_safely(
        "Step", lambda: OperationResult.ok("yes"), app_settings=app_settings
    )
