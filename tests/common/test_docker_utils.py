import subprocess
from unittest.mock import MagicMock

from common.docker_utils import (
    container_exists,
    get_container_address,
    get_container_state,
    is_container_running,
    is_docker_available,
)


def _completed(stdout="", returncode=0):
    return MagicMock(returncode=returncode, stdout=stdout, stderr="")


def test_is_docker_available_true(mocker, app_settings):
    mock_run = mocker.patch(
        "common.docker_utils.run_command", return_value=_completed('"24.0.7"\n')
    )

    assert is_docker_available(app_settings) is True
    command = mock_run.call_args[0][0]
    assert command == ["docker", "info", "--format", "{{json .ServerVersion}}"]


def test_is_docker_available_daemon_down(mocker, app_settings):
    mocker.patch(
        "common.docker_utils.run_command",
        return_value=_completed("", returncode=1),
    )

    assert is_docker_available(app_settings) is False


def test_is_docker_available_cli_missing(mocker, app_settings):
    mocker.patch(
        "common.docker_utils.run_command", side_effect=FileNotFoundError("docker")
    )

    assert is_docker_available(app_settings) is False


def test_is_docker_available_timeout(mocker, app_settings):
    mocker.patch(
        "common.docker_utils.run_command",
        side_effect=subprocess.TimeoutExpired(["docker"], 60),
    )

    assert is_docker_available(app_settings) is False


def test_get_container_state_uses_json_inspect(mocker, app_settings):
    mock_run = mocker.patch(
        "common.docker_utils.run_command",
        return_value=_completed('{"Status":"running","Running":true}'),
    )

    state = get_container_state("bctdd", app_settings)

    assert state == {"Status": "running", "Running": True}
    assert mock_run.call_args[0][0] == [
        "docker",
        "container",
        "inspect",
        "--format",
        "{{json .State}}",
        "bctdd",
    ]


def test_container_missing(mocker, app_settings):
    mocker.patch(
        "common.docker_utils.run_command",
        return_value=_completed("", returncode=1),
    )

    assert container_exists("bctdd", app_settings) is False
    assert is_container_running("bctdd", app_settings) is False


def test_container_stopped(mocker, app_settings):
    mocker.patch(
        "common.docker_utils.run_command",
        return_value=_completed('{"Status":"exited","Running":false}'),
    )

    assert container_exists("bctdd", app_settings) is True
    assert is_container_running("bctdd", app_settings) is False


def test_unexpected_inspect_output_is_treated_as_missing(mocker, app_settings):
    mocker.patch(
        "common.docker_utils.run_command",
        return_value=_completed("Status: running"),
    )

    assert get_container_state("bctdd", app_settings) is None


def test_get_container_address(mocker, app_settings):
    mocker.patch(
        "common.docker_utils.run_command",
        return_value=_completed('{"nat":{"IPAddress":"172.20.1.5"}}'),
    )

    assert get_container_address("bctdd", app_settings) == "172.20.1.5"


def test_get_container_address_falls_back_to_name(mocker, app_settings):
    mocker.patch(
        "common.docker_utils.run_command",
        return_value=_completed('{"nat":{"IPAddress":""}}'),
    )

    assert get_container_address("bctdd", app_settings) == "bctdd"
