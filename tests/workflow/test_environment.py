import pytest

from common.errors import HelperInvocationError
from common.results import OperationResult
from workflow import models
from workflow.environment import (
    EnvironmentInitializer,
    EnvironmentState,
    initialize_environment,
)


@pytest.fixture
def host(mocker):
    """Patch the host checks to a healthy, running container."""
    return {
        "docker": mocker.patch(
            "workflow.environment.is_docker_available", return_value=True
        ),
        "powershell": mocker.patch(
            "workflow.environment.command_exists", return_value=True
        ),
        "exists": mocker.patch(
            "workflow.environment.container_exists", return_value=True
        ),
        "running": mocker.patch(
            "workflow.environment.is_container_running", return_value=True
        ),
        "address": mocker.patch(
            "workflow.environment.get_container_address",
            return_value="172.20.1.5",
        ),
        "create": mocker.patch("workflow.environment.create_container"),
    }


def test_running_container_is_ready(host, app_settings, mock_helper):
    mock_helper.is_module_available.return_value = True
    initializer = EnvironmentInitializer(app_settings, helper=mock_helper)

    result = initializer.initialize()

    assert result.success
    assert initializer.state == EnvironmentState.READY
    assert initializer.state_history == [
        EnvironmentState.UNVERIFIED,
        EnvironmentState.VERIFYING,
        EnvironmentState.READY,
    ]
    container = result.data["container"]
    assert container.name == "bctdd"
    assert container.web_client_url == "http://172.20.1.5/BC/"


def test_skip_verification(host, app_settings, mock_helper):
    initializer = EnvironmentInitializer(app_settings, helper=mock_helper)

    result = initializer.initialize(skip_verification=True)

    assert result.success
    assert result.data["container"].address == "bctdd"
    host["docker"].assert_not_called()
    mock_helper.is_module_available.assert_not_called()


def test_docker_unavailable_fails_with_hint(host, app_settings, mock_helper):
    host["docker"].return_value = False
    initializer = EnvironmentInitializer(app_settings, helper=mock_helper)

    result = initializer.initialize()

    assert not result.success
    assert initializer.state == EnvironmentState.FAILED
    assert "Docker" in result.data["hint"]
    host["create"].assert_not_called()


def test_helper_module_missing(host, app_settings, mock_helper):
    mock_helper.is_module_available.return_value = False

    result = EnvironmentInitializer(app_settings, helper=mock_helper).initialize()

    assert not result.success
    assert "Install-Module BcContainerHelper" in result.data["hint"]


def test_missing_powershell_is_not_reported_as_missing_module(
    host, app_settings, mock_helper
):
    host["powershell"].return_value = False

    result = EnvironmentInitializer(app_settings, helper=mock_helper).initialize()

    assert not result.success
    assert "PowerShell executable" in result.message
    assert "powershell_command" in result.data["hint"]
    host["powershell"].assert_called_once_with(
        app_settings.environment.powershell_command
    )
    mock_helper.is_module_available.assert_not_called()


def test_missing_container_is_created(host, app_settings, mock_helper):
    mock_helper.is_module_available.return_value = True
    host["exists"].return_value = False
    descriptor = models.ContainerDescriptor(
        name="bctdd", address="10.0.0.2", auth="UserPassword"
    )
    host["create"].return_value = OperationResult.ok("created", container=descriptor)
    initializer = EnvironmentInitializer(app_settings, helper=mock_helper)

    result = initializer.initialize()

    assert result.success
    assert result.data["container"] is descriptor
    assert EnvironmentState.NEEDS_CREATE in initializer.state_history
    assert initializer.state == EnvironmentState.READY


def test_failed_creation_is_terminal(host, app_settings, mock_helper):
    mock_helper.is_module_available.return_value = True
    host["exists"].return_value = False
    host["create"].return_value = OperationResult.fail("no artifact")
    initializer = EnvironmentInitializer(app_settings, helper=mock_helper)

    result = initializer.initialize()

    assert not result.success
    assert "no artifact" in result.message
    assert initializer.state == EnvironmentState.FAILED


def test_stopped_container_is_started(host, app_settings, mock_helper):
    mock_helper.is_module_available.return_value = True
    host["running"].return_value = False
    initializer = EnvironmentInitializer(app_settings, helper=mock_helper)

    result = initializer.initialize()

    assert result.success
    mock_helper.start_container.assert_called_once_with("bctdd")
    assert initializer.state_history[-2:] == [
        EnvironmentState.NEEDS_START,
        EnvironmentState.READY,
    ]


def test_start_failure(host, app_settings, mock_helper):
    mock_helper.is_module_available.return_value = True
    host["running"].return_value = False
    mock_helper.start_container.side_effect = HelperInvocationError("locked")

    result = EnvironmentInitializer(app_settings, helper=mock_helper).initialize()

    assert not result.success
    assert "locked" in result.message


def test_initialize_environment_publishes_container(mocker, app_settings):
    context = {}

    result = initialize_environment(
        app_settings, skip_verification=True, context=context
    )

    assert result.success
    assert context["container"].name == "bctdd"
    assert result.data["state_history"] == ["UNVERIFIED", "READY"]
