from common.errors import HelperInvocationError
from workflow.container_setup import create_container


def test_create_container_happy_path(mocker, app_settings, mock_helper):
    mocker.patch(
        "workflow.container_setup.get_container_address", return_value="10.0.0.9"
    )
    mock_helper.get_artifact_url.return_value = "https://bcartifacts/sandbox/24.0/us"

    result = create_container(
        app_settings, name="bcdev", memory_limit="12G", helper=mock_helper
    )

    assert result.success
    mock_helper.get_artifact_url.assert_called_once_with("Sandbox", "us", "Latest")
    parameters = mock_helper.new_container.call_args[0][0]
    assert parameters["containerName"] == "bcdev"
    assert parameters["accept_eula"] is True
    assert parameters["updateHosts"] is True
    assert parameters["memoryLimit"] == "12G"
    assert parameters["includeTestToolkit"] is True
    assert parameters["artifactUrl"] == "https://bcartifacts/sandbox/24.0/us"
    mock_helper.setup_test_users.assert_called_once_with("bcdev", "admin")
    assert result.data["container"].address == "10.0.0.9"
    assert result.data["values"]["memory_limit"] == "12G"


def test_explicit_artifact_skips_lookup(mocker, app_settings, mock_helper):
    mocker.patch(
        "workflow.container_setup.get_container_address", return_value="bctdd"
    )
    app_settings.environment.artifact_url = "https://example/artifact"

    result = create_container(app_settings, helper=mock_helper)

    assert result.success
    mock_helper.get_artifact_url.assert_not_called()


def test_invalid_name_stops_before_helper(app_settings, mock_helper):
    result = create_container(app_settings, name="1-invalid_name", helper=mock_helper)

    assert not result.success
    assert "Invalid container name" in result.message
    mock_helper.new_container.assert_not_called()


def test_empty_password_rejected(app_settings, mock_helper):
    app_settings.environment.password = ""

    result = create_container(app_settings, helper=mock_helper)

    assert not result.success
    assert "credentials" in result.message
    mock_helper.get_artifact_url.assert_not_called()


def test_no_artifact_found(app_settings, mock_helper):
    mock_helper.get_artifact_url.return_value = None

    result = create_container(app_settings, helper=mock_helper)

    assert not result.success
    assert "No artifact found" in result.message
    mock_helper.new_container.assert_not_called()


def test_creation_failure_warns_about_partial_container(
    app_settings, mock_helper, mock_logger
):
    mock_helper.get_artifact_url.return_value = "https://example/artifact"
    mock_helper.new_container.side_effect = HelperInvocationError("disk full")

    result = create_container(
        app_settings, helper=mock_helper, current_logger=mock_logger
    )

    assert not result.success
    assert "disk full" in result.message
    mock_helper.setup_test_users.assert_not_called()
    warnings = " ".join(c.args[0] for c in mock_logger.warning.call_args_list)
    assert "partially created" in warnings


def test_test_user_setup_failure(app_settings, mock_helper):
    mock_helper.get_artifact_url.return_value = "https://example/artifact"
    mock_helper.setup_test_users.side_effect = HelperInvocationError("timeout")

    result = create_container(app_settings, helper=mock_helper)

    assert not result.success
    assert result.message.startswith("Test user setup failed")
