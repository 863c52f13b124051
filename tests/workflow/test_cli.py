import pytest
import yaml
from click.testing import CliRunner

from common.results import OperationResult
from workflow import models
from workflow.cli import cli


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "bc-tdd.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "paths": {"base_dir": str(tmp_path)},
                "environment": {"container_name": "bcfile", "password": "S3cret!"},
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def no_logging_setup(mocker):
    return mocker.patch("workflow.cli.setup_logging")


def _invoke(config_file, *args):
    return CliRunner().invoke(cli, ["--config", str(config_file), *args])


def test_cli_help():
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "Usage" in result.output
    for command in ("init-env", "prepare", "compile", "deploy", "test", "run-all"):
        assert command in result.output


def test_show_config_masks_password(config_file):
    result = _invoke(config_file, "show-config")

    assert result.exit_code == 0
    shown = yaml.safe_load(result.output)
    assert shown["environment"]["container_name"] == "bcfile"
    assert shown["environment"]["password"] == "********"
    assert "S3cret!" not in result.output


def test_prepare_success(mocker, config_file):
    prepare = mocker.patch(
        "workflow.cli.prepare_sources",
        return_value=OperationResult.ok("Main sources prepared."),
    )

    result = _invoke(config_file, "prepare", "-p", "main")

    assert result.exit_code == 0
    assert "Main sources prepared." in result.output
    assert prepare.call_args.args[1] == models.PackageRole.MAIN


def test_prepare_requires_package_type(config_file):
    result = _invoke(config_file, "prepare")

    assert result.exit_code != 0
    assert "--package-type" in result.output


def test_compile_failure_exits_one(mocker, config_file):
    mocker.patch(
        "workflow.cli.compile_app",
        return_value=OperationResult.fail("Compilation of Main failed with 2 error(s)."),
    )

    result = _invoke(config_file, "compile", "-p", "Main")

    assert result.exit_code == 1
    assert "Error: Compilation of Main failed" in result.output


def test_command_line_overrides_file(mocker, config_file):
    deploy = mocker.patch(
        "workflow.cli.deploy_app", return_value=OperationResult.ok("deployed")
    )

    result = _invoke(
        config_file, "deploy", "-p", "Test", "--container-name", "bccli", "--timeout", "90"
    )

    assert result.exit_code == 0
    settings = deploy.call_args.args[0]
    assert settings.environment.container_name == "bccli"
    assert settings.publishing.timeout_seconds == 90


def test_init_env_failure_prints_hint(mocker, config_file):
    mocker.patch(
        "workflow.cli.initialize_environment",
        return_value=OperationResult.fail(
            "BcContainerHelper is not available.", hint="Install-Module BcContainerHelper -Force"
        ),
    )

    result = _invoke(config_file, "init-env")

    assert result.exit_code == 1
    assert "Hint: Install-Module BcContainerHelper -Force" in result.output


def test_test_command_passes_filters(mocker, config_file):
    run = mocker.patch(
        "workflow.cli.run_tests", return_value=OperationResult.ok("All tests passed.")
    )

    result = _invoke(
        config_file, "test", "--codeunit-filter", "50200", "--fail-fast", "--timeout", "60"
    )

    assert result.exit_code == 0
    kwargs = run.call_args.kwargs
    assert kwargs["codeunit_filter"] == "50200"
    assert kwargs["fail_fast"] is True
    assert kwargs["timeout_seconds"] == 60


def test_run_all_reports_failed_stage(mocker, config_file):
    pipeline = mocker.patch(
        "workflow.cli.run_pipeline",
        return_value=OperationResult.fail(
            "Stage 'deploy-main' failed: boom", failed_stage="deploy-main"
        ),
    )

    result = _invoke(config_file, "run-all", "--skip-environment", "--packages", "test")

    assert result.exit_code == 1
    assert "[deploy-main]" in result.output
    options = pipeline.call_args.args[1]
    assert options.skip_environment is True
    assert options.packages == [models.PackageRole.TEST]


def test_unexpected_exception_exits_one(mocker, config_file):
    mocker.patch("workflow.cli.view_results", side_effect=RuntimeError("disk gone"))

    result = _invoke(config_file, "view-results")

    assert result.exit_code == 1
    assert "Unexpected error: disk gone" in result.output


def test_invalid_configuration(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text(yaml.safe_dump({"publishing": {"timeout_seconds": -5}}), encoding="utf-8")

    result = _invoke(bad, "show-config")

    assert result.exit_code == 1
    assert "configuration is invalid" in result.output
