# workflow/cli.py
# -*- coding: utf-8 -*-
"""
Command-line entry points for the harness.

Every stage is available as its own command; ``run-all`` chains them and
``interactive`` opens the menu. Commands exit with 0 on success and 1 on any
failure.
"""

import logging
from typing import Any, Optional

import click
import yaml

from common.command_utils import get_symbols
from common.core_utils import setup_logging
from common.results import OperationResult
from settings.config_loader import (
    build_cli_overrides,
    dump_settings,
    load_harness_settings,
)
from settings.config_models import CONFIG_FILE_DEFAULT, HarnessSettings
from ui.session import InteractiveSession

from .compiler import compile_app
from .container_setup import create_container
from .deployer import deploy_app
from .environment import initialize_environment
from .models import PackageRole
from .pipeline import STAGE_ORDER, PipelineOptions, run_pipeline
from .result_viewer import view_results
from .source_prep import prepare_sources
from .test_runner import run_tests

logger = logging.getLogger("bc_tdd")

PACKAGE_TYPE = click.Choice(
    [role.value for role in PackageRole], case_sensitive=False
)


def _load_settings(ctx: click.Context, **overrides: Any) -> HarnessSettings:
    """Load configuration for a command and configure logging from it."""
    settings = load_harness_settings(
        ctx.obj["config"],
        overrides=build_cli_overrides(**overrides),
        current_logger=logger,
    )
    if settings is None:
        click.echo(
            "Error: configuration is invalid. See the messages above.",
            err=True,
        )
        ctx.exit(1)
    behavior = settings.script_behavior
    setup_logging(
        log_level=logging.DEBUG if ctx.obj["verbose"] else behavior.log_level,
        log_file=behavior.log_file,
        log_prefix=behavior.log_prefix,
        symbols=settings.symbols,
    )
    return settings


def _finish(
    ctx: click.Context,
    settings: Optional[HarnessSettings],
    result: OperationResult,
) -> None:
    """Report a stage result and exit with its status."""
    symbols = get_symbols(settings)
    if result.success:
        click.echo(f"{symbols.get('success', '✅')} {result.message}")
        ctx.exit(0)
    label = result.data.get("failed_stage")
    prefix = f"[{label}] " if label else ""
    click.echo(
        f"{symbols.get('error', '❌')} Error: {prefix}{result.message}",
        err=True,
    )
    hint = result.data.get("hint")
    if hint:
        click.echo(f"Hint: {hint}", err=True)
    ctx.exit(1)


def _run_stage(ctx: click.Context, settings: HarnessSettings, func, *args, **kwargs):
    """Run a stage function, converting any escaped exception into exit 1."""
    try:
        result = func(*args, current_logger=logger, **kwargs)
    except Exception as e:
        logger.critical(f"Unexpected error: {e}", exc_info=True)
        result = OperationResult.fail(f"Unexpected error: {e}")
    _finish(ctx, settings, result)


@click.group()
@click.option(
    "--config",
    "config_file",
    default=CONFIG_FILE_DEFAULT,
    show_default=True,
    type=click.Path(dir_okay=False),
    help="YAML configuration file. Missing files fall back to defaults.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx, config_file, verbose):
    """
    Test-driven development harness for Business Central AL extensions.

    Provisions a container, builds and publishes the main and test apps, runs
    the tests and reports the results.
    """
    ctx.ensure_object(dict)
    ctx.obj["config"] = config_file
    ctx.obj["verbose"] = verbose


@cli.command(name="init-env")
@click.option("--container-name", help="Container to verify or create.")
@click.option(
    "--skip-verification",
    is_flag=True,
    help="Assume the container is ready without checking.",
)
@click.pass_context
def init_env_command(ctx, container_name, skip_verification):
    """Verify the host and make sure the container is running."""
    settings = _load_settings(
        ctx, environment__container_name=container_name
    )
    _run_stage(
        ctx,
        settings,
        initialize_environment,
        settings,
        skip_verification=skip_verification,
    )


@cli.command(name="new-container")
@click.option("--name", help="Container name.")
@click.option(
    "--auth",
    type=click.Choice(["UserPassword", "NavUserPassword", "Windows", "AAD"]),
    help="Authentication mode.",
)
@click.option("--memory-limit", help="Memory limit, e.g. 8G.")
@click.option(
    "--test-toolkit/--no-test-toolkit",
    default=None,
    help="Import the test toolkit.",
)
@click.option(
    "--performance-toolkit/--no-performance-toolkit",
    default=None,
    help="Import the performance toolkit.",
)
@click.option(
    "--premium-plan/--no-premium-plan",
    default=None,
    help="Assign the premium plan to the admin user.",
)
@click.option("--artifact-url", help="Explicit artifact URL.")
@click.pass_context
def new_container_command(
    ctx,
    name,
    auth,
    memory_limit,
    test_toolkit,
    performance_toolkit,
    premium_plan,
    artifact_url,
):
    """Create a new container."""
    settings = _load_settings(ctx, environment__artifact_url=artifact_url)
    _run_stage(
        ctx,
        settings,
        create_container,
        settings,
        name=name,
        auth=auth,
        memory_limit=memory_limit,
        test_toolkit=test_toolkit,
        performance_toolkit=performance_toolkit,
        premium_plan=premium_plan,
    )


@cli.command(name="prepare")
@click.option(
    "--package-type", "-p", type=PACKAGE_TYPE, required=True, help="Main or Test."
)
@click.option("--source-dir", help="Directory holding the AL project.")
@click.option("--output-dir", help="Where the prepared copy goes.")
@click.pass_context
def prepare_command(ctx, package_type, source_dir, output_dir):
    """Copy an app's sources into the build tree."""
    settings = _load_settings(ctx)
    _run_stage(
        ctx,
        settings,
        prepare_sources,
        settings,
        PackageRole.parse(package_type),
        source_dir=source_dir,
        output_dir=output_dir,
    )


@cli.command(name="compile")
@click.option(
    "--package-type", "-p", type=PACKAGE_TYPE, required=True, help="Main or Test."
)
@click.option("--project-dir", help="Prepared project to compile.")
@click.option("--compiler-path", help="Use this alc instead of the container.")
@click.option("--container-name", help="Container used for compilation.")
@click.pass_context
def compile_command(ctx, package_type, project_dir, compiler_path, container_name):
    """Compile an app."""
    settings = _load_settings(
        ctx,
        compilation__compiler_path=compiler_path,
        environment__container_name=container_name,
    )
    _run_stage(
        ctx,
        settings,
        compile_app,
        settings,
        PackageRole.parse(package_type),
        project_dir=project_dir,
    )


@cli.command(name="deploy")
@click.option(
    "--package-type", "-p", type=PACKAGE_TYPE, required=True, help="Main or Test."
)
@click.option(
    "--app-file",
    type=click.Path(dir_okay=False),
    help="Compiled .app to publish. Defaults to the last build output.",
)
@click.option("--container-name", help="Target container.")
@click.option("--timeout", type=int, help="Publish timeout in seconds.")
@click.pass_context
def deploy_command(ctx, package_type, app_file, container_name, timeout):
    """Publish and install a compiled app."""
    settings = _load_settings(
        ctx,
        environment__container_name=container_name,
        publishing__timeout_seconds=timeout,
    )
    _run_stage(
        ctx,
        settings,
        deploy_app,
        settings,
        app_file,
        PackageRole.parse(package_type),
    )


@cli.command(name="test")
@click.option("--extension-id", help="App ID of the test extension.")
@click.option("--codeunit-filter", help="Codeunit filter (default *).")
@click.option("--function-filter", help="Function filter (default *).")
@click.option(
    "--fail-fast/--no-fail-fast",
    default=None,
    help="Stop at the first failing test.",
)
@click.option("--timeout", type=int, help="Test timeout in seconds.")
@click.option("--container-name", help="Container to run in.")
@click.option("--results-file", help="Where to write the results.")
@click.option(
    "--results-format",
    type=click.Choice(["xml", "json"]),
    help="Result file format.",
)
@click.pass_context
def test_command(
    ctx,
    extension_id,
    codeunit_filter,
    function_filter,
    fail_fast,
    timeout,
    container_name,
    results_file,
    results_format,
):
    """Run the tests of the test app."""
    settings = _load_settings(
        ctx,
        testing__results_file=results_file,
        testing__results_format=results_format,
    )
    _run_stage(
        ctx,
        settings,
        run_tests,
        settings,
        extension_id=extension_id,
        codeunit_filter=codeunit_filter,
        function_filter=function_filter,
        fail_fast=fail_fast,
        timeout_seconds=timeout,
        container_name=container_name,
    )


@cli.command(name="view-results")
@click.option("--results-file", help="Result file to read.")
@click.option("--failed-only", is_flag=True, help="Hide passing tests.")
@click.pass_context
def view_results_command(ctx, results_file, failed_only):
    """Print the counts and details of a result file."""
    settings = _load_settings(ctx)
    _run_stage(
        ctx,
        settings,
        view_results,
        settings,
        results_file=results_file,
        failed_only=failed_only,
        output_func=click.echo,
    )


@cli.command(name="run-all")
@click.option("--skip-environment", is_flag=True, help="Skip the environment stage.")
@click.option(
    "--skip-verification",
    is_flag=True,
    help="Assume the container is ready without checking.",
)
@click.option("--skip-prepare", is_flag=True, help="Skip source preparation.")
@click.option("--skip-compile", is_flag=True, help="Skip compilation.")
@click.option("--skip-deploy", is_flag=True, help="Skip deployment.")
@click.option("--skip-tests", is_flag=True, help="Skip the test run.")
@click.option("--skip-view", is_flag=True, help="Skip printing results.")
@click.option(
    "--only",
    type=click.Choice(list(STAGE_ORDER)),
    help="Run a single stage.",
)
@click.option(
    "--packages",
    type=PACKAGE_TYPE,
    multiple=True,
    help="Limit prepare/compile/deploy to these apps (repeatable).",
)
@click.option("--failed-only", is_flag=True, help="Hide passing tests.")
@click.option("--codeunit-filter", help="Codeunit filter (default *).")
@click.option("--function-filter", help="Function filter (default *).")
@click.option("--extension-id", help="App ID of the test extension.")
@click.pass_context
def run_all_command(
    ctx,
    skip_environment,
    skip_verification,
    skip_prepare,
    skip_compile,
    skip_deploy,
    skip_tests,
    skip_view,
    only,
    packages,
    failed_only,
    codeunit_filter,
    function_filter,
    extension_id,
):
    """Run the full cycle: environment, Main, Test, tests, results."""
    settings = _load_settings(ctx)
    options = PipelineOptions(
        skip_environment=skip_environment,
        skip_verification=skip_verification,
        skip_prepare=skip_prepare,
        skip_compile=skip_compile,
        skip_deploy=skip_deploy,
        skip_tests=skip_tests,
        skip_view=skip_view,
        only=only,
        packages=[PackageRole.parse(p) for p in packages]
        or [PackageRole.MAIN, PackageRole.TEST],
        failed_only=failed_only,
        codeunit_filter=codeunit_filter,
        function_filter=function_filter,
        extension_id=extension_id,
    )
    _run_stage(ctx, settings, run_pipeline, settings, options)


@cli.command(name="interactive")
@click.pass_context
def interactive_command(ctx):
    """Open the interactive menu."""
    settings = _load_settings(ctx)
    InteractiveSession(settings, current_logger=logger).run()
    ctx.exit(0)


@cli.command(name="show-config")
@click.pass_context
def show_config_command(ctx):
    """Print the effective configuration with secrets masked."""
    settings = _load_settings(ctx)
    click.echo(yaml.safe_dump(dump_settings(settings), sort_keys=False))
    ctx.exit(0)


if __name__ == "__main__":
    cli()
