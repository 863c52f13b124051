# workflow/pipeline.py
# -*- coding: utf-8 -*-
"""
The full TDD cycle as one ordered task queue:

    environment -> Main (prepare, compile, deploy)
                -> Test (prepare, compile, deploy)
                -> run tests -> view results
"""

import logging
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

from common.command_utils import get_symbols, log_message
from common.orchestrator import Orchestrator
from common.results import OperationResult
from settings.config_models import HarnessSettings

from .compiler import compile_app
from .deployer import deploy_app
from .environment import initialize_environment
from .models import PackageRole
from .result_viewer import view_results
from .source_prep import prepare_sources
from .test_runner import run_tests

module_logger = logging.getLogger(__name__)

StageName = Literal["environment", "prepare", "compile", "deploy", "test", "view"]
STAGE_ORDER: Tuple[str, ...] = (
    "environment",
    "prepare",
    "compile",
    "deploy",
    "test",
    "view",
)


class PipelineOptions(BaseModel):
    """Which parts of the cycle to run."""

    skip_environment: bool = False
    skip_verification: bool = False
    skip_prepare: bool = False
    skip_compile: bool = False
    skip_deploy: bool = False
    skip_tests: bool = False
    skip_view: bool = False
    only: Optional[StageName] = None
    packages: List[PackageRole] = Field(
        default_factory=lambda: [PackageRole.MAIN, PackageRole.TEST]
    )
    failed_only: bool = False
    codeunit_filter: Optional[str] = None
    function_filter: Optional[str] = None
    extension_id: Optional[str] = None

    def enabled(self, stage: str) -> bool:
        if self.only:
            return stage == self.only
        return not getattr(
            self, "skip_tests" if stage == "test" else f"skip_{stage}"
        )

    def ordered_packages(self) -> List[PackageRole]:
        """Selected roles, Main always before Test."""
        return [role for role in PackageRole if role in self.packages]


def build_orchestrator(
    app_settings: HarnessSettings,
    options: PipelineOptions,
    current_logger: Optional[logging.Logger] = None,
) -> Orchestrator:
    """Queue the enabled stages in cycle order."""
    logger_to_use = current_logger if current_logger else module_logger
    fatal = app_settings.script_behavior.strict_errors
    orchestrator = Orchestrator(app_settings, logger_to_use)

    if options.enabled("environment"):
        orchestrator.add_task(
            "environment",
            initialize_environment,
            args=[app_settings],
            kwargs={
                "skip_verification": options.skip_verification,
                "current_logger": logger_to_use,
            },
            fatal=True,
        )

    for role in options.ordered_packages():
        if options.enabled("prepare"):
            orchestrator.add_task(
                f"prepare-{role.key}",
                prepare_sources,
                args=[app_settings, role],
                kwargs={"current_logger": logger_to_use},
                fatal=fatal,
            )
        if options.enabled("compile"):
            orchestrator.add_task(
                f"compile-{role.key}",
                compile_app,
                args=[app_settings, role],
                kwargs={"current_logger": logger_to_use},
                fatal=fatal,
            )
        if options.enabled("deploy"):
            orchestrator.add_task(
                f"deploy-{role.key}",
                deploy_app,
                args=[app_settings, None, role],
                kwargs={"current_logger": logger_to_use},
                fatal=fatal,
            )

    if options.enabled("test"):
        orchestrator.add_task(
            "test",
            run_tests,
            args=[app_settings],
            kwargs={
                "extension_id": options.extension_id,
                "codeunit_filter": options.codeunit_filter,
                "function_filter": options.function_filter,
                "current_logger": logger_to_use,
            },
            fatal=fatal,
        )

    if options.enabled("view"):
        orchestrator.add_task(
            "view",
            view_results,
            args=[app_settings],
            kwargs={
                "failed_only": options.failed_only,
                "current_logger": logger_to_use,
            },
            fatal=fatal,
        )
    return orchestrator


def run_pipeline(
    app_settings: HarnessSettings,
    options: Optional[PipelineOptions] = None,
    current_logger: Optional[logging.Logger] = None,
) -> OperationResult:
    """
    Run the enabled stages and stop at the first failure.

    When the test stage itself fails because tests failed, the failing tests
    are still printed before returning.

    Returns:
        OperationResult: On failure ``data["failed_stage"]`` names the stage.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    options = options or PipelineOptions()

    orchestrator = build_orchestrator(app_settings, options, logger_to_use)
    if not orchestrator.tasks:
        return OperationResult.fail("No stages selected.")

    log_message(
        f"{symbols.get('rocket', '🚀')} Running {len(orchestrator.tasks)} stage(s): "
        + ", ".join(task["name"] for task in orchestrator.tasks),
        "info",
        logger_to_use,
        app_settings,
    )
    result = orchestrator.run()

    if (
        not result.success
        and result.data.get("failed_stage") == "test"
        and options.enabled("view")
    ):
        test_result = orchestrator.context.get("test_result")
        if test_result is not None and test_result.data.get("all_passed") is False:
            view_results(
                app_settings,
                failed_only=True,
                current_logger=logger_to_use,
                context=orchestrator.context,
            )

    if result.success:
        log_message(
            f"{symbols.get('sparkles', '✨')} Pipeline finished successfully.",
            "info",
            logger_to_use,
            app_settings,
        )
    else:
        log_message(
            f"{symbols.get('error', '❌')} Pipeline stopped: {result.message}",
            "error",
            logger_to_use,
            app_settings,
        )
    return result
