# ui/session.py
"""
Interactive text menu over the workflow stages.

The session remembers what has been done so far and runs missing
prerequisites on demand: deploying compiles first, compiling prepares the
sources, running tests deploys the test app (and therefore the main app), and
everything needs a ready environment.
"""
import datetime
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import yaml

from common.command_utils import get_symbols, log_message
from common.validation_utils import invoke_safely
from settings.config_loader import dump_settings
from settings.config_models import HarnessSettings
from workflow.compiler import compile_app
from workflow.deployer import deploy_app
from workflow.environment import initialize_environment
from workflow.models import ContainerDescriptor, PackageRole
from workflow.result_viewer import view_results
from workflow.source_prep import prepare_sources
from workflow.test_runner import run_tests

module_logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """What the current interactive session has achieved."""

    environment_ready: bool = False
    main_compiled: bool = False
    test_compiled: bool = False
    main_deployed: bool = False
    test_deployed: bool = False
    tests_run: bool = False
    last_codeunit_filter: str = "*"
    last_function_filter: str = "*"
    app_files: Dict[str, Path] = field(default_factory=dict)
    container: Optional[ContainerDescriptor] = None

    def is_compiled(self, role: PackageRole) -> bool:
        return getattr(self, f"{role.key}_compiled")

    def is_deployed(self, role: PackageRole) -> bool:
        return getattr(self, f"{role.key}_deployed")

    def mark_compiled(self, role: PackageRole, app_file: Path) -> None:
        setattr(self, f"{role.key}_compiled", True)
        # A fresh build is not what the container runs yet.
        setattr(self, f"{role.key}_deployed", False)
        self.app_files[role.key] = app_file

    def mark_deployed(self, role: PackageRole) -> None:
        setattr(self, f"{role.key}_deployed", True)
        self.tests_run = False
        if role == PackageRole.MAIN:
            # Republishing Main removes the test app that depends on it.
            self.test_deployed = False


class InteractiveSession:
    """Menu loop driving the stage functions with prerequisite chaining."""

    def __init__(
        self,
        app_settings: HarnessSettings,
        current_logger: Optional[logging.Logger] = None,
        input_func: Callable[[str], str] = input,
        output_func: Callable[[str], None] = print,
        state: Optional[SessionState] = None,
    ):
        self.app_settings = app_settings
        self.logger = current_logger or module_logger
        self.input = input_func
        self.output = output_func
        self.state = state or SessionState()
        self.symbols = get_symbols(app_settings)

    # --- actions -----------------------------------------------------------

    def ensure_environment(self) -> bool:
        if self.state.environment_ready:
            return True
        result = initialize_environment(
            self.app_settings, current_logger=self.logger
        )
        if result.success:
            self.state.environment_ready = True
            self.state.container = result.data.get("container")
        return result.success

    def compile(self, role: PackageRole) -> bool:
        """Prepare and compile one app; the test app needs Main built first."""
        if not self.ensure_environment():
            return False
        if (
            role == PackageRole.TEST
            and not self.state.main_compiled
            and not self.compile(PackageRole.MAIN)
        ):
            return False
        prepared = prepare_sources(
            self.app_settings, role, current_logger=self.logger
        )
        if not prepared.success:
            return False
        result = compile_app(
            self.app_settings,
            role,
            container=self.state.container,
            current_logger=self.logger,
        )
        if result.success:
            self.state.mark_compiled(role, result.data["app_file"])
        return result.success

    def deploy(self, role: PackageRole) -> bool:
        if not self.ensure_environment():
            return False
        if (
            role == PackageRole.TEST
            and not self.state.main_deployed
            and not self.deploy(PackageRole.MAIN)
        ):
            return False
        if not self.state.is_compiled(role) and not self.compile(role):
            return False
        result = deploy_app(
            self.app_settings,
            self.state.app_files.get(role.key),
            role,
            container_name=self._container_name(),
            current_logger=self.logger,
        )
        if result.success:
            self.state.mark_deployed(role)
        return result.success

    def run_tests(
        self,
        codeunit_filter: Optional[str] = None,
        function_filter: Optional[str] = None,
    ) -> bool:
        if not self.ensure_environment():
            return False
        if not self.state.main_deployed and not self.deploy(PackageRole.MAIN):
            return False
        if not self.state.test_deployed and not self.deploy(PackageRole.TEST):
            return False
        self.state.last_codeunit_filter = (
            codeunit_filter or self.state.last_codeunit_filter
        )
        self.state.last_function_filter = (
            function_filter or self.state.last_function_filter
        )
        result = run_tests(
            self.app_settings,
            codeunit_filter=self.state.last_codeunit_filter,
            function_filter=self.state.last_function_filter,
            container_name=self._container_name(),
            current_logger=self.logger,
        )
        # A run with failing tests still produced results worth viewing.
        self.state.tests_run = result.success or "all_passed" in result.data
        return result.success

    def view(self, failed_only: bool = False) -> bool:
        if not self.state.tests_run:
            self.output(
                f"{self.symbols.get('info', 'ℹ️')} No tests run in this session; showing the last result file."
            )
        return view_results(
            self.app_settings,
            failed_only=failed_only,
            current_logger=self.logger,
            output_func=self.output,
        ).success

    def run_all(self) -> bool:
        """Rebuild and redeploy both apps, then test."""
        for role in PackageRole:
            if not self.compile(role) or not self.deploy(role):
                return False
        if not self.run_tests():
            self.view(failed_only=True)
            return False
        return self.view()

    def _container_name(self) -> str:
        if self.state.container:
            return self.state.container.name
        return self.app_settings.environment.container_name

    # --- display -----------------------------------------------------------

    def view_configuration(self) -> None:
        """Display the effective configuration with secrets masked."""
        values = dump_settings(self.app_settings)
        config_text = f"{self.symbols.get('info', 'ℹ️')} Current effective configuration values:\n\n"
        config_text += yaml.safe_dump(values, sort_keys=False)
        config_text += f"\n  TIMESTAMP (current view): {datetime.datetime.now().strftime('%Y-%m-%d-%H%M%S')}\n"
        log_message(
            "Displaying current configuration:",
            "info",
            self.logger,
            self.app_settings,
        )
        self.output("\n" + config_text)

    def view_status(self) -> None:
        state = self.state
        self.output("\nSession status:")
        for label, done in (
            ("Environment ready", state.environment_ready),
            ("Main compiled", state.main_compiled),
            ("Test compiled", state.test_compiled),
            ("Main deployed", state.main_deployed),
            ("Test deployed", state.test_deployed),
            ("Tests run", state.tests_run),
        ):
            mark = self.symbols.get("success", "✅") if done else "-"
            self.output(f"  {mark} {label}")
        self.output(
            f"  Filters: codeunit={state.last_codeunit_filter} function={state.last_function_filter}"
        )

    def _prompt_filters(self) -> Tuple[str, str]:
        codeunit = self.input(
            f"Codeunit filter [{self.state.last_codeunit_filter}]: "
        ).strip()
        function = self.input(
            f"Function filter [{self.state.last_function_filter}]: "
        ).strip()
        return (
            codeunit or self.state.last_codeunit_filter,
            function or self.state.last_function_filter,
        )

    # --- loop --------------------------------------------------------------

    def menu_items(self) -> List[Tuple[str, str, Callable[[], object]]]:
        return [
            ("1", "Initialize environment", self.ensure_environment),
            ("2", "Compile Main app", lambda: self.compile(PackageRole.MAIN)),
            ("3", "Compile Test app", lambda: self.compile(PackageRole.TEST)),
            ("4", "Deploy Main app", lambda: self.deploy(PackageRole.MAIN)),
            ("5", "Deploy Test app", lambda: self.deploy(PackageRole.TEST)),
            ("6", "Run tests", self.run_tests),
            ("7", "Run tests with filters", lambda: self.run_tests(*self._prompt_filters())),
            ("8", "View results", self.view),
            ("9", "View failed tests only", lambda: self.view(failed_only=True)),
            ("10", "Run full cycle", self.run_all),
            ("11", "View configuration", self.view_configuration),
            ("12", "Show session status", self.view_status),
        ]

    def run(self) -> SessionState:
        """Show the menu until the user exits; returns the final state."""
        items = self.menu_items()
        actions = {key: (label, action) for key, label, action in items}
        while True:
            self.output("\nBC TDD Harness:")
            for key, label, _ in items:
                self.output(f"{key}. {label}")
            self.output("0. Exit")
            try:
                choice = self.input(f"Enter your choice (0-{len(items)}): ").strip()
            except EOFError:
                choice = "0"

            if choice in ("0", "q", "quit", "exit"):
                break
            if choice not in actions:
                self.output("Invalid choice.")
                continue

            label, action = actions[choice]
            if not invoke_safely(
                label,
                action,
                app_settings=self.app_settings,
                current_logger=self.logger,
            ):
                self.output(
                    f"{self.symbols.get('error', '❌')} {label} failed. See the log above."
                )
            else:
                self.output(
                    f"{self.symbols.get('success', '✅')} {label} done."
                )
        return self.state
