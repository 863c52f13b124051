# settings/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for harness configuration.

This module defines the structured settings for the TDD harness, including
defaults, type annotations, and descriptions. Every section carries a usable
default so that each command can run with no configuration file at all.
"""

from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by config file/env/cli) ---
CONTAINER_NAME_DEFAULT: str = "bctdd"
AUTH_DEFAULT: str = "UserPassword"
MEMORY_LIMIT_DEFAULT: str = "8G"
USERNAME_DEFAULT: str = "admin"
PASSWORD_DEFAULT: str = "P@ssw0rd"
ARTIFACT_TYPE_DEFAULT: str = "Sandbox"
ARTIFACT_COUNTRY_DEFAULT: str = "us"
ARTIFACT_SELECT_DEFAULT: str = "Latest"
POWERSHELL_COMMAND_DEFAULT: str = "powershell"
DOCKER_COMMAND_DEFAULT: str = "docker"
HELPER_MODULE_DEFAULT: str = "BcContainerHelper"

BUILD_DIR_DEFAULT: str = ".build"
IGNORE_MARKER_DEFAULT: str = ".gitignore"

PUBLISH_TIMEOUT_DEFAULT: int = 600
TEST_TIMEOUT_DEFAULT: int = 1800
RESULTS_FILE_DEFAULT: str = "TestResults.xml"

LOG_PREFIX_DEFAULT: str = "[BC-TDD]"
CONFIG_FILE_DEFAULT: str = "bc-tdd.yaml"

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
    "test": "🧪",
}

AuthMode = Literal["UserPassword", "NavUserPassword", "Windows", "AAD"]
PublishScope = Literal["tenant", "global"]
SyncMode = Literal["Add", "Clean", "Development", "ForceSync"]
ResultsFormat = Literal["xml", "json"]


class EnvironmentSettings(BaseSettings):
    """Container identity, credentials and provisioning options."""

    model_config = SettingsConfigDict(env_prefix="BC_", extra="ignore")

    container_name: str = Field(
        default=CONTAINER_NAME_DEFAULT,
        description="Name of the Business Central container.",
    )
    auth: AuthMode = Field(
        default=AUTH_DEFAULT, description="Container authentication mode."
    )
    memory_limit: str = Field(
        default=MEMORY_LIMIT_DEFAULT,
        description="Memory limit handed to the container (e.g. 8G).",
    )
    username: str = Field(
        default=USERNAME_DEFAULT, description="Container admin user name."
    )
    password: str = Field(
        default=PASSWORD_DEFAULT,
        description="Container admin password.",
    )
    artifact_url: Optional[str] = Field(
        default=None,
        description="Explicit artifact URL. When unset the latest matching artifact is looked up.",
    )
    artifact_type: str = Field(default=ARTIFACT_TYPE_DEFAULT)
    artifact_country: str = Field(default=ARTIFACT_COUNTRY_DEFAULT)
    artifact_select: str = Field(default=ARTIFACT_SELECT_DEFAULT)
    include_test_toolkit: bool = Field(default=True)
    include_performance_toolkit: bool = Field(default=False)
    assign_premium_plan: bool = Field(default=False)
    accept_eula: bool = Field(default=True)
    isolation: Optional[str] = Field(
        default=None, description="Docker isolation mode (process/hyperv)."
    )
    powershell_command: str = Field(
        default=POWERSHELL_COMMAND_DEFAULT,
        description="PowerShell executable used to drive the helper module.",
    )
    docker_command: str = Field(
        default=DOCKER_COMMAND_DEFAULT,
        description="Container runtime CLI.",
    )
    helper_module: str = Field(
        default=HELPER_MODULE_DEFAULT,
        description="Name of the PowerShell container helper module.",
    )


class PathSettings(BaseModel):
    """Source and build locations. Relative paths resolve against base_dir."""

    base_dir: str = Field(
        default=".", description="Directory relative paths resolve against."
    )
    main_source: str = Field(default="app")
    test_source: str = Field(default="test")
    build_dir: str = Field(default=BUILD_DIR_DEFAULT)
    ignore_marker: str = Field(default=IGNORE_MARKER_DEFAULT)

    def base_path(self) -> Path:
        return Path(self.base_dir).expanduser().resolve()

    def build_path(self) -> Path:
        build = Path(self.build_dir).expanduser()
        return build if build.is_absolute() else self.base_path() / build

    def source_path(self, role: str) -> Path:
        source = Path(
            self.main_source if role.lower() == "main" else self.test_source
        ).expanduser()
        return source if source.is_absolute() else self.base_path() / source

    def prepared_path(self, role: str) -> Path:
        return self.build_path() / role.lower()

    def output_path(self) -> Path:
        return self.build_path() / "output"

    def symbols_path(self) -> Path:
        return self.build_path() / ".alpackages"

    def results_path(self) -> Path:
        return self.build_path() / "results"


class CompilationSettings(BaseModel):
    """Flags for the AL compiler."""

    compiler_path: Optional[str] = Field(
        default=None,
        description="Path to alc. When unset, compilation runs inside the container.",
    )
    enable_code_cop: bool = False
    enable_ui_cop: bool = False
    enable_per_tenant_extension_cop: bool = False
    treat_warnings_as_errors: bool = False
    extra_args: List[str] = Field(default_factory=list)


class PublishingSettings(BaseModel):
    """How compiled apps are published into the container."""

    scope: PublishScope = "tenant"
    sync_mode: SyncMode = "ForceSync"
    skip_verification: bool = True
    install: bool = True
    timeout_seconds: int = Field(default=PUBLISH_TIMEOUT_DEFAULT, gt=0)


class TestingSettings(BaseModel):
    """Test execution and result output."""

    timeout_seconds: int = Field(default=TEST_TIMEOUT_DEFAULT, gt=0)
    fail_fast: bool = False
    codeunit_filter: str = "*"
    function_filter: str = "*"
    extension_id: Optional[str] = None
    company_name: Optional[str] = None
    results_format: ResultsFormat = "xml"
    results_file: str = Field(
        default=RESULTS_FILE_DEFAULT,
        description="Result file; relative names land in the build results directory.",
    )


class ScriptBehaviorSettings(BaseModel):
    """Logging verbosity and error strictness."""

    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_prefix: str = LOG_PREFIX_DEFAULT
    strict_errors: bool = Field(
        default=True,
        description="Halt the pipeline on the first failing stage.",
    )


class HarnessSettings(BaseSettings):
    """Main harness settings."""

    model_config = SettingsConfigDict(env_prefix="BC_TDD_", extra="ignore")

    environment: EnvironmentSettings = Field(
        default_factory=EnvironmentSettings
    )
    paths: PathSettings = Field(default_factory=PathSettings)
    compilation: CompilationSettings = Field(
        default_factory=CompilationSettings
    )
    publishing: PublishingSettings = Field(default_factory=PublishingSettings)
    testing: TestingSettings = Field(default_factory=TestingSettings)
    script_behavior: ScriptBehaviorSettings = Field(
        default_factory=ScriptBehaviorSettings
    )

    symbols: Dict[str, str] = Field(
        default_factory=lambda: dict(SYMBOLS_DEFAULT)
    )

    def results_file_path(self) -> Path:
        """Absolute location of the configured test result file."""
        results_file = Path(self.testing.results_file).expanduser()
        if (
            self.testing.results_format == "json"
            and results_file.suffix.lower() != ".json"
        ):
            results_file = results_file.with_suffix(".json")
        if results_file.is_absolute():
            return results_file
        return self.paths.results_path() / results_file
