# workflow/models.py
# -*- coding: utf-8 -*-
"""
Pydantic models shared by the workflow stages.
"""

import re
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field


class PackageRole(str, Enum):
    """Which of the two apps a stage operates on."""

    MAIN = "Main"
    TEST = "Test"

    @classmethod
    def parse(cls, value: Any) -> "PackageRole":
        if isinstance(value, cls):
            return value
        for role in cls:
            if str(value).strip().lower() == role.value.lower():
                return role
        raise ValueError(
            f"Unknown package type '{value}'. Expected one of: Main, Test."
        )

    @property
    def key(self) -> str:
        return self.value.lower()


class ContainerDescriptor(BaseModel):
    """Identity and service endpoints of a provisioned container."""

    model_config = ConfigDict(frozen=True)

    name: str
    address: str
    auth: str

    @computed_field  # type: ignore[misc]
    @property
    def web_client_url(self) -> str:
        return f"http://{self.address}/BC/"

    @computed_field  # type: ignore[misc]
    @property
    def soap_url(self) -> str:
        return f"http://{self.address}:7047/BC/WS"

    @computed_field  # type: ignore[misc]
    @property
    def odata_url(self) -> str:
        return f"http://{self.address}:7048/BC/ODataV4"

    @computed_field  # type: ignore[misc]
    @property
    def dev_url(self) -> str:
        return f"http://{self.address}:7049/BC/dev"


class AppDependency(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: Optional[str] = None
    publisher: Optional[str] = None
    version: Optional[str] = None


class AppManifest(BaseModel):
    """The subset of app.json the harness relies on."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: Optional[str] = None
    publisher: Optional[str] = None
    version: Optional[str] = None
    dependencies: List[AppDependency] = Field(default_factory=list)

    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("publisher", "name", "version")

    def missing_fields(self) -> List[str]:
        return [
            field
            for field in self.REQUIRED_FIELDS
            if not (getattr(self, field) or "").strip()
        ]

    def app_file_name(self) -> str:
        """File name the AL compiler gives this app."""
        return f"{self.publisher}_{self.name}_{self.version}.app"


class AppIdentity(BaseModel):
    """Identity of a compiled .app package."""

    model_config = ConfigDict(frozen=True)

    name: str
    publisher: str
    version: str
    app_id: Optional[str] = None

    def matches(self, name: Optional[str], publisher: Optional[str]) -> bool:
        """Same app regardless of version."""
        return (name or "").lower() == self.name.lower() and (
            publisher or ""
        ).lower() == self.publisher.lower()

    def __str__(self) -> str:
        return f"{self.name} by {self.publisher} {self.version}"


class InstalledApp(BaseModel):
    """An app as reported by the container helper."""

    model_config = ConfigDict(extra="ignore")

    name: str
    publisher: str
    version: str
    app_id: Optional[str] = None
    is_installed: bool = False
    is_published: bool = True
    dependencies: List[Any] = Field(default_factory=list)

    @property
    def identity(self) -> AppIdentity:
        return AppIdentity(
            name=self.name,
            publisher=self.publisher,
            version=self.version,
            app_id=self.app_id,
        )

    def depends_on(self, target: AppIdentity) -> bool:
        """
        True when one of the declared dependencies names `target`.

        The helper reports dependencies either as strings such as
        ``"Main App by Contoso 1.0.0.0"`` or as objects with name/publisher
        fields; both are accepted. Name and publisher must match in full.
        """
        for dependency in self.dependencies:
            if isinstance(dependency, dict):
                dep_name = dependency.get("Name") or dependency.get("name")
                dep_publisher = dependency.get("Publisher") or dependency.get(
                    "publisher"
                )
                if target.matches(dep_name, dep_publisher):
                    return True
                continue
            text = str(dependency).strip()
            pattern = (
                rf"^{re.escape(target.name)} by {re.escape(target.publisher)}"
                r"(\s+\d+(\.\d+)*)?$"
            )
            if re.match(pattern, text, re.IGNORECASE):
                return True
        return False

    @classmethod
    def from_helper(cls, raw: Dict[str, Any]) -> "InstalledApp":
        """Build from a Get-BcContainerAppInfo JSON object."""
        dependencies = raw.get("Dependencies") or []
        if not isinstance(dependencies, list):
            dependencies = [dependencies]
        return cls(
            name=raw.get("Name", ""),
            publisher=raw.get("Publisher", ""),
            version=str(raw.get("Version", "")),
            app_id=raw.get("AppId") or raw.get("Id"),
            is_installed=bool(raw.get("IsInstalled", False)),
            is_published=bool(raw.get("IsPublished", True)),
            dependencies=dependencies,
        )


class TestOutcome(str, Enum):
    PASSED = "Pass"
    FAILED = "Fail"
    SKIPPED = "Skip"


class TestCaseResult(BaseModel):
    codeunit: str
    name: str
    outcome: TestOutcome
    duration_seconds: float = 0.0
    message: Optional[str] = None
    stack_trace: Optional[str] = None


class TestRunSummary(BaseModel):
    tests: List[TestCaseResult] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.tests)

    @property
    def passed(self) -> int:
        return sum(1 for t in self.tests if t.outcome == TestOutcome.PASSED)

    @property
    def failed(self) -> int:
        return sum(1 for t in self.tests if t.outcome == TestOutcome.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for t in self.tests if t.outcome == TestOutcome.SKIPPED)

    @property
    def all_passed(self) -> bool:
        return self.failed == 0

    def counts(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
        }
