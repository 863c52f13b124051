# common/errors.py
# -*- coding: utf-8 -*-
"""
Exception hierarchy for the harness.

Stage functions catch these and turn them into failed OperationResults, so
they never reach the command line as tracebacks.
"""


class HarnessError(Exception):
    """Base class for all harness errors."""


class ConfigurationError(HarnessError):
    """Configuration is missing required keys or has invalid values."""


class ValidationError(HarnessError):
    """An input (manifest, container name, credential) failed validation."""


class ExtensionIdError(ValidationError):
    """The extension ID to test could not be resolved."""


class HelperInvocationError(HarnessError):
    """The PowerShell container helper failed or returned unusable output."""

    def __init__(self, message: str, returncode: int = 1, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class ResultFileError(HarnessError):
    """A test result file is missing or cannot be parsed."""
