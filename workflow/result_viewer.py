# workflow/result_viewer.py
# -*- coding: utf-8 -*-
"""
Reads test result files and prints a summary.

Three formats are understood: XUnit XML as written by the container helper
(``assemblies/assembly/collection/test``), JUnit XML
(``testsuites/testsuite/testcase``) and the JSON form the harness itself
writes when ``testing.results_format`` is ``json``.
"""

import json
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from common.command_utils import get_symbols, log_message
from common.errors import ResultFileError
from common.results import OperationResult
from settings.config_models import HarnessSettings

from .models import TestCaseResult, TestOutcome, TestRunSummary

module_logger = logging.getLogger(__name__)

OUTCOME_ALIASES = {
    "pass": TestOutcome.PASSED,
    "passed": TestOutcome.PASSED,
    "success": TestOutcome.PASSED,
    "fail": TestOutcome.FAILED,
    "failed": TestOutcome.FAILED,
    "failure": TestOutcome.FAILED,
    "error": TestOutcome.FAILED,
    "skip": TestOutcome.SKIPPED,
    "skipped": TestOutcome.SKIPPED,
    "notrun": TestOutcome.SKIPPED,
}


def _outcome(value: Optional[str]) -> TestOutcome:
    return OUTCOME_ALIASES.get((value or "").strip().lower(), TestOutcome.FAILED)


def _seconds(value: Optional[str]) -> float:
    try:
        return float(value or 0)
    except ValueError:
        return 0.0


def _text(element: Optional[ET.Element], child: str) -> Optional[str]:
    if element is None:
        return None
    text = element.findtext(child)
    return text.strip() if text else None


def parse_xunit(root: ET.Element) -> TestRunSummary:
    tests: List[TestCaseResult] = []
    assemblies = [root] if root.tag == "assembly" else root.findall("assembly")
    for assembly in assemblies:
        for collection in assembly.iter("collection"):
            codeunit = collection.get("name") or assembly.get("name") or ""
            for test in collection.iter("test"):
                failure = test.find("failure")
                tests.append(
                    TestCaseResult(
                        codeunit=codeunit,
                        name=test.get("method") or test.get("name") or "",
                        outcome=_outcome(test.get("result")),
                        duration_seconds=_seconds(test.get("time")),
                        message=_text(failure, "message"),
                        stack_trace=_text(failure, "stack-trace"),
                    )
                )
    return TestRunSummary(tests=tests)


def parse_junit(root: ET.Element) -> TestRunSummary:
    tests: List[TestCaseResult] = []
    suites = [root] if root.tag == "testsuite" else root.iter("testsuite")
    for suite in suites:
        for case in suite.findall("testcase"):
            failure = case.find("failure")
            if failure is None:
                failure = case.find("error")
            if failure is not None:
                outcome = TestOutcome.FAILED
                message = failure.get("message") or (failure.text or "").strip()
                stack_trace = (failure.text or "").strip() or None
            elif case.find("skipped") is not None:
                outcome, message, stack_trace = TestOutcome.SKIPPED, None, None
            else:
                outcome, message, stack_trace = TestOutcome.PASSED, None, None
            tests.append(
                TestCaseResult(
                    codeunit=case.get("classname") or suite.get("name") or "",
                    name=case.get("name") or "",
                    outcome=outcome,
                    duration_seconds=_seconds(case.get("time")),
                    message=message or None,
                    stack_trace=stack_trace,
                )
            )
    return TestRunSummary(tests=tests)


def parse_xml_results(content: str) -> TestRunSummary:
    """
    Parse XUnit or JUnit XML.

    Raises:
        ResultFileError: The XML is malformed or of an unknown shape.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise ResultFileError(f"Result file is malformed XML: {e}") from e
    if root.tag in ("assemblies", "assembly"):
        return parse_xunit(root)
    if root.tag in ("testsuites", "testsuite"):
        return parse_junit(root)
    raise ResultFileError(
        f"Result file has an unrecognized root element <{root.tag}>."
    )


def parse_json_results(content: str) -> TestRunSummary:
    try:
        payload = json.loads(content)
    except json.JSONDecodeError as e:
        raise ResultFileError(f"Result file is malformed JSON: {e}") from e
    if isinstance(payload, list):
        payload = {"tests": payload}
    try:
        return TestRunSummary.model_validate(payload)
    except PydanticValidationError as e:
        raise ResultFileError(
            f"Result file does not contain test results: {e}"
        ) from e


def load_results(results_file: Path) -> TestRunSummary:
    """
    Read a result file in any supported format.

    Raises:
        ResultFileError: The file is missing, or it is malformed.
    """
    if not results_file.is_file():
        raise ResultFileError(f"Result file not found: {results_file}")
    try:
        content = results_file.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise ResultFileError(
            f"Result file is malformed (not UTF-8 text): {results_file}: {e}"
        ) from e
    except OSError as e:
        raise ResultFileError(
            f"Result file could not be read: {results_file}: {e}"
        ) from e
    if not content.strip():
        raise ResultFileError(f"Result file is empty: {results_file}")
    if results_file.suffix.lower() == ".json" or content.lstrip()[:1] in ("{", "["):
        return parse_json_results(content)
    return parse_xml_results(content)


def convert_results_to_json(xml_file: Path, json_file: Path) -> TestRunSummary:
    """Rewrite an XML result file as harness JSON."""
    summary = load_results(xml_file)
    json_file.parent.mkdir(parents=True, exist_ok=True)
    document: Dict[str, Any] = {
        "counts": summary.counts(),
        **summary.model_dump(mode="json"),
    }
    json_file.write_text(json.dumps(document, indent=2), encoding="utf-8")
    return summary


def format_summary(summary: TestRunSummary, failed_only: bool = False) -> List[str]:
    """Render the summary as printable lines."""
    lines = [
        f"Total: {summary.total}  Passed: {summary.passed}  "
        f"Failed: {summary.failed}  Skipped: {summary.skipped}"
    ]
    for test in summary.tests:
        if failed_only and test.outcome != TestOutcome.FAILED:
            continue
        marker = {
            TestOutcome.PASSED: "PASS",
            TestOutcome.FAILED: "FAIL",
            TestOutcome.SKIPPED: "SKIP",
        }[test.outcome]
        lines.append(
            f"  [{marker}] {test.codeunit} :: {test.name} ({test.duration_seconds:.2f}s)"
        )
        if test.outcome == TestOutcome.FAILED:
            if test.message:
                lines.append(f"         {test.message}")
            if test.stack_trace:
                lines.append(f"         at {test.stack_trace}")
    return lines


def view_results(
    app_settings: HarnessSettings,
    results_file: Optional[str] = None,
    failed_only: bool = False,
    current_logger: Optional[logging.Logger] = None,
    output_func: Callable[[str], None] = print,
    context: Optional[Dict[str, Any]] = None,
) -> OperationResult:
    """
    Print the counts and per-test detail of a result file.

    Returns:
        OperationResult: ``data["summary"]`` holds the TestRunSummary and
        ``data["counts"]`` its totals. A run with failing tests is still a
        successful view.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    if results_file:
        path = Path(results_file).expanduser()
        if not path.is_absolute():
            path = app_settings.paths.base_path() / path
    elif context and context.get("results_file"):
        path = Path(context["results_file"])
    else:
        path = app_settings.results_file_path()

    try:
        summary = load_results(path)
    except ResultFileError as e:
        log_message(
            f"{symbols.get('error', '❌')} {e}",
            "error",
            logger_to_use,
            app_settings,
        )
        return OperationResult.fail(str(e), results_file=path)

    for line in format_summary(summary, failed_only=failed_only):
        output_func(line)

    status = (
        symbols.get("success", "✅")
        if summary.all_passed
        else symbols.get("error", "❌")
    )
    log_message(
        f"{status} {summary.passed}/{summary.total} tests passed.",
        "info",
        logger_to_use,
        app_settings,
    )
    return OperationResult.ok(
        f"{summary.passed}/{summary.total} tests passed.",
        summary=summary,
        counts=summary.counts(),
        results_file=path,
    )
