# common/orchestrator.py
# -*- coding: utf-8 -*-
"""
Centralized orchestrator for managing and executing sequences of tasks.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from .results import OperationResult


class Orchestrator:
    """A centralized orchestrator to run a series of defined tasks."""

    def __init__(
        self,
        app_settings: Any,
        orchestrator_logger: Optional[logging.Logger] = None,
    ):
        """
        Initializes the Orchestrator.

        Args:
            app_settings: The harness settings object.
            orchestrator_logger: An optional logger instance.
        """
        self.app_settings = app_settings
        self.logger = orchestrator_logger or logging.getLogger(__name__)
        self.tasks: List[Dict[str, Any]] = []
        # Shared context for tasks to pass state between each other
        self.context: Dict[str, Any] = {}

    def add_task(
        self,
        name: str,
        func: Callable[..., OperationResult],
        args: Optional[List[Any]] = None,
        kwargs: Optional[Dict[str, Any]] = None,
        fatal: bool = True,
    ):
        """
        Adds a task to the execution list.

        Args:
            name: A human-readable name for the task.
            func: The function to execute for this task. It receives the
                shared context as the ``context`` keyword argument and must
                return an OperationResult.
            args: A list of positional arguments to pass to the function.
            kwargs: A dictionary of keyword arguments to pass to the function.
            fatal: If True, a failure in this task halts the orchestration.
        """
        self.tasks.append({
            "name": name,
            "func": func,
            "args": args or [],
            "kwargs": kwargs or {},
            "fatal": fatal,
        })
        self.logger.debug(f"Task '{name}' added to the queue.")

    def run(self) -> OperationResult:
        """
        Executes all added tasks in sequence.

        A task fails when it returns an unsuccessful OperationResult or
        raises. A fatal failure stops the run; the returned result then names
        the failed stage in ``data["failed_stage"]``.

        Returns:
            An OperationResult summarising the run. ``data["results"]`` maps
            each executed task name to its result.
        """
        self.logger.info("Orchestration started.")
        results: Dict[str, OperationResult] = {}
        non_fatal_failures: List[str] = []

        for i, task in enumerate(self.tasks):
            task_name = task["name"]
            self.logger.info(
                f"--- Stage {i + 1}/{len(self.tasks)}: Running task '{task_name}' ---"
            )

            try:
                kwargs = dict(task["kwargs"])
                kwargs["context"] = self.context
                result = task["func"](*task["args"], **kwargs)
            except Exception as e:
                self.logger.critical(
                    f"🔥 Task '{task_name}' failed: {e}", exc_info=True
                )
                result = OperationResult.fail(
                    f"Task '{task_name}' raised: {e}"
                )

            if not isinstance(result, OperationResult):
                result = OperationResult.ok(
                    f"Task '{task_name}' completed.", value=result
                )

            results[task_name] = result
            self.context[f"{task_name}_result"] = result

            if result.success:
                self.logger.info(
                    f"✅ Task '{task_name}' completed successfully."
                )
                continue

            self.logger.error(f"Task '{task_name}' failed: {result.message}")
            if task.get("fatal", True):
                self.logger.error(
                    "A fatal error occurred. Halting orchestration."
                )
                return OperationResult.fail(
                    f"Stage '{task_name}' failed: {result.message}",
                    failed_stage=task_name,
                    results=results,
                )
            self.logger.warning(
                f"Task '{task_name}' was non-fatal. Continuing orchestration."
            )
            non_fatal_failures.append(task_name)

        self.logger.info("✨ Orchestration finished.")
        return OperationResult.ok(
            "All stages completed.",
            results=results,
            non_fatal_failures=non_fatal_failures,
        )
