# common/results.py
# -*- coding: utf-8 -*-
"""
Uniform result record returned by every workflow stage.
"""

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, Field


class OperationResult(BaseModel):
    """
    Outcome of a stage.

    Success and failure share this shape so callers can chain stages without
    inspecting types. Stage specific payload goes into `data`.
    """

    success: bool
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)

    @classmethod
    def ok(cls, message: str, **data: Any) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, **data: Any) -> "OperationResult":
        return cls(success=False, message=message, data=data)

    def __bool__(self) -> bool:
        return self.success
