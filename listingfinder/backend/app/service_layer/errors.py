# app/service_layer/errors.py
from __future__ import annotations


class RunFailed(RuntimeError):
    """A workflow run could not produce a usable result. Mapped to HTTP 500."""


class SchemaViolation(RunFailed):
    """The assembled listings batch failed schema validation."""


class RunUndefined(RunFailed):
    """The planner ended the run without any output at all."""

    def __init__(self, message: str = "Agent result is undefined") -> None:
        super().__init__(message)
