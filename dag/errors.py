"""
Graph errors - Typed, recoverable input errors raised by the graph engine.
图错误：图引擎抛出的带类型、可恢复的输入错误。

Every error carries an ErrorKind so that the command layer can turn it into
a discriminated result and a human-readable message. None of them is fatal:
the graph is always left exactly as it was before the failing call.
每个错误都携带 ErrorKind，命令层据此生成可区分的结果与可读提示。
这些错误都不是致命错误：失败调用之后，图状态与调用前完全一致。
"""

from __future__ import annotations

from collections.abc import Iterable

from schema import ErrorKind


class GraphError(Exception):
    """
    Base class for graph engine errors.
    图引擎错误的基类。
    """
    kind: ErrorKind


class EmptyTextError(GraphError):
    kind = ErrorKind.EMPTY_TEXT

    def __init__(self, task_id: str | None = None):
        self.task_id = task_id
        where = f" (task '{task_id}')" if task_id else ""
        super().__init__(f"Task text must not be empty{where}")


class UnknownDependencyError(GraphError):
    kind = ErrorKind.UNKNOWN_DEPENDENCY

    def __init__(self, dependency_id: str, task_id: str | None = None):
        self.dependency_id = dependency_id
        self.task_id = task_id
        where = f" referenced by '{task_id}'" if task_id else ""
        super().__init__(f"Unknown dependency '{dependency_id}'{where}")


class UnknownTaskError(GraphError):
    kind = ErrorKind.UNKNOWN_TASK

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Unknown task '{task_id}'")


class DuplicateIdError(GraphError):
    kind = ErrorKind.DUPLICATE_ID

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Duplicate task id '{task_id}'")


class CycleDetectedError(GraphError):
    """
    Raised when an edge (or an imported document) would make a task its own
    transitive prerequisite.
    当新增边（或导入的文档）会使某任务成为其自身的传递前置任务时抛出。
    """
    kind = ErrorKind.CYCLE_DETECTED

    def __init__(self, task_ids: Iterable[str]):
        self.task_ids = list(task_ids)
        super().__init__(f"Dependency cycle detected involving: {', '.join(self.task_ids)}")


class MalformedInputError(GraphError):
    kind = ErrorKind.MALFORMED_INPUT

    def __init__(self, detail: str, line: int | None = None):
        self.detail = detail
        self.line = line
        prefix = f"line {line}: " if line is not None else ""
        super().__init__(f"Malformed input: {prefix}{detail}")
