"""
Graph Session - Owns one TaskGraph and executes user commands against it.
图会话：持有一个 TaskGraph，并对其执行用户命令。

The session is the only place where engine errors become user-facing
messages, and the only place that touches the file system. The engine
itself stays synchronous; only the file read of an import is awaited, and
the decode/validate/commit that follows runs as one uninterrupted step.
会话是引擎错误转换为用户可读提示的唯一位置，也是唯一访问文件系统的位置。
引擎本身保持同步；导入时只有文件读取会 await，之后的解码、校验、提交作为一个不可中断的整体执行。
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import config
from adapter.commands import (
    AddTask,
    Command,
    CommandResult,
    Export,
    Import,
    Reset,
    Search,
    ToggleDependency,
)
from codec import EXPORT_FILENAMES, export_text, format_for_path, import_text
from dag.errors import GraphError, MalformedInputError
from dag.graph import TaskGraph
from schema import ErrorKind, GraphFormat

logger = logging.getLogger(__name__)

EventCallback = Callable[[str, Any], None]

# 交互操作失败时的提示
ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.EMPTY_TEXT: "Please enter a task name",
    ErrorKind.UNKNOWN_DEPENDENCY: "Selected dependency no longer exists",
    ErrorKind.UNKNOWN_TASK: "No task with that id",
    ErrorKind.DUPLICATE_ID: "Task id already in use",
    ErrorKind.CYCLE_DETECTED: "That dependency would create a cycle",
    ErrorKind.MALFORMED_INPUT: "Input could not be understood",
}

# 导入失败时的提示（每种错误一条，图保持不变）
IMPORT_ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.EMPTY_TEXT: "a task in the file has no name",
    ErrorKind.UNKNOWN_DEPENDENCY: "a task depends on an id that is not in the file",
    ErrorKind.UNKNOWN_TASK: "the file refers to an unknown task",
    ErrorKind.DUPLICATE_ID: "two tasks in the file share the same id",
    ErrorKind.CYCLE_DETECTED: "the dependencies in the file form a cycle",
    ErrorKind.MALFORMED_INPUT: "the file is not a valid task graph",
}


class GraphSession:
    """
    Command API in front of a TaskGraph.
    TaskGraph 前面的命令 API。

    Usage:
      1. session.dispatch(AddTask(text="Task A"))
      2. session.dispatch(ToggleDependency(task_id=..., dependency_id=...))
      3. await session.import_file("dependency_graph.json")
      4. session.export_file(GraphFormat.CSV)

    用法：
      1. session.dispatch(AddTask(text="Task A"))          添加任务
      2. session.dispatch(ToggleDependency(...))           切换依赖
      3. await session.import_file("dependency_graph.json") 从文件导入
      4. session.export_file(GraphFormat.CSV)              导出到文件
    """

    def __init__(self, graph: TaskGraph | None = None, on_event: EventCallback | None = None):
        """
        Args:
            graph:    Graph to drive; a fresh TaskGraph by default.
            on_event: Optional callback(event, data). Events:
                      "graph_changed" {"event", "graph"} and
                      "command_failed" {"command", "result"}.
            graph:    要驱动的图，默认新建一个 TaskGraph。
            on_event: 可选回调 callback(事件名, 数据)，用于事件驱动的 UI 刷新。
        """
        self.graph = graph if graph is not None else TaskGraph()
        self.query = ""  # 当前搜索词，渲染时用于隐藏不匹配的任务
        self._on_event = on_event
        self.graph.subscribe(self._on_graph_change)

    # ------------------------------------------------------------------
    # Command dispatch
    # 命令分发
    # ------------------------------------------------------------------

    def dispatch(self, command: Command) -> CommandResult:
        """
        Execute one command. Engine errors become a failed CommandResult;
        the graph is unchanged in that case.
        执行单个命令。引擎错误会被转换为失败的 CommandResult，此时图保持不变。
        """
        try:
            result = self._execute(command)
        except GraphError as exc:
            importing = isinstance(command, Import)
            logger.warning("[Session] %s failed: %s", type(command).__name__, exc)
            result = CommandResult(ok=False, message=self._message_for(exc, importing), error_kind=exc.kind)
            self._emit("command_failed", {"command": command, "result": result})
            return result
        logger.debug("[Session] %s ok: %s", type(command).__name__, result.message)
        return result

    def _execute(self, command: Command) -> CommandResult:
        if isinstance(command, AddTask):
            task = self.graph.add_task(command.text, command.dependencies)
            return CommandResult(ok=True, message=f"Added {task.id}: {task.text}", data=task)

        elif isinstance(command, ToggleDependency):
            linked = self.graph.toggle_dependency(command.task_id, command.dependency_id)
            verb = "now depends on" if linked else "no longer depends on"
            return CommandResult(
                ok=True,
                message=f"{command.task_id} {verb} {command.dependency_id}",
                data=linked,
            )

        elif isinstance(command, Search):
            self.query = command.query
            matches = self.graph.filter_by_text(command.query)
            return CommandResult(
                ok=True,
                message=f"{len(matches)} of {len(self.graph)} tasks match",
                data=matches,
            )

        elif isinstance(command, Reset):
            self.query = ""
            self.graph.remove_all_tasks()
            return CommandResult(ok=True, message="All tasks cleared")

        elif isinstance(command, Import):
            tasks = import_text(self.graph, command.text, command.format)
            return CommandResult(
                ok=True,
                message=f"Imported {len(tasks)} tasks from {command.format.value.upper()}",
                data=tasks,
            )

        elif isinstance(command, Export):
            text = export_text(self.graph, command.format)
            return CommandResult(ok=True, message=EXPORT_FILENAMES[command.format], data=text)

        raise TypeError(f"Unsupported command: {type(command).__name__}")

    def visible_ids(self) -> set[str]:
        """Ids matching the current search query (all ids when it is empty)."""
        return self.graph.filter_by_text(self.query)

    # ------------------------------------------------------------------
    # File import / export
    # 文件导入 / 导出
    # ------------------------------------------------------------------

    async def import_file(self, path: str | Path, fmt: GraphFormat | None = None) -> CommandResult:
        """
        Read an import file off the event loop, then decode and commit it in one step.
        在事件循环之外读取导入文件，随后一次性完成解码与提交。

        The format is inferred from the suffix unless `fmt` is given.
        未指定 `fmt` 时根据文件后缀推断格式。
        """
        path = Path(path)
        try:
            fmt = fmt if fmt is not None else format_for_path(path)
            text = await asyncio.to_thread(self._read_import_file, path)
        except GraphError as exc:
            logger.warning("[Session] Import of %s rejected: %s", path, exc)
            result = CommandResult(ok=False, message=self._message_for(exc, True), error_kind=exc.kind)
            self._emit("command_failed", {"command": None, "result": result})
            return result
        return self.dispatch(Import(text=text, format=fmt))

    def export_file(self, fmt: GraphFormat, directory: str | Path | None = None) -> CommandResult:
        """
        Export the graph to `<directory>/dependency_graph.<fmt>`.
        将图导出到 `<directory>/dependency_graph.<fmt>`。

        On success `data` is the written Path.
        成功时 `data` 为写入文件的路径。
        """
        result = self.dispatch(Export(format=fmt))
        if not result.ok:
            return result
        target_dir = Path(directory) if directory is not None else Path(config.EXPORT_DIR)
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / EXPORT_FILENAMES[fmt]
        target.write_text(result.data, encoding="utf-8")
        logger.info("[Session] Exported %s to %s", self.graph.summary(), target)
        return CommandResult(ok=True, message=f"Exported to {target}", data=target)

    @staticmethod
    def _read_import_file(path: Path) -> str:
        try:
            size = path.stat().st_size
            if size > config.MAX_IMPORT_BYTES:
                raise MalformedInputError(f"{path.name} is {size} bytes, limit is {config.MAX_IMPORT_BYTES}")
            # utf-8-sig 同时兼容带 BOM 的文件
            return path.read_text(encoding="utf-8-sig")
        except UnicodeDecodeError as exc:
            raise MalformedInputError(f"{path.name} is not UTF-8 text") from exc
        except OSError as exc:
            raise MalformedInputError(f"cannot read {path.name}: {exc.strerror or exc}") from exc

    # ------------------------------------------------------------------
    # Events & messages
    # 事件与提示
    # ------------------------------------------------------------------

    @staticmethod
    def _message_for(exc: GraphError, importing: bool) -> str:
        if importing:
            return f"Import failed: {IMPORT_ERROR_MESSAGES[exc.kind]} ({exc})"
        if exc.kind == ErrorKind.EMPTY_TEXT:
            return ERROR_MESSAGES[exc.kind]
        return f"{ERROR_MESSAGES[exc.kind]} ({exc})"

    def _on_graph_change(self, event: str, graph: TaskGraph) -> None:
        self._emit("graph_changed", {"event": event, "graph": graph})

    def _emit(self, event: str, data: Any) -> None:
        if self._on_event:
            self._on_event(event, data)
