"""
Command models - Discrete user actions dispatched to a GraphSession.
命令模型：分发给 GraphSession 的离散用户操作。

Every button/keystroke of a front end maps to exactly one of these
commands; the front end never calls the graph directly.
前端的每个按钮或输入都对应其中一个命令；前端从不直接操作图。
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

from schema import ErrorKind, GraphFormat


class AddTask(BaseModel):
    text: str = ""                                              # 任务名（允许为空，由引擎报错）
    dependencies: list[str] = Field(default_factory=list)      # 勾选的前置任务 ID


class ToggleDependency(BaseModel):
    task_id: str        # 依赖方
    dependency_id: str  # 前置任务


class Search(BaseModel):
    query: str = ""


class Reset(BaseModel):
    pass


class Import(BaseModel):
    text: str
    format: GraphFormat


class Export(BaseModel):
    format: GraphFormat


Command = Union[AddTask, ToggleDependency, Search, Reset, Import, Export]


class CommandResult(BaseModel):
    """
    Discriminated outcome of one command.
    单个命令的执行结果（成功 / 失败可区分）。

    `data` depends on the command: the new Task for AddTask, the matching id
    set for Search, the task list for Import, the encoded text for Export.
    `data` 的内容取决于命令类型：AddTask 返回新任务，Search 返回匹配的 ID 集合，
    Import 返回任务列表，Export 返回编码后的文本。
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    ok: bool
    message: str = ""
    error_kind: ErrorKind | None = None
    data: Any = None
