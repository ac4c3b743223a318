"""
Pydantic data models for the Dependency Graph Demo.
Defines the core data structures shared by the graph store, the codecs and the adapter.
依赖图 Demo 的 Pydantic 数据模型。
定义了贯穿图存储、编解码层与适配层的核心数据结构。
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, StrictStr


# ======================================================================
# Graph models
# 图模型
# ======================================================================

Edge = tuple[str, str]  # (dependent_id, prerequisite_id) / (依赖方 ID, 前置任务 ID)


class Task(BaseModel):
    """
    A single node of the dependency graph.
    依赖图中的单个任务节点。

    `dependencies` holds the ids this task depends on. It is kept ordered
    and duplicate-free so that exports are reproducible; semantically it is a set.
    `dependencies` 保存本任务依赖的任务 ID，有序且无重复，保证导出结果可复现；语义上等同于集合。
    """
    id: str = Field(description="Unique ID, e.g. 'task_1'")                                   # 任务唯一 ID，生成后不可变
    text: str = Field(description="Non-empty label shown in the checklist and graph")         # 任务名称（已去除首尾空白）
    dependencies: list[str] = Field(default_factory=list, description="IDs of prerequisite tasks")  # 前置任务 ID 列表


class GraphDocument(BaseModel):
    """
    Wire shape of the JSON encoding: {"tasks": [...]}.
    JSON 编码的外层结构：{"tasks": [...]}。
    """
    tasks: list[Task] = Field(default_factory=list)


# --- Untrusted input shapes ---
# --- 不可信输入结构（仅用于导入时的结构校验）---

class TaskEntry(BaseModel):
    """
    One task entry as read from an import file, before graph validation.
    导入文件中的单条任务记录，尚未经过图级校验（唯一性、引用、无环）。
    """
    model_config = ConfigDict(extra="ignore")

    id: StrictStr
    text: StrictStr
    dependencies: list[StrictStr] = Field(default_factory=list)  # 缺省视为无依赖


class ImportDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tasks: list[TaskEntry]


# ======================================================================
# Errors
# 错误类型
# ======================================================================

class ErrorKind(str, Enum):
    """
    Discriminator for every recoverable input error the engine reports.
    引擎上报的所有可恢复输入错误的类别标识。
    """
    EMPTY_TEXT = "empty_text"                   # 任务名为空
    UNKNOWN_DEPENDENCY = "unknown_dependency"   # 引用了不存在的前置任务
    UNKNOWN_TASK = "unknown_task"               # 操作对象任务不存在
    DUPLICATE_ID = "duplicate_id"               # 导入文件中存在重复 ID
    CYCLE_DETECTED = "cycle_detected"           # 依赖关系出现环
    MALFORMED_INPUT = "malformed_input"         # 文件结构无法解析


# ======================================================================
# File formats
# 文件格式
# ======================================================================

class GraphFormat(str, Enum):
    """
    Textual encodings supported by import / export.
    导入 / 导出支持的文本编码格式。
    """
    JSON = "json"
    CSV = "csv"
