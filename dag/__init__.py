"""
DAG module - Core engine for the task dependency graph.
DAG 模块：任务依赖图的核心引擎。

Components:
  - graph.py:      TaskGraph store and graph queries
  - validation.py: Shared validation and staging helpers
  - errors.py:     Typed, recoverable input errors

模块组成：
  - graph.py:      TaskGraph 存储与图查询（可达性、拓扑排序等）
  - validation.py: 共用校验与暂存工具（唯一性、引用完整性、无环）
  - errors.py:     带类型的可恢复输入错误
"""

from dag.errors import (                  # 错误类型
    CycleDetectedError,
    DuplicateIdError,
    EmptyTextError,
    GraphError,
    MalformedInputError,
    UnknownDependencyError,
    UnknownTaskError,
)
from dag.graph import TaskGraph           # 任务依赖图存储

__all__ = [
    "TaskGraph",
    "GraphError",
    "EmptyTextError",
    "UnknownDependencyError",
    "UnknownTaskError",
    "DuplicateIdError",
    "CycleDetectedError",
    "MalformedInputError",
]
