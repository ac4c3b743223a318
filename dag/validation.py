"""
Validation helpers shared by the graph store and the codecs.
图存储与编解码层共用的校验工具。

  - normalize_text():    trim a task label, reject empty ones
  - check_task_id():     reject ids that could not survive a CSV round trip
  - topological_order(): Kahn's algorithm over an id -> dependencies mapping
  - stage_tasks():       validate untrusted entries into a staging list

  - normalize_text():    去除任务名首尾空白，拒绝空名称
  - check_task_id():     拒绝无法安全往返 CSV 的 ID
  - topological_order(): 基于 id -> 依赖列表 映射的 Kahn 算法
  - stage_tasks():       将不可信的导入记录校验为暂存任务列表（先校验，后提交）
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Mapping, Sequence

import config
from dag.errors import (
    CycleDetectedError,
    DuplicateIdError,
    EmptyTextError,
    MalformedInputError,
    UnknownDependencyError,
)
from schema import Task, TaskEntry

logger = logging.getLogger(__name__)

_FORBIDDEN_ID_CHARS = frozenset({",", '"', "\n", "\r"})


def normalize_text(text: object, task_id: str | None = None) -> str:
    if not isinstance(text, str) or not text.strip():
        raise EmptyTextError(task_id)
    return text.strip()


def check_task_id(task_id: object) -> str:
    """
    Ids are opaque, but must never need CSV quoting, never contain the
    dependency delimiter and never carry surrounding whitespace (the CSV
    reader trims cells).
    ID 是不透明的，但不能包含需要 CSV 转义的字符、依赖分隔符或首尾空白（CSV 读取时会去除空白）。
    """
    if not isinstance(task_id, str) or not task_id:
        raise MalformedInputError(f"task id must be a non-empty string, got {task_id!r}")
    if task_id != task_id.strip():
        raise MalformedInputError(f"task id {task_id!r} has leading or trailing whitespace")
    bad = (_FORBIDDEN_ID_CHARS | {config.CSV_DEPENDENCY_DELIMITER}) & set(task_id)
    if bad:
        raise MalformedInputError(f"task id {task_id!r} contains reserved characters {sorted(bad)}")
    return task_id


def topological_order(dependencies: Mapping[str, Sequence[str]]) -> tuple[list[str], list[str]]:
    """
    Kahn's algorithm: prerequisites come before their dependents.
    Kahn 算法：前置任务总是排在依赖它的任务之前。

    Returns (order, remaining). `remaining` is empty for an acyclic graph;
    otherwise it holds every id that sits on, or depends on, a cycle.
    返回 (order, remaining)。无环时 remaining 为空；
    否则 remaining 包含所有处于环上或（传递地）依赖环的 ID。
    Ties are broken by the mapping's insertion order.
    """
    in_degree: dict[str, int] = {tid: 0 for tid in dependencies}
    dependents: dict[str, list[str]] = {tid: [] for tid in dependencies}
    for tid, deps in dependencies.items():
        for dep in deps:
            if dep not in dependents:
                continue  # 悬空引用由调用方单独校验
            in_degree[tid] += 1
            dependents[dep].append(tid)

    # 入度为 0 的任务（没有前置依赖）先入队
    queue = deque(tid for tid, deg in in_degree.items() if deg == 0)
    order: list[str] = []
    while queue:
        tid = queue.popleft()
        order.append(tid)
        for child in dependents.get(tid, []):
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)

    placed = set(order)
    remaining = [tid for tid in dependencies if tid not in placed]
    return order, remaining


def _trace_cycle(dependencies: Mapping[str, Sequence[str]], remaining: list[str]) -> list[str]:
    """
    Walk prerequisites inside `remaining` until an id repeats; the repeated
    stretch is one concrete cycle.
    在 remaining 内沿前置依赖行走，直到某个 ID 重复出现，重复的那一段即为一个具体的环。
    """
    pending = set(remaining)
    path: list[str] = []
    seen: dict[str, int] = {}
    current = remaining[0]
    while current not in seen:
        seen[current] = len(path)
        path.append(current)
        # Every id left over by Kahn has at least one prerequisite that was also left over.
        current = next(dep for dep in dependencies[current] if dep in pending)
    return path[seen[current]:]


def find_cycle(dependencies: Mapping[str, Sequence[str]]) -> list[str]:
    """Return the ids of one dependency cycle, or [] when the graph is acyclic."""
    _, remaining = topological_order(dependencies)
    if not remaining:
        return []
    return _trace_cycle(dependencies, remaining)


def stage_tasks(entries: Iterable[TaskEntry | Task]) -> list[Task]:
    """
    Validate untrusted task entries into a fresh list of Tasks.
    将不可信的任务记录校验为全新的 Task 列表（暂存结构）。

    Checks, in order:
      1. well-formed ids and non-empty text
      2. unique ids
      3. every dependency resolves to a task of the same document
      4. the dependency relation is acyclic (self-edges included)

    校验顺序：
      1. ID 格式合法、任务名非空
      2. ID 唯一
      3. 所有依赖都指向同一文档中的任务
      4. 依赖关系无环（包括自依赖）

    Nothing outside the returned list is touched, so a failure simply
    discards the staging data.
    除返回值外不修改任何状态，失败时暂存数据直接丢弃。
    """
    staged: dict[str, Task] = {}
    for entry in entries:
        task_id = check_task_id(entry.id)
        text = normalize_text(entry.text, task_id)
        if task_id in staged:
            raise DuplicateIdError(task_id)
        deps = [check_task_id(dep) for dep in entry.dependencies]
        staged[task_id] = Task(id=task_id, text=text, dependencies=list(dict.fromkeys(deps)))

    for task in staged.values():
        for dep in task.dependencies:
            if dep not in staged:
                raise UnknownDependencyError(dep, task.id)

    cycle = find_cycle({tid: t.dependencies for tid, t in staged.items()})
    if cycle:
        raise CycleDetectedError(cycle)

    logger.debug("[Validation] Staged %d tasks", len(staged))
    return list(staged.values())
