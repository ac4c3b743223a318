"""
TaskGraph - In-memory store for tasks and their dependency edges.
TaskGraph：任务及其依赖边的内存存储。

The TaskGraph holds:
  - tasks:     insertion-ordered dict of Task (id -> Task)
  - version:   counter bumped after every successful mutation
  - observers: callbacks notified after every successful mutation

TaskGraph 包含：
  - tasks:     按插入顺序排列的 Task 字典（id -> Task）
  - version:   每次成功变更后递增的版本号
  - observers: 每次成功变更后被通知的回调列表

Invariants enforced at every observable point:
  - no dangling edges (every dependency id exists)
  - no cycles, no self-dependency
  - non-empty, trimmed task text
  - generated ids are never reused, not even after a reset

在任意可观察时刻都成立的不变量：
  - 无悬空边（所有依赖 ID 都存在）
  - 无环、无自依赖
  - 任务名非空且已去除首尾空白
  - 生成的 ID 永不复用，即使在重置之后

Key operations:
  - add_task():           create a task with optional prerequisites
  - toggle_dependency():  add or remove one edge (cycle-checked)
  - would_create_cycle(): reachability check used before every edge insertion
  - replace_all():        atomic replace used by import
  - remove_all_tasks():   atomic reset

核心操作：
  - add_task():           创建任务（可附带前置依赖）
  - toggle_dependency():  添加或移除一条边（带环检测）
  - would_create_cycle(): 每次插入边之前执行的可达性检查
  - replace_all():        导入时使用的原子替换
  - remove_all_tasks():   原子重置
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable

import config
from dag.errors import CycleDetectedError, UnknownDependencyError, UnknownTaskError
from dag.validation import normalize_text, stage_tasks, topological_order
from schema import Edge, Task, TaskEntry

logger = logging.getLogger(__name__)

Observer = Callable[[str, "TaskGraph"], None]


class TaskGraph:
    """
    Directed acyclic graph of tasks; the single owned source of truth.
    任务有向无环图；唯一的、被显式持有的状态来源。

    Edges point from the dependent task to its prerequisite, and are stored
    as membership in the dependent's `dependencies` list.
    边从依赖方指向前置任务，以「前置任务 ID 出现在依赖方的 dependencies 中」的形式存储。
    """

    def __init__(
        self,
        on_change: Observer | None = None,
        id_prefix: str | None = None,
    ):
        """
        Args:
            on_change: Optional callback(event, graph) fired after each
                       successful mutation.
            id_prefix: Prefix for generated ids (defaults to config.TASK_ID_PREFIX).
            on_change: 可选回调 callback(事件名, 图)，每次成功变更后触发。
            id_prefix: 生成 ID 的前缀（默认取 config.TASK_ID_PREFIX）。
        """
        self._tasks: dict[str, Task] = {}
        self._id_prefix = id_prefix or config.TASK_ID_PREFIX
        self._next_id = 1   # 只增不减，保证 ID 永不复用
        self._version = 0
        self._observers: list[Observer] = []
        if on_change is not None:
            self._observers.append(on_change)

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    # ------------------------------------------------------------------
    # Queries
    # 查询方法
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise UnknownTaskError(task_id)
        return task.model_copy(deep=True)

    def list_tasks(self) -> list[Task]:
        """
        Return copies of all tasks in insertion order.
        按插入顺序返回所有任务的副本，调用方修改副本不会影响存储。
        """
        return [t.model_copy(deep=True) for t in self._tasks.values()]

    def list_edges(self) -> set[Edge]:
        """
        Flatten every dependency list into (dependent, prerequisite) pairs.
        将所有依赖列表展开为 (依赖方, 前置任务) 二元组集合。
        """
        return {(t.id, dep) for t in self._tasks.values() for dep in t.dependencies}

    def filter_by_text(self, query: str) -> set[str]:
        """
        Case-insensitive substring match on task text; an empty query matches all.
        对任务名做大小写不敏感的子串匹配；空查询匹配全部任务。
        """
        if not query:
            return set(self._tasks)
        needle = query.casefold()
        return {tid for tid, t in self._tasks.items() if needle in t.text.casefold()}

    def get_prerequisites(self, task_id: str) -> list[str]:
        """
        Return all ids `task_id` transitively depends on, via BFS.
        通过 BFS 返回 `task_id` 传递依赖的所有任务 ID。
        """
        self._require(task_id)
        return self._reachable(task_id, lambda tid: self._tasks[tid].dependencies)

    def get_dependents(self, task_id: str) -> list[str]:
        """
        Return all ids that transitively depend on `task_id`, via BFS.
        通过 BFS 返回所有（传递地）依赖 `task_id` 的任务 ID。
        """
        self._require(task_id)
        reverse: dict[str, list[str]] = {tid: [] for tid in self._tasks}
        for t in self._tasks.values():
            for dep in t.dependencies:
                reverse[dep].append(t.id)
        return self._reachable(task_id, reverse.__getitem__)

    def would_create_cycle(self, from_id: str, to_id: str) -> bool:
        """
        True if adding the edge from_id -> to_id would close a cycle.
        若新增边 from_id -> to_id 会形成环则返回 True。

        The edge closes a cycle exactly when `from_id` is already reachable
        from `to_id` through existing dependency edges (or the two are equal).
        当 `from_id` 已经可以从 `to_id` 沿现有依赖边到达（或两者相同）时，新增该边即成环。
        """
        self._require(from_id)
        self._require(to_id)
        if from_id == to_id:
            return True
        return from_id in self._reachable(to_id, lambda tid: self._tasks[tid].dependencies)

    def topological_sort(self) -> list[str]:
        """
        Kahn's algorithm - ids ordered so that prerequisites come first.
        Kahn 算法：返回前置任务在前的 ID 顺序。
        """
        order, remaining = topological_order({tid: t.dependencies for tid, t in self._tasks.items()})
        if remaining:
            # Unreachable while the invariants hold.
            logger.warning("[Graph] Cycle detected! Topological sort incomplete: %s", remaining)
        return order

    def summary(self) -> str:
        """
        One-line summary for logging, e.g. Graph[3 tasks, 2 edges, v5].
        生成单行摘要，用于日志输出。
        """
        edges = sum(len(t.dependencies) for t in self._tasks.values())
        return f"Graph[{len(self._tasks)} tasks, {edges} edges, v{self._version}]"

    # ------------------------------------------------------------------
    # Mutations
    # 变更方法（失败时不修改任何状态）
    # ------------------------------------------------------------------

    def add_task(self, text: str, dependencies: Iterable[str] | None = None) -> Task:
        """
        Create a task with a freshly generated id.
        使用新生成的 ID 创建任务。

        A new task cannot close a cycle: nothing can reference an id that did
        not exist before this call.
        新任务不可能成环：此前不存在的 ID 不可能被任何任务引用。

        Raises:
            EmptyTextError: text is empty after trimming.
            UnknownDependencyError: a dependency id is not in the graph.
        """
        clean = normalize_text(text)
        deps = list(dict.fromkeys(dependencies or ()))
        for dep in deps:
            if dep not in self._tasks:
                logger.warning("[Graph] Cannot add task '%s': unknown dependency '%s'", clean[:40], dep)
                raise UnknownDependencyError(dep)

        task = Task(id=self._generate_id(), text=clean, dependencies=deps)
        self._tasks[task.id] = task
        logger.info("[Graph] Task added: %s '%s' deps=%s", task.id, clean[:60], deps)
        self._commit("task_added")
        return task.model_copy(deep=True)

    def add_dependency(self, task_id: str, dependency_id: str) -> None:
        """
        Add the edge task_id -> dependency_id. Existing edges are a no-op.
        新增边 task_id -> dependency_id；边已存在时不做任何事。
        """
        task = self._require(task_id)
        if dependency_id not in self._tasks:
            raise UnknownDependencyError(dependency_id, task_id)
        if dependency_id in task.dependencies:
            logger.debug("[Graph] Edge %s -> %s already exists, skipping", task_id, dependency_id)
            return
        if self.would_create_cycle(task_id, dependency_id):
            logger.warning("[Graph] Rejected edge %s -> %s: would create a cycle", task_id, dependency_id)
            path = [task_id, *self._path_between(dependency_id, task_id)[:-1]]
            raise CycleDetectedError(path)

        self._tasks[task_id] = task.model_copy(update={"dependencies": [*task.dependencies, dependency_id]})
        logger.info("[Graph] Edge added: %s -> %s", task_id, dependency_id)
        self._commit("dependency_added")

    def remove_dependency(self, task_id: str, dependency_id: str) -> None:
        task = self._require(task_id)
        if dependency_id not in task.dependencies:
            logger.debug("[Graph] Edge %s -> %s not present, skipping", task_id, dependency_id)
            return
        remaining = [d for d in task.dependencies if d != dependency_id]
        self._tasks[task_id] = task.model_copy(update={"dependencies": remaining})
        logger.info("[Graph] Edge removed: %s -> %s", task_id, dependency_id)
        self._commit("dependency_removed")

    def toggle_dependency(self, task_id: str, dependency_id: str) -> bool:
        """
        Flip the edge task_id -> dependency_id. Returns True if the edge exists afterwards.
        翻转边 task_id -> dependency_id 的存在状态；返回操作后该边是否存在。
        """
        if dependency_id in self._require(task_id).dependencies:
            self.remove_dependency(task_id, dependency_id)
            return False
        self.add_dependency(task_id, dependency_id)
        return True

    def remove_all_tasks(self) -> None:
        """
        Clear the whole graph in one step. The id counter is kept, so ids
        handed out before the reset are never generated again.
        一步清空整个图。ID 计数器保留，重置前发出的 ID 不会再次生成。
        """
        count = len(self._tasks)
        self._tasks = {}
        logger.info("[Graph] Reset: %d tasks removed", count)
        self._commit("graph_reset")

    def replace_all(self, tasks: Iterable[Task | TaskEntry]) -> None:
        """
        Validate `tasks` into staging and, only if valid, install them atomically.
        先将 `tasks` 校验到暂存结构，全部合法后再原子替换整个图。

        Raises the staging validator's errors and leaves the graph untouched.
        校验失败时抛出相应错误，图保持不变。
        """
        staged = stage_tasks(tasks)
        next_id = self._counter_after(t.id for t in staged)
        self._tasks = {t.id: t for t in staged}
        self._next_id = next_id
        logger.info("[Graph] Replaced graph: %s", self.summary())
        self._commit("graph_replaced")

    # ------------------------------------------------------------------
    # Observers
    # 观察者
    # ------------------------------------------------------------------

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """
        Register callback(event, graph); returns a function that unsubscribes it.
        注册回调 callback(事件名, 图)；返回用于取消订阅的函数。
        """
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _commit(self, event: str) -> None:
        self._version += 1
        for callback in list(self._observers):
            try:
                callback(event, self)
            except Exception:
                # 渲染异常不能回滚或中断已完成的变更
                logger.exception("[Graph] Observer failed on event '%s'", event)

    # ------------------------------------------------------------------
    # Internals
    # 内部辅助方法
    # ------------------------------------------------------------------

    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise UnknownTaskError(task_id)
        return task

    @staticmethod
    def _reachable(start: str, neighbours: Callable[[str], Iterable[str]]) -> list[str]:
        visited: set[str] = set()
        order: list[str] = []
        queue: deque[str] = deque(neighbours(start))
        while queue:
            tid = queue.popleft()
            if tid in visited:
                continue
            visited.add(tid)
            order.append(tid)
            queue.extend(neighbours(tid))
        return order

    def _path_between(self, start: str, goal: str) -> list[str]:
        """Shortest prerequisite path start -> ... -> goal (both inclusive), for error reports."""
        parents: dict[str, str | None] = {start: None}
        queue: deque[str] = deque([start])
        while queue:
            tid = queue.popleft()
            if tid == goal:
                break
            for dep in self._tasks[tid].dependencies:
                if dep not in parents:
                    parents[dep] = tid
                    queue.append(dep)
        path: list[str] = []
        node: str | None = goal
        while node is not None:
            path.append(node)
            node = parents.get(node)
        return path[::-1]

    def _generate_id(self) -> str:
        while True:
            candidate = f"{self._id_prefix}{self._next_id}"
            self._next_id += 1
            if candidate not in self._tasks:
                return candidate

    def _counter_after(self, task_ids: Iterable[str]) -> int:
        """Smallest counter value past every `<prefix><n>` id in `task_ids` (ASCII digits only)."""
        next_id = self._next_id
        for tid in task_ids:
            suffix = tid[len(self._id_prefix):] if tid.startswith(self._id_prefix) else ""
            if suffix.isascii() and suffix.isdecimal():
                next_id = max(next_id, int(suffix) + 1)
        return next_id
