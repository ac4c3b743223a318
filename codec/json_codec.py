"""
JSON codec - {"tasks": [{"id", "text", "dependencies"}, ...]}.
JSON 编解码：{"tasks": [{"id", "text", "dependencies"}, ...]}。

Decoding never trusts the document: structure is checked with pydantic,
graph rules (unique ids, resolvable references, no cycles) by the shared
staging validator. Nothing is committed here.
解码时不信任输入文档：结构由 pydantic 校验，图规则（ID 唯一、引用可解析、无环）
由共用的暂存校验器检查。本模块不提交任何状态。
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable

from pydantic import ValidationError

import config
from dag.errors import MalformedInputError
from dag.validation import stage_tasks
from schema import GraphDocument, ImportDocument, Task

logger = logging.getLogger(__name__)


def encode_json(tasks: Iterable[Task], indent: int | None = None) -> str:
    """
    Serialize tasks in the given order; dependency lists keep their stored order.
    按给定顺序序列化任务；依赖列表保持存储顺序，保证往返结果可复现。
    """
    document = GraphDocument(tasks=list(tasks))
    return json.dumps(
        document.model_dump(),
        indent=config.JSON_INDENT if indent is None else indent,
        ensure_ascii=False,
    )


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "document"
    return f"{location}: {first['msg']}"


def decode_json(text: str) -> list[Task]:
    """
    Parse and validate a JSON document into a staging list of tasks.
    解析并校验 JSON 文档，返回暂存任务列表。

    Raises:
        MalformedInputError: invalid JSON or missing/mistyped keys.
        EmptyTextError / DuplicateIdError / UnknownDependencyError / CycleDetectedError
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedInputError(f"invalid JSON: {exc.msg}", line=exc.lineno) from exc

    if not isinstance(raw, dict):
        raise MalformedInputError("top-level value must be an object with a 'tasks' list")

    try:
        document = ImportDocument.model_validate(raw)
    except ValidationError as exc:
        raise MalformedInputError(_describe(exc)) from exc

    tasks = stage_tasks(document.tasks)
    logger.debug("[Codec] Decoded %d tasks from JSON", len(tasks))
    return tasks
