"""
CSV codec - header `id,text,dependencies`, one row per task.
CSV 编解码：表头 `id,text,dependencies`，每个任务一行。

`text` follows standard minimal quoting (quoted when it holds a comma, a
quote or a line break; inner quotes doubled). `dependencies` is a single
field of ids joined by config.CSV_DEPENDENCY_DELIMITER.
`text` 使用标准的最小引号规则（含逗号、引号或换行时加引号，内部引号加倍转义）。
`dependencies` 为单个字段，由 config.CSV_DEPENDENCY_DELIMITER 连接多个 ID。
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterable

import config
from dag.errors import MalformedInputError
from dag.validation import stage_tasks
from schema import Task, TaskEntry

logger = logging.getLogger(__name__)

HEADER = ("id", "text", "dependencies")


def encode_csv(tasks: Iterable[Task]) -> str:
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(HEADER)
    for task in tasks:
        writer.writerow([task.id, task.text, config.CSV_DEPENDENCY_DELIMITER.join(task.dependencies)])
    return buffer.getvalue()


def _column_positions(header: list[str]) -> dict[str, int]:
    """
    Map each required column to its position; extra columns are ignored.
    返回每个必需列的位置；多余的列会被忽略。
    """
    names = [h.strip().lower() for h in header]
    missing = [col for col in HEADER if col not in names]
    if missing:
        raise MalformedInputError(f"missing required column(s): {', '.join(missing)}", line=1)
    return {col: names.index(col) for col in HEADER}


def _split_dependencies(field: str) -> list[str]:
    return [dep.strip() for dep in field.split(config.CSV_DEPENDENCY_DELIMITER) if dep.strip()]


def decode_csv(text: str) -> list[Task]:
    """
    Parse and validate a CSV document into a staging list of tasks.
    解析并校验 CSV 文档，返回暂存任务列表。

    Quoted fields may contain commas and line breaks. Blank lines are skipped;
    rows whose field count differs from the header are rejected.
    带引号的字段可以包含逗号和换行。空行被跳过；字段数与表头不一致的行会被拒绝。
    """
    if text.startswith("\ufeff"):
        text = text[1:]  # 去掉 Excel 导出时常见的 BOM

    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    entries: list[TaskEntry] = []
    try:
        header = next(reader, None)
        if not header:
            raise MalformedInputError("missing header row 'id,text,dependencies'", line=1)
        columns = _column_positions(header)

        for row in reader:
            if not any(cell.strip() for cell in row):
                continue
            if len(row) != len(header):
                raise MalformedInputError(
                    f"expected {len(header)} fields, got {len(row)}", line=reader.line_num
                )
            entries.append(TaskEntry(
                id=row[columns["id"]].strip(),
                text=row[columns["text"]],
                dependencies=_split_dependencies(row[columns["dependencies"]]),
            ))
    except csv.Error as exc:
        raise MalformedInputError(str(exc), line=reader.line_num) from exc

    tasks = stage_tasks(entries)
    logger.debug("[Codec] Decoded %d tasks from CSV", len(tasks))
    return tasks
