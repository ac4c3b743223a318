"""
Codec module - Textual encodings of the task graph.
编解码模块：任务图的文本编码。

Components:
  - json_codec.py: {"tasks": [...]} documents
  - csv_codec.py:  id,text,dependencies rows

模块组成：
  - json_codec.py: {"tasks": [...]} 形式的 JSON 文档
  - csv_codec.py:  id,text,dependencies 形式的 CSV 行

Both decoders validate fully into a staging list before anything touches a
TaskGraph; import_text() then commits with one atomic replace.
两个解码器都会先完整校验到暂存列表，再由 import_text() 一次性原子替换到 TaskGraph。
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from codec.csv_codec import decode_csv, encode_csv
from codec.json_codec import decode_json, encode_json
from dag.errors import MalformedInputError
from dag.graph import TaskGraph
from schema import GraphFormat, Task

logger = logging.getLogger(__name__)

# 导出文件的约定文件名
EXPORT_FILENAMES: dict[GraphFormat, str] = {
    GraphFormat.JSON: "dependency_graph.json",
    GraphFormat.CSV: "dependency_graph.csv",
}


def format_for_path(path: str | Path) -> GraphFormat:
    """Infer the format from a file suffix (.json / .csv)."""
    suffix = Path(path).suffix.lower().lstrip(".")
    try:
        return GraphFormat(suffix)
    except ValueError:
        raise MalformedInputError(f"unsupported file type '{Path(path).name}' (expected .json or .csv)") from None


def encode(tasks: Iterable[Task], fmt: GraphFormat) -> str:
    if fmt == GraphFormat.JSON:
        return encode_json(tasks)
    return encode_csv(tasks)


def decode(text: str, fmt: GraphFormat) -> list[Task]:
    if fmt == GraphFormat.JSON:
        return decode_json(text)
    return decode_csv(text)


def export_text(graph: TaskGraph, fmt: GraphFormat) -> str:
    text = encode(graph.list_tasks(), fmt)
    logger.info("[Codec] Exported %s as %s (%d chars)", graph.summary(), fmt.value, len(text))
    return text


def import_text(graph: TaskGraph, text: str, fmt: GraphFormat) -> list[Task]:
    """
    Decode `text` and atomically replace the graph's contents with it.
    解码 `text` 并原子替换图中的全部内容。

    On any error the graph is left exactly as it was.
    任何错误发生时，图都保持原样。
    """
    staged = decode(text, fmt)
    graph.replace_all(staged)
    logger.info("[Codec] Imported %d tasks from %s", len(staged), fmt.value)
    return graph.list_tasks()


__all__ = [
    "EXPORT_FILENAMES",
    "format_for_path",
    "encode",
    "decode",
    "encode_json",
    "decode_json",
    "encode_csv",
    "decode_csv",
    "export_text",
    "import_text",
]
