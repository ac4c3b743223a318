"""
编解码层测试，覆盖:
  1. JSON / CSV 往返一致性 (decode(encode(graph)) == graph)
  2. 导入场景 (典型的 JSON / CSV 文件)
  3. 每种导入错误类型，以及失败时图保持不变

运行方式:
    pytest tests/test_codec.py -v
"""

from __future__ import annotations

import json

import pytest

from codec import EXPORT_FILENAMES, decode, encode, format_for_path, import_text
from codec.csv_codec import decode_csv, encode_csv
from codec.json_codec import decode_json, encode_json
from dag.errors import (
    CycleDetectedError,
    DuplicateIdError,
    EmptyTextError,
    MalformedInputError,
    UnknownDependencyError,
)
from dag.graph import TaskGraph
from schema import GraphFormat, Task

SCENARIO_JSON = json.dumps({
    "tasks": [
        {"id": "t1", "text": "Imported Task 1", "dependencies": []},
        {"id": "t2", "text": "Imported Task 2", "dependencies": ["t1"]},
    ]
})
SCENARIO_CSV = 'id,text,dependencies\nt1,"Imported Task 1",\nt2,"Imported Task 2",t1\n'


def _build_tricky_graph() -> TaskGraph:
    """任务名包含逗号、引号、换行和非 ASCII 字符，依赖关系呈菱形."""
    graph = TaskGraph()
    a = graph.add_task('Design "v2" API, draft')
    b = graph.add_task("Implement\nhandlers")
    c = graph.add_task("Écrire la doc; relire", [a.id])
    graph.add_task("Ship it", [c.id, b.id, a.id])
    return graph


# ======================================================================
# Test 1: 往返一致性
# ======================================================================


class TestRoundTrip:

    @pytest.mark.parametrize("fmt", list(GraphFormat))
    def test_round_trip_preserves_graph(self, fmt):
        graph = _build_tricky_graph()
        tasks = graph.list_tasks()
        assert decode(encode(tasks, fmt), fmt) == tasks

    def test_csv_trimmed_ids_round_trip_through_both_formats(self):
        """CSV 读取时去除 ID 的首尾空白，结果在两种格式之间往返保持一致."""
        tasks = decode_csv("id,text,dependencies\n t1 ,A,\nt2,B, t1\n")
        assert [(t.id, t.dependencies) for t in tasks] == [("t1", []), ("t2", ["t1"])]
        for fmt in GraphFormat:
            assert decode(encode(tasks, fmt), fmt) == tasks

    def test_round_trip_of_empty_graph(self):
        assert decode_json(encode_json([])) == []
        assert decode_csv(encode_csv([])) == []

    def test_json_shape(self):
        graph = TaskGraph()
        a = graph.add_task("Task Export JSON")
        data = json.loads(encode_json(graph.list_tasks()))
        assert data == {"tasks": [{"id": a.id, "text": "Task Export JSON", "dependencies": []}]}

    def test_csv_quoting(self):
        tasks = [
            Task(id="t1", text="plain"),
            Task(id="t2", text='say "hi", then leave', dependencies=["t1"]),
            Task(id="t3", text="last", dependencies=["t1", "t2"]),
        ]
        assert encode_csv(tasks) == (
            "id,text,dependencies\n"
            "t1,plain,\n"
            't2,"say ""hi"", then leave",t1\n'
            "t3,last,t1;t2\n"
        )

    def test_export_filenames(self):
        assert EXPORT_FILENAMES[GraphFormat.JSON] == "dependency_graph.json"
        assert EXPORT_FILENAMES[GraphFormat.CSV] == "dependency_graph.csv"


# ======================================================================
# Test 2: 导入场景
# ======================================================================


class TestImportScenarios:

    def test_json_scenario(self):
        graph = TaskGraph()
        import_text(graph, SCENARIO_JSON, GraphFormat.JSON)
        assert len(graph.list_tasks()) == 2
        assert graph.list_edges() == {("t2", "t1")}

    def test_csv_scenario_matches_json(self):
        from_json = TaskGraph()
        from_csv = TaskGraph()
        import_text(from_json, SCENARIO_JSON, GraphFormat.JSON)
        import_text(from_csv, SCENARIO_CSV, GraphFormat.CSV)
        assert from_csv.list_tasks() == from_json.list_tasks()
        assert from_csv.list_edges() == from_json.list_edges()

    def test_import_replaces_existing_graph(self):
        graph = _build_tricky_graph()
        import_text(graph, SCENARIO_JSON, GraphFormat.JSON)
        assert [t.id for t in graph.list_tasks()] == ["t1", "t2"]

    def test_csv_multiline_field_bom_and_crlf(self):
        text = '\ufeffid,text,dependencies\r\nt1,"line one\r\nline two",\r\n\r\nt2,B, t1 ;;\r\n'
        tasks = decode_csv(text)
        assert tasks[0].text == "line one\r\nline two"
        assert tasks[1].dependencies == ["t1"]

    def test_csv_columns_in_any_order_and_extra_columns(self):
        text = "text,owner,dependencies,id\nFirst,ann,,a\nSecond,bob,a,b\n"
        tasks = decode_csv(text)
        assert [(t.id, t.text, t.dependencies) for t in tasks] == [
            ("a", "First", []),
            ("b", "Second", ["a"]),
        ]

    def test_json_dependencies_key_is_optional(self):
        tasks = decode_json('{"tasks": [{"id": "t1", "text": "Solo"}]}')
        assert tasks == [Task(id="t1", text="Solo", dependencies=[])]

    def test_format_for_path(self):
        assert format_for_path("graph.JSON") == GraphFormat.JSON
        assert format_for_path("dir/dependency_graph.csv") == GraphFormat.CSV
        with pytest.raises(MalformedInputError):
            format_for_path("graph.png")


# ======================================================================
# Test 3: 导入错误
# ======================================================================


class TestImportErrors:

    @pytest.mark.parametrize(
        "text, error",
        [
            ('{"tasks": [{"id": "t1", "text": "A", "dependencies": ["t9"]}]}', UnknownDependencyError),
            ('{"tasks": [{"id": "t1", "text": "A"}, {"id": "t1", "text": "B"}]}', DuplicateIdError),
            ('{"tasks": [{"id": "t1", "text": "A", "dependencies": ["t2"]},'
             ' {"id": "t2", "text": "B", "dependencies": ["t1"]}]}', CycleDetectedError),
            ('{"tasks": [{"id": "t1", "text": "A", "dependencies": ["t1"]}]}', CycleDetectedError),
            ('{"tasks": [{"id": "t1", "text": "   "}]}', EmptyTextError),
            ('{"tasks": [{"id": "t1", "text": "A"}', MalformedInputError),
            ('{"items": []}', MalformedInputError),
            ('{"tasks": {"id": "t1"}}', MalformedInputError),
            ('[{"id": "t1", "text": "A"}]', MalformedInputError),
            ('{"tasks": [{"id": 1, "text": "A"}]}', MalformedInputError),
            ('{"tasks": [{"text": "A"}]}', MalformedInputError),
            ('{"tasks": [{"id": "t1", "text": "A", "dependencies": "t2"}]}', MalformedInputError),
            ('{"tasks": [{"id": "a;b", "text": "A"}]}', MalformedInputError),
            ('{"tasks": [{"id": " t1", "text": "A"}]}', MalformedInputError),
            ('{"tasks": [{"id": "t1", "text": "A"},'
             ' {"id": "t2", "text": "B", "dependencies": ["t1 "]}]}', MalformedInputError),
        ],
    )
    def test_json_errors(self, text, error):
        with pytest.raises(error):
            decode_json(text)

    @pytest.mark.parametrize(
        "text, error",
        [
            ("id,text,dependencies\nt1,A,t9\n", UnknownDependencyError),
            ("id,text,dependencies\nt1,A,\nt1,B,\n", DuplicateIdError),
            ("id,text,dependencies\nt1,A,t2\nt2,B,t1\n", CycleDetectedError),
            ("id,text,dependencies\nt1,  ,\n", EmptyTextError),
            ("", MalformedInputError),
            ("id,text\nt1,A\n", MalformedInputError),
            ("id,text,dependencies\nt1,A\n", MalformedInputError),
            ("id,text,dependencies\nt1,A,,extra\n", MalformedInputError),
            ('id,text,dependencies\nt1,"unterminated,\n', MalformedInputError),
            ('id,text,dependencies\nt1,"A"B,\n', MalformedInputError),
        ],
    )
    def test_csv_errors(self, text, error):
        with pytest.raises(error):
            decode_csv(text)

    def test_unknown_dependency_never_mutates_store(self):
        graph = _build_tricky_graph()
        before = graph.list_tasks()
        version = graph.version
        bad = 'id,text,dependencies\nt1,"Imported Task 1",\nt2,"Imported Task 2",t3\n'

        with pytest.raises(UnknownDependencyError) as info:
            import_text(graph, bad, GraphFormat.CSV)

        assert info.value.dependency_id == "t3"
        assert graph.list_tasks() == before
        assert graph.version == version

    def test_cycle_error_names_the_cycle(self):
        text = json.dumps({"tasks": [
            {"id": "a", "text": "A", "dependencies": ["b"]},
            {"id": "b", "text": "B", "dependencies": ["c"]},
            {"id": "c", "text": "C", "dependencies": ["a"]},
            {"id": "d", "text": "D", "dependencies": ["a"]},
        ]})
        with pytest.raises(CycleDetectedError) as info:
            decode_json(text)
        assert sorted(info.value.task_ids) == ["a", "b", "c"]

    def test_malformed_csv_reports_line(self):
        with pytest.raises(MalformedInputError) as info:
            decode_csv("id,text,dependencies\nt1,A,\nt2,B\n")
        assert info.value.line == 3
