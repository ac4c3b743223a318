"""
GraphSession 命令层测试，覆盖:
  1. 命令分发与用户提示 (AddTask / ToggleDependency / Search / Reset)
  2. 导入 / 导出命令，以及每种错误的可读提示
  3. (async) 文件导入导出：tmp_path 中的真实文件

运行方式:
    pytest tests/test_session.py -v
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

import config
from adapter import AddTask, Export, GraphSession, Import, Reset, Search, ToggleDependency
from schema import ErrorKind, GraphFormat

SCENARIO_CSV = 'id,text,dependencies\nt1,"Imported Task 1",\nt2,"Imported Task 2",t1\n'


def _session_with_events() -> tuple[GraphSession, list[tuple[str, dict]]]:
    events: list[tuple[str, dict]] = []
    session = GraphSession(on_event=lambda etype, data: events.append((etype, data)))
    return session, events


# ======================================================================
# Test 1: 命令分发
# ======================================================================


class TestDispatch:

    def test_add_task_with_dependency(self):
        session, events = _session_with_events()
        a = session.dispatch(AddTask(text="Task A")).data
        result = session.dispatch(AddTask(text="Task B", dependencies=[a.id]))

        assert result.ok
        assert session.graph.list_edges() == {(result.data.id, a.id)}
        assert [data["event"] for etype, data in events if etype == "graph_changed"] == [
            "task_added", "task_added",
        ]

    def test_empty_task_message(self):
        """空任务名必须提示 "Please enter a task name"，且图不变."""
        session, events = _session_with_events()
        result = session.dispatch(AddTask(text="   "))

        assert not result.ok
        assert result.error_kind == ErrorKind.EMPTY_TEXT
        assert result.message == "Please enter a task name"
        assert len(session.graph) == 0
        assert events[-1][0] == "command_failed"

    def test_toggle_dependency_and_cycle_message(self):
        session = GraphSession()
        a = session.dispatch(AddTask(text="A")).data
        b = session.dispatch(AddTask(text="B", dependencies=[a.id])).data

        result = session.dispatch(ToggleDependency(task_id=a.id, dependency_id=b.id))
        assert not result.ok
        assert result.error_kind == ErrorKind.CYCLE_DETECTED
        assert "cycle" in result.message

        result = session.dispatch(ToggleDependency(task_id=b.id, dependency_id=a.id))
        assert result.ok and result.data is False
        assert session.graph.list_edges() == set()

    def test_search_sets_visible_ids(self):
        session = GraphSession()
        apple = session.dispatch(AddTask(text="Apple")).data
        session.dispatch(AddTask(text="Banana"))

        result = session.dispatch(Search(query="App"))
        assert result.data == {apple.id}
        assert session.visible_ids() == {apple.id}

        session.dispatch(Search(query=""))
        assert len(session.visible_ids()) == 2

    def test_reset(self):
        session = GraphSession()
        session.dispatch(AddTask(text="Task to Delete"))
        session.dispatch(Search(query="Task"))

        result = session.dispatch(Reset())
        assert result.ok
        assert session.graph.list_tasks() == []
        assert session.graph.list_edges() == set()
        assert session.query == ""


# ======================================================================
# Test 2: 导入 / 导出命令
# ======================================================================


class TestImportExportCommands:

    def test_import_csv(self):
        session = GraphSession()
        result = session.dispatch(Import(text=SCENARIO_CSV, format=GraphFormat.CSV))
        assert result.ok
        assert len(result.data) == 2
        assert session.graph.list_edges() == {("t2", "t1")}

    def test_export_json(self):
        session = GraphSession()
        session.dispatch(AddTask(text="Task Export JSON"))
        result = session.dispatch(Export(format=GraphFormat.JSON))

        assert result.message == "dependency_graph.json"
        data = json.loads(result.data)
        assert len(data["tasks"]) == 1
        assert data["tasks"][0]["text"] == "Task Export JSON"

    @pytest.mark.parametrize(
        "text, kind",
        [
            ("id,text,dependencies\nt1,A,t9\n", ErrorKind.UNKNOWN_DEPENDENCY),
            ("id,text,dependencies\nt1,A,\nt1,B,\n", ErrorKind.DUPLICATE_ID),
            ("id,text,dependencies\nt1,A,t1\n", ErrorKind.CYCLE_DETECTED),
            ("id,text,dependencies\nt1, ,\n", ErrorKind.EMPTY_TEXT),
            ("not,a,graph\n", ErrorKind.MALFORMED_INPUT),
        ],
    )
    def test_import_errors_have_distinct_messages(self, text, kind):
        session = GraphSession()
        existing = session.dispatch(AddTask(text="Keep me")).data

        result = session.dispatch(Import(text=text, format=GraphFormat.CSV))

        assert not result.ok
        assert result.error_kind == kind
        assert result.message.startswith("Import failed: ")
        assert [t.id for t in session.graph.list_tasks()] == [existing.id], "导入失败不应修改现有图"

    def test_import_with_non_ascii_digit_id(self):
        session, events = _session_with_events()
        session.dispatch(AddTask(text="Old"))
        text = json.dumps({"tasks": [{"id": "task_\u00b2", "text": "Squared", "dependencies": []}]})

        result = session.dispatch(Import(text=text, format=GraphFormat.JSON))

        assert result.ok
        assert [t.id for t in session.graph.list_tasks()] == ["task_\u00b2"]
        assert session.graph.version == 2
        assert events[-1][1]["event"] == "graph_replaced"

    def test_import_messages_differ_per_kind(self):
        from adapter.session import IMPORT_ERROR_MESSAGES

        assert len(set(IMPORT_ERROR_MESSAGES.values())) == len(ErrorKind)


# ======================================================================
# Test 3: 文件导入 / 导出
# ======================================================================


class TestFiles:

    @pytest.mark.asyncio
    async def test_import_file_infers_format(self, tmp_path: Path):
        path = tmp_path / "import.csv"
        path.write_text(SCENARIO_CSV, encoding="utf-8")

        session = GraphSession()
        result = await session.import_file(path)

        assert result.ok
        assert [t.text for t in session.graph.list_tasks()] == ["Imported Task 1", "Imported Task 2"]

    @pytest.mark.asyncio
    async def test_import_missing_file(self, tmp_path: Path):
        session, events = _session_with_events()
        result = await session.import_file(tmp_path / "nope.json")

        assert not result.ok
        assert result.error_kind == ErrorKind.MALFORMED_INPUT
        assert events[-1][0] == "command_failed"

    @pytest.mark.asyncio
    async def test_import_rejects_oversized_file(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "big.json"
        path.write_text(json.dumps({"tasks": []}), encoding="utf-8")
        monkeypatch.setattr(config, "MAX_IMPORT_BYTES", 4)

        result = await GraphSession().import_file(path)
        assert result.error_kind == ErrorKind.MALFORMED_INPUT

    @pytest.mark.asyncio
    async def test_export_then_import_round_trip(self, tmp_path: Path):
        source = GraphSession()
        a = source.dispatch(AddTask(text='Design, "draft"')).data
        source.dispatch(AddTask(text="Build", dependencies=[a.id]))

        for fmt in GraphFormat:
            written = source.export_file(fmt, tmp_path)
            assert written.ok
            assert written.data.name == f"dependency_graph.{fmt.value}"

            target = GraphSession()
            result = await target.import_file(written.data)
            assert result.ok
            assert target.graph.list_tasks() == source.graph.list_tasks()
