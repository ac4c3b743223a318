"""
Dependency Graph Demo - Interactive CLI entry point.
依赖图 Demo：交互式命令行入口。

A thin rich console front end over GraphSession: every typed line becomes
one command, and the checklist table plus the dependency tree are redrawn
after each successful change.
基于 GraphSession 的轻量 Rich 控制台前端：每行输入对应一个命令，
每次成功变更后重绘任务清单表格与依赖树。
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import sys
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

import config
from adapter import AddTask, GraphSession, Reset, Search, ToggleDependency
from dag.graph import TaskGraph
from schema import GraphFormat

console = Console()

_HELP = (
    "  [cyan]add[/cyan] <text> [--deps id,id]   add a task (optionally depending on others)\n"
    "  [cyan]dep[/cyan] <task> <prereq>          toggle a dependency edge\n"
    "  [cyan]search[/cyan] [query]               filter the checklist (empty clears)\n"
    "  [cyan]list[/cyan] | [cyan]tree[/cyan] | [cyan]order[/cyan]           show checklist, dependency tree, build order\n"
    "  [cyan]reset[/cyan]                        clear every task\n"
    "  [cyan]import[/cyan] <path> [json|csv]     replace the graph from a file\n"
    "  [cyan]export[/cyan] <json|csv> [dir]      write dependency_graph.<fmt>\n"
    "  [cyan]quit[/cyan]"
)


# ======================================================================
# Rendering
# 渲染
# ======================================================================

def _build_checklist(session: GraphSession) -> Table:
    """
    Checklist table: one row per task, hidden when it does not match the search.
    任务清单表格：每个任务一行，不匹配搜索词的任务会被隐藏。
    """
    graph = session.graph
    visible = session.visible_ids()
    title = "Tasks" if not session.query else f"Tasks matching '{session.query}'"
    table = Table(title=title, border_style="cyan", show_lines=False)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Task", style="white")
    table.add_column("Depends on", style="dim")
    for task in graph.list_tasks():
        if task.id not in visible:
            continue
        deps = ", ".join(task.dependencies) if task.dependencies else "-"
        table.add_row(task.id, task.text, deps)
    return table


def _build_dependency_tree(graph: TaskGraph) -> Tree:
    """
    Rich Tree: every task that nothing depends on is a root, prerequisites are children.
    Rich 树：没有被任何任务依赖的任务作为根，前置任务作为子节点。
    """
    tasks = {t.id: t for t in graph.list_tasks()}
    required = {dep for _, dep in graph.list_edges()}
    tree = Tree(f"[bold]Dependency graph[/bold] [dim]{graph.summary()}[/dim]")

    shown: set[str] = set()

    def add_branch(parent: Tree, task_id: str) -> None:
        # 共享的前置任务只展开一次，之后以引用叶子显示
        if task_id in shown:
            parent.add(f"[dim]{task_id} (see above)[/dim]")
            return
        shown.add(task_id)
        task = tasks[task_id]
        branch = parent.add(f"[cyan]{task.id}[/cyan]: {task.text}")
        for dep in task.dependencies:
            add_branch(branch, dep)

    for task_id in tasks:
        if task_id not in required:
            add_branch(tree, task_id)
    return tree


def render(session: GraphSession) -> None:
    if not len(session.graph):
        console.print("[dim]No tasks yet. Add one with[/dim] [cyan]add <text>[/cyan]")
        return
    console.print(_build_checklist(session))
    console.print(_build_dependency_tree(session.graph))


def on_event(event: str, data: Any) -> None:
    """
    Handle events from the GraphSession and display them.
    处理来自 GraphSession 的事件并在控制台展示。
    """
    if event == "graph_changed":
        logging.getLogger(__name__).debug("Graph event %s -> %s", data["event"], data["graph"].summary())

    elif event == "command_failed":
        console.print(f"[red]{data['result'].message}[/red]")


# ======================================================================
# Command parsing
# 命令解析
# ======================================================================

async def handle_line(session: GraphSession, line: str) -> bool:
    """
    Execute one typed command line. Returns False when the user wants to quit.
    执行一行输入的命令；用户要求退出时返回 False。
    """
    try:
        argv = shlex.split(line)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        return True
    if not argv:
        return True

    cmd, args = argv[0].lower(), argv[1:]

    if cmd in ("quit", "exit", "q"):
        return False

    elif cmd == "help":
        console.print(Panel(_HELP, title="[bold blue]Commands[/bold blue]", border_style="blue"))
        return True

    elif cmd == "add":
        deps: list[str] = []
        if "--deps" in args:
            idx = args.index("--deps")
            deps = [d for d in (args[idx + 1] if idx + 1 < len(args) else "").split(",") if d]
            args = args[:idx] + args[idx + 2:]
        result = session.dispatch(AddTask(text=" ".join(args), dependencies=deps))

    elif cmd == "dep" and len(args) == 2:
        result = session.dispatch(ToggleDependency(task_id=args[0], dependency_id=args[1]))

    elif cmd == "search":
        result = session.dispatch(Search(query=" ".join(args)))

    elif cmd in ("list", "tree"):
        if not len(session.graph):
            render(session)
        elif cmd == "list":
            console.print(_build_checklist(session))
        else:
            console.print(_build_dependency_tree(session.graph))
        return True

    elif cmd == "order":
        order = session.graph.topological_sort()
        console.print(" -> ".join(order) if order else "[dim](empty)[/dim]")
        return True

    elif cmd == "reset":
        # 清空前需要确认
        answer = console.input("[yellow]Clear every task? Type 'Yes, Clear' to confirm: [/yellow]").strip()
        if answer.lower() not in ("yes, clear", "yes", "y"):
            console.print("[dim]Reset cancelled.[/dim]")
            return True
        result = session.dispatch(Reset())

    elif cmd == "import" and args:
        fmt = GraphFormat(args[1].lower()) if len(args) > 1 and args[1].lower() in ("json", "csv") else None
        result = await session.import_file(args[0], fmt)

    elif cmd == "export" and args and args[0].lower() in ("json", "csv"):
        directory = args[1] if len(args) > 1 else None
        result = session.export_file(GraphFormat(args[0].lower()), directory)

    else:
        console.print(f"[red]Unknown command:[/red] {line}  [dim](type 'help')[/dim]")
        return True

    if result.ok:
        console.print(f"[green]{result.message}[/green]")
        if cmd != "export":
            render(session)
    return True


# ======================================================================
# Main
# 主函数
# ======================================================================

def setup_logging(verbose: bool = False) -> None:
    """
    Configure logging with rich handler.
    使用 Rich 处理器配置日志系统。
    verbose=True 时启用 DEBUG 级别，否则使用 config.LOG_LEVEL。
    """
    level = logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
    )


async def run_interactive(session: GraphSession) -> None:
    """
    Interactive command loop.
    交互式命令循环。
    """
    console.print(Panel(
        "[bold]Task Dependency Graph[/bold] - build a task graph, link prerequisites,\n"
        "search it, and round-trip it through JSON / CSV.\n\n"
        f"{_HELP}",
        title="[bold blue]Welcome[/bold blue]",
        border_style="blue",
    ))

    while True:
        console.print()
        try:
            line = console.input("[bold blue]graph > [/bold blue]").strip()
        except (EOFError, KeyboardInterrupt):
            break  # Ctrl+C 或 EOF 退出

        try:
            if not await handle_line(session, line):
                console.print("[dim]Goodbye![/dim]")
                break
        except Exception as exc:
            console.print(f"\n[red]Error: {exc}[/red]")
            logging.exception("Unhandled error")


def main() -> None:
    """
    程序入口：解析命令行参数，决定运行模式。
    - 有位置参数：执行单条命令后退出（python main.py import graph.json）
    - 无位置参数：交互模式（python main.py）
    - -v / --verbose：启用调试日志
    """
    verbose = "--verbose" in sys.argv or "-v" in sys.argv
    setup_logging(verbose)

    session = GraphSession(on_event=on_event)
    args = [a for a in sys.argv[1:] if a not in ("-v", "--verbose")]
    if args:
        asyncio.run(handle_line(session, shlex.join(args)))
    else:
        asyncio.run(run_interactive(session))


if __name__ == "__main__":
    main()
