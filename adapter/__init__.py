from .commands import AddTask, CommandResult, Export, Import, Reset, Search, ToggleDependency
from .session import GraphSession

__all__ = [
    "GraphSession",
    "CommandResult",
    "AddTask",
    "ToggleDependency",
    "Search",
    "Reset",
    "Import",
    "Export",
]
