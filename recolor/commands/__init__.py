"""Subcommands of the recolor CLI.

Each module defines `command = Command(...)` and documents itself in its
module docstring, which `recolor help <command>` prints. Adding a command
means adding its module to _MODULES.
"""

from types import ModuleType

from recolor.commands import apply, check, pick, watch
from recolor.core.types import Command

_MODULES: dict[str, ModuleType] = {module.command.name: module for module in (apply, check, pick, watch)}


def all_commands() -> dict[str, Command]:
    return {name: module.command for name, module in _MODULES.items()}


def get(name: str) -> Command:
    if name not in _MODULES:
        raise KeyError(f'Unknown command: {name}. Available: {", ".join(sorted(_MODULES))}')
    return _MODULES[name].command


def docs(name: str) -> str:
    """The command's module docstring, stripped."""
    return (_MODULES[name].__doc__ or '').strip()
