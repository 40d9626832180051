"""Shared types for recolor: ColorRule, RuleList, Bitmap, Command, Report."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

from recolor.core.colour import RGB, is_valid_rule


@dataclass(frozen=True)
class ColorRule:
    """One source -> target (or source -> transparent) substitution."""

    source: str  # hex text, may be malformed
    target: str = ''  # ignored when make_transparent is set
    tolerance: float = 30.0  # max RGB distance, inclusive
    make_transparent: bool = False

    def is_valid(self) -> bool:
        return is_valid_rule(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            'from': self.source,
            'to': self.target,
            'tolerance': self.tolerance,
            'makeTransparent': self.make_transparent,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_tolerance: float = 30.0) -> ColorRule:
        return cls(
            source=data.get('from', ''),
            target=data.get('to', '') or '',
            tolerance=float(data.get('tolerance', default_tolerance)),
            make_transparent=bool(data.get('makeTransparent', False)),
        )


DEFAULT_RULE = ColorRule(source='#ff0000', target='#00ff00', tolerance=30.0)


class RuleList:
    """Ordered, caller-editable list of rules. Order is priority: first match wins.

    Never deduplicates or reorders. Invalid rules stay in the list (the user
    may still be typing them) and are only skipped by active().
    """

    def __init__(self, rules: list[ColorRule] | None = None):
        self._rules: list[ColorRule] = list(rules) if rules is not None else [DEFAULT_RULE]

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[ColorRule]:
        return iter(self._rules)

    def __getitem__(self, index: int) -> ColorRule:
        return self._rules[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RuleList):
            return NotImplemented
        return self._rules == other._rules

    def __repr__(self) -> str:
        return f'RuleList({self._rules!r})'

    def add(self, rule: ColorRule | None = None) -> None:
        self._rules.append(rule if rule is not None else DEFAULT_RULE)

    def remove(self, index: int) -> ColorRule:
        return self._rules.pop(index)

    def update(self, index: int, **fields: Any) -> ColorRule:
        """Replace the rule at `index` with a copy carrying the changed fields."""
        updated = replace(self._rules[index], **fields)
        self._rules[index] = updated
        return updated

    def reset(self) -> None:
        self._rules = [DEFAULT_RULE]

    def active(self) -> list[ColorRule]:
        return [r for r in self._rules if r.is_valid()]

    def needs_alpha(self) -> bool:
        """True if any active rule makes pixels transparent."""
        return any(r.make_transparent for r in self.active())


@dataclass(frozen=True)
class Bitmap:
    """A decoded raster: width, height and a row-major RGBA byte buffer."""

    width: int
    height: int
    pixels: bytes

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f'({x}, {y}) outside {self.width}x{self.height} bitmap')
        i = (y * self.width + x) * 4
        p = self.pixels
        return (p[i], p[i + 1], p[i + 2], p[i + 3])


class ColorPicker(Protocol):
    """Host capability: read the colour under a coordinate."""

    def pick_color_at(self, x: int, y: int) -> RGB: ...


class Command:
    """A self-registering CLI subcommand.

    Usage in a command module:

        command = Command(name='apply', help='Apply colour rules')

        @command.run
        def run(bitmap, rules, report, args):
            ...
    """

    def __init__(self, name: str, help: str = '', configure: Callable | None = None):
        self.name = name
        self.help = help
        self.configure = configure  # adds command-specific argparse options
        self._run_fn: Callable | None = None

    def run(self, fn: Callable) -> Callable:
        """Decorator to register the run function."""
        self._run_fn = fn
        return fn

    def execute(self, bitmap: Bitmap, rules: RuleList, report: Report, args: Any) -> None:
        if self._run_fn is None:
            raise RuntimeError(f'Command {self.name} has no run function')
        self._run_fn(bitmap, rules, report, args)


@dataclass
class Report:
    """Accumulates results from a command for text/JSON output."""

    image_path: str = ''
    image_width: int = 0
    image_height: int = 0
    command: str = ''
    output_path: str | None = None
    rules: list[dict[str, Any]] = field(default_factory=list)
    results: dict[str, Any] = field(default_factory=dict)

    def add(self, key: str, value: Any) -> None:
        self.results[key] = value

    def add_rule(self, index: int, rule: ColorRule, matched: int | None = None) -> None:
        entry = {'index': index, **rule.to_dict(), 'valid': rule.is_valid()}
        if matched is not None:
            entry['matched'] = matched
        self.rules.append(entry)
