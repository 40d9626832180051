"""Parse colour rules from CLI strings and JSON preset files.

CLI form:   FROM:TO[:TOLERANCE]     e.g.  #ff0000:#00ff00:30
            FROM:transparent[:TOL]  e.g.  ffffff:transparent:12

JSON form:  [{"from": "#ff0000", "to": "#00ff00", "tolerance": 30, "makeTransparent": false}, ...]

Colours are kept verbatim: a malformed hex colour is NOT a syntax error here.
It yields an invalid rule which the engine silently skips. Structural
problems (wrong field count, bad tolerance, bad JSON) raise RuleSyntaxError.
"""

import json
import math
from typing import Any

from recolor.core.types import ColorRule, RuleList

TRANSPARENT = 'transparent'


class RuleSyntaxError(ValueError):
    """A rule could not be parsed into fields."""


def _parse_tolerance(raw: Any, where: str) -> float:
    if isinstance(raw, bool):
        raise RuleSyntaxError(f'{where}: tolerance must be a number, got {raw!r}')
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise RuleSyntaxError(f'{where}: tolerance must be a number, got {raw!r}') from None
    if math.isnan(value) or value < 0:
        raise RuleSyntaxError(f'{where}: tolerance must be non-negative, got {raw!r}')
    return value


def parse_rule_string(text: str, default_tolerance: float = 30.0) -> ColorRule:
    """Parse 'FROM:TO[:TOLERANCE]'. TO may be 'transparent'."""
    parts = text.strip().split(':')
    if len(parts) not in (2, 3):
        raise RuleSyntaxError(f'{text!r}: expected FROM:TO[:TOLERANCE]')
    source, target = parts[0].strip(), parts[1].strip()
    tolerance = _parse_tolerance(parts[2].strip(), repr(text)) if len(parts) == 3 else default_tolerance
    if target.lower() == TRANSPARENT:
        return ColorRule(source=source, target='', tolerance=tolerance, make_transparent=True)
    return ColorRule(source=source, target=target, tolerance=tolerance)


def parse_rules_json(text: str, default_tolerance: float = 30.0) -> RuleList:
    """Parse a JSON array of rule objects into a RuleList."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RuleSyntaxError(f'Invalid rules JSON: {exc}') from exc
    if not isinstance(data, list):
        raise RuleSyntaxError('Rules JSON must be an array of rule objects')

    rules = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise RuleSyntaxError(f'Rule {i}: expected an object, got {type(item).__name__}')
        tolerance = _parse_tolerance(item.get('tolerance', default_tolerance), f'Rule {i}')
        flag = item.get('makeTransparent', False)
        if not isinstance(flag, bool):
            raise RuleSyntaxError(f'Rule {i}: makeTransparent must be true or false, got {flag!r}')
        rules.append(ColorRule.from_dict({**item, 'tolerance': tolerance}))
    return RuleList(rules)


def load_rules_file(path: str, default_tolerance: float = 30.0) -> RuleList:
    """Load a JSON rule preset from disk."""
    with open(path, encoding='utf-8') as f:
        text = f.read()
    return parse_rules_json(text, default_tolerance=default_tolerance)


def dump_rules(rules: RuleList) -> str:
    """Serialise rules to the JSON preset format."""
    return json.dumps([r.to_dict() for r in rules], indent=2)


def build_rules(
    rule_strings: list[str] | None = None,
    rules_file: str | None = None,
    default_tolerance: float = 30.0,
) -> RuleList:
    """Rules from a preset file first, then any CLI rule strings, in order."""
    rules = load_rules_file(rules_file, default_tolerance) if rules_file else RuleList([])
    for text in rule_strings or []:
        rules.add(parse_rule_string(text, default_tolerance))
    return rules
