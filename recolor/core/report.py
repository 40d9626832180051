"""Report builder: text and JSON output for recolor results."""

import json

from recolor.core.types import Report


def _rule_line(rule: dict) -> str:
    target = 'transparent' if rule['makeTransparent'] else rule['to']
    line = f'  [{rule["index"]}] {rule["from"]} → {target}  tol={rule["tolerance"]:g}'
    if not rule['valid']:
        return line + '  (inactive: invalid colour)'
    if 'matched' in rule:
        line += f'  matched={rule["matched"]}'
    return line


def format_text(report: Report) -> str:
    """Format report as human-readable text."""
    lines = []
    dim = f'{report.image_width}×{report.image_height}'
    lines.append(f'recolor {report.command}: {report.image_path} ({dim})')

    if report.rules:
        lines.append('')
        lines.append('rules:')
        for rule in report.rules:
            lines.append(_rule_line(rule))

    if report.results:
        lines.append('')
        for key, value in report.results.items():
            lines.append(f'  {key}: {value}')

    if report.output_path:
        lines.append('')
        lines.append(f'wrote {report.output_path}')
    return '\n'.join(lines)


def format_json(report: Report) -> str:
    """Format report as JSON."""
    obj = {
        'command': report.command,
        'image': report.image_path,
        'dimensions': {'width': report.image_width, 'height': report.image_height},
        'rules': report.rules,
        'results': report.results,
    }
    if report.output_path:
        obj['output'] = report.output_path
    return json.dumps(obj, indent=2)
