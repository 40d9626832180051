"""Dry run: validate rules and count the pixels each would claim. Writes nothing.

Rules with a colour that is not six hex digits (optional #) are listed as
inactive. For active rules, `matched` is the number of pixels the rule would
claim under first-match-wins, so a rule shadowed by an earlier one shows 0.

Example:
    recolor check photo.png -r '#ff0000:#00ff00:30' -r 'nothex:#000000'
    recolor check photo.png -f rules.json --json
"""

from recolor.commands.apply import summarise
from recolor.core.engine import IncrementalRun
from recolor.core.types import Bitmap, Command, Report, RuleList

command = Command(
    name='check',
    help='Validate rules and count matched pixels per rule without writing output.',
)


@command.run
def run(bitmap: Bitmap, rules: RuleList, report: Report, args) -> None:
    run_state = IncrementalRun(bitmap, rules, chunk_size=args.chunk_size)
    result = run_state.finish()
    summarise(bitmap, result, run_state.counts, rules, report)
    report.add('active_rules', len(rules.active()))
    report.add('inactive_rules', len(rules) - len(rules.active()))
    report.add('needs_alpha', rules.needs_alpha())
