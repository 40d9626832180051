"""Replace colours in an image and write the result.

Each rule is FROM:TO[:TOLERANCE] or FROM:transparent[:TOLERANCE]. Rules are
tried in the order given; the first whose source colour is within tolerance
(RGB Euclidean distance, inclusive) of a pixel wins. Rules with malformed
colours are reported as inactive and otherwise ignored.

When any active rule makes pixels transparent the output is written as PNG,
whatever extension was asked for, so the alpha channel survives.

--incremental processes the image in slices of --chunk-size pixels on an
asyncio loop, printing progress to stderr. The output is identical.

Example:
    recolor apply photo.png -o out.png -r '#ff0000:#00ff00:30'
    recolor apply logo.jpg -o logo.png -r 'ffffff:transparent:12' --json
    recolor apply big.png -f rules.json --incremental --chunk-size 50000
"""

import asyncio
import sys

from recolor.core.engine import IncrementalRun
from recolor.core.imageio import save_bitmap
from recolor.core.scheduler import drive
from recolor.core.types import Bitmap, Command, Report, RuleList


def _configure(p) -> None:
    p.add_argument('-o', '--output', help='Output path (default: $RECOLOR_OUTPUT or color-changed-image.png)')
    p.add_argument('--incremental', action='store_true', help='Process in slices on an event loop')


command = Command(
    name='apply',
    help='Replace colours in an image and write the result.',
    configure=_configure,
)


def _progress(cursor: int, total: int) -> None:
    print(f'\rapply: {cursor * 100 // total:3d}%', end='', file=sys.stderr, flush=True)


def summarise(source: Bitmap, result: Bitmap, counts: list[int], rules: RuleList, report: Report) -> None:
    """Record per-rule matches and changed/transparent/unchanged totals."""
    transparent = 0
    replaced = 0
    for rule, n in zip(rules, counts):
        report.add_rule(len(report.rules), rule, matched=n)
        if rule.is_valid():
            if rule.make_transparent:
                transparent += n
            else:
                replaced += n

    total = source.width * source.height
    report.add('pixels', total)
    report.add('replaced', replaced)
    report.add('transparent', transparent)
    report.add('unchanged', total - replaced - transparent)
    report.add('identical', result.pixels == source.pixels)


@command.run
def run(bitmap: Bitmap, rules: RuleList, report: Report, args) -> None:
    run_state = IncrementalRun(bitmap, rules, chunk_size=args.chunk_size)
    if args.incremental:
        result = asyncio.run(drive(run_state, on_progress=_progress))
        print(file=sys.stderr)
    else:
        result = run_state.finish()

    summarise(bitmap, result, run_state.counts, rules, report)
    report.output_path = save_bitmap(result, args.output or args.settings.output, rules)

