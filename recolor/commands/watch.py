"""Re-apply rules whenever the rules file or the image changes on disk.

Polls the image and --rules-file modification times every --interval
seconds. Each change is fed to a preview pipeline which waits for edits to
settle ($RECOLOR_DEBOUNCE_MS, default 300 ms), then recomputes in slices
on the event loop. A run started before a newer change is discarded, so the
output file always reflects the latest image and rules.

A rules file that fails to parse keeps the previous rules. An image that
fails to decode clears the preview until it becomes readable again.

Stop with Ctrl-C, or pass --max-runs N to exit after N completed runs.

Example:
    recolor watch photo.png -f rules.json -o preview.png
"""

import asyncio
import os
import sys

from recolor.core.imageio import ImageLoadError, load_bitmap, save_bitmap
from recolor.core.rules_parser import RuleSyntaxError, build_rules
from recolor.core.scheduler import PreviewPipeline
from recolor.core.types import Bitmap, ColorRule, Command, Report, RuleList


def _configure(p) -> None:
    p.add_argument('-o', '--output', help='Output path (default: $RECOLOR_OUTPUT or color-changed-image.png)')
    p.add_argument('--interval', type=float, default=0.5, metavar='S', help='Poll interval in seconds (default 0.5)')
    p.add_argument('--max-runs', type=int, default=0, metavar='N', help='Exit after N completed runs (0 = forever)')


command = Command(
    name='watch',
    help='Re-apply rules whenever the rules file or image changes.',
    configure=_configure,
)


def _mtime(path: str | None) -> int | None:
    if not path:
        return None
    try:
        return os.stat(path).st_mtime_ns
    except FileNotFoundError:
        return None


class Watcher:
    """Feeds on-disk changes of the image and rules file into a PreviewPipeline."""

    def __init__(self, image_path: str, bitmap: Bitmap, rules: RuleList, report: Report, args):
        self.image_path = image_path
        self.bitmap = bitmap
        self.rules_file = args.rules_file
        self.rule_strings = args.rule
        self.output = args.output or args.settings.output
        self.tolerance = args.settings.tolerance
        self.rules = rules
        self.report = report
        self.pipeline = PreviewPipeline(
            self._write,
            debounce=args.settings.debounce,
            chunk_size=args.chunk_size,
        )
        self._stamps = (_mtime(image_path), _mtime(self.rules_file))

    def _write(self, result: Bitmap, rules: list[ColorRule]) -> None:
        path = save_bitmap(result, self.output, rules)
        self.report.output_path = path
        print(f'watch: wrote {path}', file=sys.stderr)

    def poll(self) -> None:
        stamps = (_mtime(self.image_path), _mtime(self.rules_file))
        if stamps == self._stamps:
            return
        image_changed = stamps[0] != self._stamps[0]
        rules_changed = stamps[1] != self._stamps[1]
        self._stamps = stamps

        if rules_changed and self.rules_file:
            try:
                self.rules = build_rules(self.rule_strings, self.rules_file, self.tolerance)
            except (OSError, RuleSyntaxError) as exc:
                print(f'watch: keeping previous rules: {exc}', file=sys.stderr)
            else:
                self.pipeline.set_rules(self.rules)

        if image_changed:
            try:
                bitmap = load_bitmap(self.image_path)
            except ImageLoadError as exc:
                print(f'watch: no image loaded: {exc}', file=sys.stderr)
                bitmap = None
            self.pipeline.set_bitmap(bitmap)

    def start(self) -> None:
        """Feed the initial image and rules to the pipeline."""
        self.pipeline.set_rules(self.rules)
        self.pipeline.set_bitmap(self.bitmap)

    async def loop(self, interval: float, max_runs: int) -> None:
        self.start()
        try:
            while not (max_runs and self.pipeline.completed_runs >= max_runs):
                if self.pipeline.error is not None:
                    raise self.pipeline.error
                self.poll()
                await asyncio.sleep(interval)
        finally:
            await self.pipeline.close()


@command.run
def run(bitmap: Bitmap, rules: RuleList, report: Report, args) -> None:
    watcher = Watcher(args.image, bitmap, rules, report, args)
    try:
        asyncio.run(watcher.loop(args.interval, args.max_runs))
    except KeyboardInterrupt:
        print('watch: stopped', file=sys.stderr)
    report.add('runs', watcher.pipeline.completed_runs)
