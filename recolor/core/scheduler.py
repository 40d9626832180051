"""Cooperative scheduling for incremental runs, with latest-run-wins cancellation.

Single-threaded asyncio. run_incremental() processes one fixed-size slice,
then awaits one event-loop tick before the next, so a multi-megapixel image
never blocks the loop for the whole transform.

RunTracker holds the only shared mutable state: the generation of the latest
run. Beginning a run supersedes every earlier token; a superseded run stops
at its next yield point and returns None. Cancellation is normal control
flow, not an error.

PreviewPipeline is the caller-side stage on top: it recomputes when the
bitmap or rules change, after a trailing debounce.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

from recolor.core.engine import DEFAULT_CHUNK_PIXELS, IncrementalRun
from recolor.core.types import Bitmap, ColorRule

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 0.3  # seconds

ProgressFn = Callable[[int, int], None]


class RunToken:
    """Handle for one run. `current` turns False once a newer run begins."""

    def __init__(self, tracker: RunTracker, generation: int):
        self._tracker = tracker
        self.generation = generation

    @property
    def current(self) -> bool:
        return self._tracker.generation == self.generation


class RunTracker:
    """Issues run tokens. At most one token is current at a time."""

    def __init__(self) -> None:
        self.generation = 0

    def begin(self) -> RunToken:
        self.generation += 1
        return RunToken(self, self.generation)

    def invalidate(self) -> None:
        """Supersede the current run without starting a new one."""
        self.generation += 1


async def run_incremental(
    bitmap: Bitmap,
    rules: Iterable[ColorRule],
    *,
    token: RunToken | None = None,
    chunk_size: int = DEFAULT_CHUNK_PIXELS,
    on_progress: ProgressFn | None = None,
) -> Bitmap | None:
    """Run the engine slice by slice, yielding to the loop between slices.

    Returns the output bitmap, or None if `token` was superseded mid-run.
    """
    run = IncrementalRun(bitmap, rules, chunk_size=chunk_size)
    return await drive(run, token=token, on_progress=on_progress)


async def drive(
    run: IncrementalRun,
    *,
    token: RunToken | None = None,
    on_progress: ProgressFn | None = None,
) -> Bitmap | None:
    """Step an existing IncrementalRun to completion, one slice per loop tick."""
    for cursor in run:
        if on_progress is not None:
            on_progress(cursor, run.total)
        await asyncio.sleep(0)
        if token is not None and not token.current:
            logger.debug('Run %d superseded at %d/%d', token.generation, cursor, run.total)
            return None
    return run.result()


class PreviewPipeline:
    """Recompute the output whenever the bitmap or rules change.

    Each change supersedes any run in flight and restarts a trailing
    debounce timer; when the timer fires a new run starts. `on_result` only
    ever sees the output of the current run, together with the rules that
    produced it.
    """

    def __init__(
        self,
        on_result: Callable[[Bitmap, list[ColorRule]], None],
        *,
        debounce: float = DEFAULT_DEBOUNCE,
        chunk_size: int = DEFAULT_CHUNK_PIXELS,
        on_progress: ProgressFn | None = None,
    ):
        self.on_result = on_result
        self.debounce = debounce
        self.chunk_size = chunk_size
        self.on_progress = on_progress
        self.bitmap: Bitmap | None = None
        self.rules: list[ColorRule] = []
        self.latest: Bitmap | None = None
        self.completed_runs = 0
        self._tracker = RunTracker()
        self._timer: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._running: RunToken | None = None
        self.error: BaseException | None = None  # first failure of a spawned task

    @property
    def processing(self) -> bool:
        return self._running is not None and self._running.current

    def set_bitmap(self, bitmap: Bitmap | None) -> None:
        self.bitmap = bitmap
        if bitmap is None:
            # no image loaded: nothing to compute
            self.latest = None
        self.notify()

    def set_rules(self, rules: Iterable[ColorRule]) -> None:
        self.rules = list(rules)
        self.notify()

    def notify(self) -> None:
        """Change notification. Must be called from inside a running event loop."""
        self._tracker.invalidate()
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        if self.bitmap is None:
            self._timer = None
            return
        self._timer = self._spawn(self._debounced())

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None and self.error is None:
            self.error = task.exception()

    async def _debounced(self) -> None:
        await asyncio.sleep(self.debounce)
        token = self._tracker.begin()
        self._spawn(self._run(token, self.bitmap, list(self.rules)))

    async def _run(self, token: RunToken, bitmap: Bitmap, rules: list[ColorRule]) -> None:
        self._running = token
        logger.debug('Starting run %d', token.generation)
        try:
            result = await run_incremental(
                bitmap,
                rules,
                token=token,
                chunk_size=self.chunk_size,
                on_progress=self.on_progress,
            )
        finally:
            if self._running is token:
                self._running = None
        if result is None or not token.current:
            return
        self.latest = result
        self.completed_runs += 1
        logger.info('Run %d complete (%dx%d)', token.generation, result.width, result.height)
        self.on_result(result, rules)

    async def wait_idle(self) -> None:
        """Wait until no timer is pending and every spawned run has finished.

        Re-raises the first error a run failed with, such as a BitmapError.
        """
        while self._tasks:
            await asyncio.wait(set(self._tasks))
        if self.error is not None:
            raise self.error

    async def close(self) -> None:
        self._tracker.invalidate()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.wait(set(self._tasks))
