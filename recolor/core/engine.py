"""Colour substitution engine.

Each pixel is compared against the valid rules in list order; the first rule
whose source colour lies within its tolerance (inclusive, Euclidean RGB) wins:

  - make_transparent rule: alpha set to 0, RGB untouched
  - replacement rule:      RGB set to the target, alpha untouched

A pixel's outcome depends only on its own RGB and the static rule list, so
the buffer can be processed in any slicing. apply() does it in one call,
IncrementalRun walks fixed-size slices in increasing pixel order and is what
the scheduler drives between event-loop ticks.

Input buffers are never mutated; every run allocates its own output.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import numpy as np

from recolor.core.colour import parse_color
from recolor.core.types import Bitmap, ColorRule

logger = logging.getLogger(__name__)

# 10,000 pixels = 40,000 bytes per slice
DEFAULT_CHUNK_PIXELS = 10_000


class BitmapError(ValueError):
    """Bitmap dimensions and buffer length disagree."""


@dataclass(frozen=True)
class CompiledRule:
    position: int  # index in the caller's rule list
    source: np.ndarray  # int32 RGB
    target: tuple[int, int, int] | None
    tolerance: float
    make_transparent: bool


def compile_rules(rules: Iterable[ColorRule]) -> list[CompiledRule]:
    """Parse colours once and drop invalid rules, keeping list order."""
    compiled = []
    for position, rule in enumerate(rules):
        source = parse_color(rule.source)
        target = None if rule.make_transparent else parse_color(rule.target)
        if source is None or (not rule.make_transparent and target is None):
            logger.debug('Skipping invalid rule %d: %r', position, rule)
            continue
        compiled.append(
            CompiledRule(
                position=position,
                source=np.array(source, dtype=np.int32),
                target=target,
                tolerance=float(rule.tolerance),
                make_transparent=rule.make_transparent,
            )
        )
    return compiled


def _pixel_view(bitmap: Bitmap) -> np.ndarray:
    """Validate the bitmap and return a read-only (N, 4) uint8 view of its buffer."""
    w, h = bitmap.width, bitmap.height
    if not isinstance(w, int) or not isinstance(h, int) or w <= 0 or h <= 0:
        raise BitmapError(f'Bitmap dimensions must be positive integers, got {w!r}x{h!r}')
    expected = w * h * 4
    if len(bitmap.pixels) != expected:
        raise BitmapError(f'Buffer length {len(bitmap.pixels)} does not match {w}x{h}x4 = {expected}')
    return np.frombuffer(bitmap.pixels, dtype=np.uint8).reshape(-1, 4)


def apply_range(
    source: np.ndarray,
    out: np.ndarray,
    compiled: list[CompiledRule],
    start: int,
    stop: int,
) -> list[int]:
    """Substitute pixels [start, stop). Reads `source`, writes `out[start:stop]`.

    Returns the number of pixels claimed by each compiled rule in this slice.
    """
    counts = [0] * len(compiled)
    if start >= stop or not compiled:
        return counts

    rgb = source[start:stop, :3].astype(np.int32)
    dest = out[start:stop]
    unclaimed = np.ones(stop - start, dtype=bool)

    for k, rule in enumerate(compiled):
        diff = rgb - rule.source
        dist = np.sqrt((diff * diff).sum(axis=1))
        hit = unclaimed & (dist <= rule.tolerance)
        n = int(hit.sum())
        if n:
            if rule.make_transparent:
                dest[hit, 3] = 0
            else:
                dest[hit, :3] = rule.target
            unclaimed &= ~hit
            counts[k] = n
            if not unclaimed.any():
                break
    return counts


class IncrementalRun:
    """Resumable substitution over fixed-size pixel slices.

    The only iteration state is `cursor`, the index of the next pixel to
    process. Each step() is a pure function of (source, rules, range).
    chunk_size=None processes the whole buffer in a single step.
    """

    def __init__(
        self,
        bitmap: Bitmap,
        rules: Iterable[ColorRule],
        chunk_size: int | None = DEFAULT_CHUNK_PIXELS,
    ):
        rules = list(rules)
        self._source = _pixel_view(bitmap)
        if chunk_size is None:
            chunk_size = len(self._source)
        if chunk_size <= 0:
            raise ValueError(f'chunk_size must be positive, got {chunk_size}')
        self._out = self._source.copy()
        self._compiled = compile_rules(rules)
        self._counts = [0] * len(rules)
        self.width = bitmap.width
        self.height = bitmap.height
        self.chunk_size = chunk_size
        self.total = len(self._source)
        self.cursor = 0
        logger.debug(
            'IncrementalRun %dx%d, %d/%d active rules, chunk=%d',
            self.width,
            self.height,
            len(self._compiled),
            len(rules),
            chunk_size,
        )

    @property
    def done(self) -> bool:
        return self.cursor >= self.total

    @property
    def progress(self) -> float:
        return self.cursor / self.total

    @property
    def counts(self) -> list[int]:
        """Pixels matched per rule, indexed by position in the caller's list."""
        return list(self._counts)

    def step(self) -> int:
        """Process the next slice and return the new cursor."""
        if self.done:
            return self.cursor
        start = self.cursor
        stop = min(start + self.chunk_size, self.total)
        slice_counts = apply_range(self._source, self._out, self._compiled, start, stop)
        for rule, n in zip(self._compiled, slice_counts):
            self._counts[rule.position] += n
        self.cursor = stop
        return stop

    def __iter__(self) -> Iterator[int]:
        while not self.done:
            yield self.step()

    def snapshot(self) -> Bitmap:
        """Copy of the output so far. Pixels past the cursor are still the source's."""
        return Bitmap(self.width, self.height, self._out.tobytes())

    def result(self) -> Bitmap:
        if not self.done:
            raise RuntimeError(f'Run incomplete: {self.cursor}/{self.total} pixels processed')
        return Bitmap(self.width, self.height, self._out.tobytes())

    def finish(self) -> Bitmap:
        """Run every remaining slice and return the result."""
        for _cursor in self:
            pass
        return self.result()


def apply(bitmap: Bitmap, rules: Iterable[ColorRule]) -> Bitmap:
    """Substitute colours in one atomic call. Returns a new bitmap."""
    run = IncrementalRun(bitmap, rules, chunk_size=None)
    return run.finish()
