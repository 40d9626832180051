"""Tests for recolor.core.scheduler: yielding runs, cancellation, debounced preview."""

import asyncio

import numpy as np
import pytest
from recolor.core.engine import BitmapError, apply
from recolor.core.scheduler import PreviewPipeline, RunTracker, run_incremental
from recolor.core.types import Bitmap, ColorRule


def _random_bitmap(width: int, height: int, seed: int = 7) -> Bitmap:
    rng = np.random.default_rng(seed)
    return Bitmap(width, height, rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8).tobytes())


RED_TO_GREEN = [ColorRule('#ff0000', '#00ff00', 150)]
BLUE_CLEAR = [ColorRule('#0000ff', '', 150, make_transparent=True)]


def _collect(results):
    return lambda result, rules: results.append(result)


class TestRunTracker:
    def test_new_token_is_current(self):
        tracker = RunTracker()
        assert tracker.begin().current

    def test_begin_supersedes(self):
        tracker = RunTracker()
        first = tracker.begin()
        second = tracker.begin()
        assert not first.current
        assert second.current

    def test_invalidate(self):
        tracker = RunTracker()
        token = tracker.begin()
        tracker.invalidate()
        assert not token.current


class TestRunIncremental:
    def test_same_as_atomic(self):
        bm = _random_bitmap(20, 10)
        result = asyncio.run(run_incremental(bm, RED_TO_GREEN, chunk_size=17))
        assert result == apply(bm, RED_TO_GREEN)

    def test_progress_reported_per_slice(self):
        bm = _random_bitmap(5, 2)
        seen = []
        asyncio.run(run_incremental(bm, RED_TO_GREEN, chunk_size=4, on_progress=lambda c, t: seen.append((c, t))))
        assert seen == [(4, 10), (8, 10), (10, 10)]

    def test_yields_to_loop_between_slices(self):
        bm = _random_bitmap(4, 4)
        events = []

        async def ticker():
            for _ in range(50):
                events.append('tick')
                await asyncio.sleep(0)

        async def main():
            task = asyncio.create_task(ticker())
            await run_incremental(bm, RED_TO_GREEN, chunk_size=2, on_progress=lambda c, t: events.append('slice'))
            await task

        asyncio.run(main())
        last_slice = len(events) - 1 - events[::-1].index('slice')
        assert 'tick' in events[:last_slice]

    def test_superseded_run_returns_none(self):
        bm = _random_bitmap(10, 10)
        tracker = RunTracker()
        token = tracker.begin()

        def supersede(cursor, total):
            tracker.begin()

        result = asyncio.run(run_incremental(bm, RED_TO_GREEN, token=token, chunk_size=10, on_progress=supersede))
        assert result is None

    def test_current_token_completes(self):
        bm = _random_bitmap(3, 3)
        token = RunTracker().begin()
        result = asyncio.run(run_incremental(bm, RED_TO_GREEN, token=token, chunk_size=2))
        assert result == apply(bm, RED_TO_GREEN)


class TestPreviewPipeline:
    def test_debounce_coalesces_edits(self):
        bm = _random_bitmap(8, 8)
        results = []

        async def main():
            pipeline = PreviewPipeline(_collect(results), debounce=0.02, chunk_size=16)
            pipeline.set_bitmap(bm)
            pipeline.set_rules(BLUE_CLEAR)
            pipeline.set_rules([])
            pipeline.set_rules(RED_TO_GREEN)
            await pipeline.wait_idle()
            return pipeline

        pipeline = asyncio.run(main())
        assert results == [apply(bm, RED_TO_GREEN)]
        assert pipeline.latest == results[0]
        assert pipeline.completed_runs == 1
        assert not pipeline.processing

    def test_stale_run_never_delivers(self):
        bm = _random_bitmap(20, 20)
        results = []
        state = {'edited': False}

        async def main():
            pipeline = None

            def edit_mid_run(cursor, total):
                if not state['edited']:
                    state['edited'] = True
                    assert pipeline.processing
                    pipeline.set_rules(BLUE_CLEAR)

            pipeline = PreviewPipeline(_collect(results), debounce=0, chunk_size=1, on_progress=edit_mid_run)
            pipeline.set_rules(RED_TO_GREEN)
            pipeline.set_bitmap(bm)
            await pipeline.wait_idle()

        asyncio.run(main())
        assert state['edited']
        assert results == [apply(bm, BLUE_CLEAR)]

    def test_no_bitmap_no_run(self):
        results = []

        async def main():
            pipeline = PreviewPipeline(_collect(results), debounce=0)
            pipeline.set_rules(RED_TO_GREEN)
            await pipeline.wait_idle()
            return pipeline

        pipeline = asyncio.run(main())
        assert results == []
        assert pipeline.latest is None

    def test_clearing_bitmap_drops_result(self):
        bm = _random_bitmap(4, 4)
        results = []

        async def main():
            pipeline = PreviewPipeline(_collect(results), debounce=0)
            pipeline.set_rules(RED_TO_GREEN)
            pipeline.set_bitmap(bm)
            await pipeline.wait_idle()
            pipeline.set_bitmap(None)
            await pipeline.wait_idle()
            return pipeline

        pipeline = asyncio.run(main())
        assert len(results) == 1
        assert pipeline.latest is None

    def test_run_error_surfaces_in_wait_idle(self):
        async def main():
            pipeline = PreviewPipeline(lambda result, rules: None, debounce=0)
            pipeline.set_bitmap(Bitmap(2, 2, bytes(3)))
            await pipeline.wait_idle()

        with pytest.raises(BitmapError):
            asyncio.run(main())

    def test_change_during_debounce_drops_run_in_flight(self):
        bm = _random_bitmap(50, 50)
        delivered = []
        state = {'edited': False}

        async def main():
            pipeline = None

            def edit_mid_run(cursor, total):
                if not state['edited']:
                    state['edited'] = True
                    pipeline.set_rules(BLUE_CLEAR)
                    assert not pipeline.processing

            pipeline = PreviewPipeline(
                lambda result, rules: delivered.append((result, rules)),
                debounce=0.05,
                chunk_size=100,
                on_progress=edit_mid_run,
            )
            pipeline.set_rules(RED_TO_GREEN)
            pipeline.set_bitmap(bm)
            await pipeline.wait_idle()

        asyncio.run(main())
        assert state['edited']
        assert delivered == [(apply(bm, BLUE_CLEAR), BLUE_CLEAR)]

    def test_failed_run_is_not_processing(self):
        pipeline = None

        async def main():
            nonlocal pipeline
            pipeline = PreviewPipeline(lambda result, rules: None, debounce=0)
            pipeline.set_bitmap(Bitmap(2, 2, bytes(3)))
            await pipeline.wait_idle()

        with pytest.raises(BitmapError):
            asyncio.run(main())
        assert not pipeline.processing

    def test_close_cancels_pending(self):
        results = []

        async def main():
            pipeline = PreviewPipeline(_collect(results), debounce=10)
            pipeline.set_bitmap(_random_bitmap(2, 2))
            await pipeline.close()

        asyncio.run(main())
        assert results == []
