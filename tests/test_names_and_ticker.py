from __future__ import annotations

import asyncio
import time

import pytest

from conftest import run_until
from game_mod_engine.core.names import DisplayNameCache
from game_mod_engine.core.ticker import TickDriver
from game_mod_engine.core.types import Phase


class StubResolver:
    def __init__(self, names, fail=False):
        self.names = names
        self.fail = fail
        self.calls = []

    async def resolve(self, player_id):
        self.calls.append(player_id)
        if self.fail:
            raise RuntimeError("lookup down")
        return self.names.get(player_id)


class CountingTarget:
    def __init__(self, fail_first=False):
        self.calls = 0
        self.fail_first = fail_first

    def on_tick(self):
        self.calls += 1
        if self.fail_first and self.calls == 1:
            raise RuntimeError("boom")
        return True


class SlowTarget(CountingTarget):
    def __init__(self, cost):
        super().__init__()
        self.cost = cost

    def on_tick(self):
        time.sleep(self.cost)
        return super().on_tick()


def test_label_falls_back_without_lookup():
    cache = DisplayNameCache()
    assert cache.label(12) == "Player_12"
    assert cache.prefetch(12) is False


def test_prefetch_outside_event_loop_is_skipped():
    resolver = StubResolver({12: "Ada"})
    cache = DisplayNameCache(resolver)

    assert cache.prefetch(12) is False
    assert resolver.calls == []


def test_prefetch_fills_cache_in_background():
    async def run_test():
        resolver = StubResolver({12: "Ada"})
        cache = DisplayNameCache(resolver)

        assert cache.prefetch(12) is True
        assert cache.prefetch(12) is False
        assert cache.label(12) == "Player_12"
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert cache.label(12) == "Ada"
        assert resolver.calls == [12]
        assert cache.prefetch(12) is False

    asyncio.run(run_test())


def test_failed_lookup_keeps_fallback():
    async def run_test():
        cache = DisplayNameCache(StubResolver({}, fail=True))
        cache.prefetch(3)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert cache.label(3) == "Player_3"

    asyncio.run(run_test())


def test_winner_announcement_uses_resolved_name(make_scheduler, clock, messenger):
    async def run_test():
        names = DisplayNameCache(StubResolver({7: "Ada"}))
        s = make_scheduler(names=names)
        s.force_dry_run(7)
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        run_until(s, clock, Phase.ASKING)
        s.on_answer_command(7, "B")
        run_until(s, clock, Phase.CLAIMABLE)

        assert any("Winners with 1/1: Ada" in b for b in messenger.broadcasts)

    asyncio.run(run_test())


def test_tick_driver_runs_and_stops():
    async def run_test():
        target = CountingTarget(fail_first=True)
        driver = TickDriver(target, interval=0.01)
        driver.start()
        assert driver.running
        await asyncio.sleep(0.1)
        await driver.stop()

        assert not driver.running
        assert target.calls >= 2
        assert driver.ticks == target.calls
        calls = target.calls
        await asyncio.sleep(0.05)
        assert target.calls == calls

    asyncio.run(run_test())


def test_tick_driver_rejects_bad_interval():
    with pytest.raises(ValueError):
        TickDriver(CountingTarget(), interval=0)


def test_slow_ticks_do_not_shift_the_schedule():
    async def run_test():
        target = SlowTarget(cost=0.03)
        driver = TickDriver(target, interval=0.05)
        driver.start()
        await asyncio.sleep(0.52)
        await driver.stop()
        return target.calls

    # ten ticks fit in the window; sleeping a full interval after each tick would allow six
    assert asyncio.run(run_test()) >= 8
