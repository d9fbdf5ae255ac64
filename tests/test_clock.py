"""
Tests for the round countdown clock.
"""

import asyncio

import pytest

from scavengerhunt.game.clock import SessionClock


class TestManualTicks:
    """Tests for a clock without an event loop."""

    def test_start_sets_remaining(self):
        clock = SessionClock()
        clock.start(5)
        assert clock.remaining == 5
        assert clock.running

    def test_tick_decrements(self):
        clock = SessionClock()
        ticks = []
        clock.on_tick(ticks.append)
        clock.start(3)

        assert clock.tick() == 2
        assert clock.tick() == 1
        assert ticks == [2, 1]

    def test_expiry_stops_and_fires_once(self):
        clock = SessionClock()
        expired = []
        clock.on_expired(lambda: expired.append(True))
        clock.start(2)

        clock.tick()
        clock.tick()
        assert clock.remaining == 0
        assert not clock.running
        assert expired == [True]

        # Further ticks do nothing
        assert clock.tick() == 0
        assert expired == [True]

    def test_stop_is_idempotent_and_keeps_remaining(self):
        clock = SessionClock()
        clock.start(4)
        clock.tick()
        clock.stop()
        clock.stop()
        assert clock.remaining == 3
        assert not clock.running

    def test_resume_continues(self):
        clock = SessionClock()
        clock.start(4)
        clock.stop()
        clock.resume()
        assert clock.running
        assert clock.remaining == 4

    def test_resume_without_time_is_noop(self):
        clock = SessionClock()
        clock.resume()
        assert not clock.running

    def test_start_requires_positive_duration(self):
        with pytest.raises(ValueError):
            SessionClock().start(0)

    def test_callback_error_does_not_stop_countdown(self):
        clock = SessionClock()

        def broken(_):
            raise RuntimeError("boom")

        clock.on_tick(broken)
        clock.start(2)
        assert clock.tick() == 1


class TestEventLoopTicks:
    """Tests for a clock scheduled on an asyncio loop."""

    def test_counts_down_on_loop(self):
        async def scenario():
            clock = SessionClock(interval=0.01, loop=asyncio.get_running_loop())
            done = asyncio.Event()
            clock.on_expired(done.set)
            clock.start(3)
            await asyncio.wait_for(done.wait(), timeout=1.0)
            return clock

        clock = asyncio.run(scenario())
        assert clock.remaining == 0
        assert not clock.running

    def test_stop_cancels_pending_tick(self):
        async def scenario():
            clock = SessionClock(interval=0.01, loop=asyncio.get_running_loop())
            clock.start(5)
            clock.stop()
            await asyncio.sleep(0.05)
            return clock.remaining

        assert asyncio.run(scenario()) == 5

    def test_closed_loop_falls_back_to_manual(self):
        loop = asyncio.new_event_loop()
        loop.close()
        clock = SessionClock(loop=loop)
        clock.start(2)
        assert clock.running
        assert clock.tick() == 1
