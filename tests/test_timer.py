# tests/test_timer.py
import asyncio

import pytest

from flash_tutor.timer import ActivityTimer


def make_timer(clock, idle=120_000, poll=10_000):
    timer = ActivityTimer(idle_timeout_ms=idle, poll_interval_ms=poll, clock=clock)
    timer.start()
    return timer


def test_defaults():
    timer = ActivityTimer()
    assert timer.idle_timeout_ms == 120_000
    assert timer.poll_interval_ms == 10_000
    assert timer.is_active is False


def test_polls_accumulate_active_time(fake_clock):
    timer = make_timer(fake_clock)
    for _ in range(3):
        fake_clock.advance(10_000)
        timer.record_activity()
        timer.poll()
    assert timer.active_ms == 30_000
    assert timer.segment_start == fake_clock.now


def test_goes_idle_after_timeout(fake_clock):
    timer = make_timer(fake_clock, idle=20_000)
    fake_clock.advance(5_000)
    timer.record_activity()
    fake_clock.advance(10_000)
    timer.poll()
    assert timer.is_active
    fake_clock.advance(10_000)
    timer.poll()
    assert not timer.is_active
    # Only the time up to the last activity counts
    assert timer.active_ms == 5_000


def test_idle_time_is_not_credited(fake_clock):
    timer = make_timer(fake_clock, idle=20_000)
    fake_clock.advance(20_000)
    timer.poll()
    assert timer.active_ms == 0
    # Away for five minutes
    fake_clock.advance(300_000)
    timer.poll()
    assert timer.active_ms == 0
    timer.record_activity()
    assert timer.is_active
    fake_clock.advance(5_000)
    assert timer.finalize() == 5_000


def test_long_idle_after_brief_activity(fake_clock):
    timer = make_timer(fake_clock)
    fake_clock.advance(5_000)
    timer.record_activity()
    fake_clock.advance(5_000)
    # Polls every 10 s until the 2-minute timeout trips at 130 s
    for _ in range(13):
        timer.poll()
        fake_clock.advance(10_000)
    assert not timer.is_active
    assert timer.finalize() == 5_000


def test_multiple_idle_cycles(fake_clock):
    timer = make_timer(fake_clock, idle=10_000)
    for _ in range(3):
        fake_clock.advance(4_000)
        timer.record_activity()
        fake_clock.advance(10_000)
        timer.poll()
        assert not timer.is_active
        fake_clock.advance(60_000)
        timer.record_activity()
    assert timer.finalize() == 12_000


def test_finalize_flushes_open_segment_once(fake_clock):
    timer = make_timer(fake_clock)
    fake_clock.advance(4_500)
    assert timer.finalize() == 4_500
    fake_clock.advance(10_000)
    assert timer.finalize() == 4_500
    assert not timer.is_active


def test_reset_starts_over(fake_clock):
    timer = make_timer(fake_clock)
    fake_clock.advance(50_000)
    timer.poll()
    timer.reset()
    assert timer.active_ms == 0
    assert timer.is_active


def test_poll_while_idle_is_noop(fake_clock):
    timer = ActivityTimer(clock=fake_clock)
    timer.poll()
    assert timer.active_ms == 0


@pytest.mark.asyncio
async def test_background_polling_detects_idle(fake_clock):
    timer = make_timer(fake_clock, idle=1_000, poll=10)
    timer.start_polling()
    assert timer.polling
    fake_clock.advance(1_000)
    await asyncio.sleep(0.1)
    assert not timer.is_active
    await timer.stop_polling()
    assert not timer.polling


@pytest.mark.asyncio
async def test_stop_polling_without_start():
    timer = ActivityTimer()
    await timer.stop_polling()
    assert not timer.polling
