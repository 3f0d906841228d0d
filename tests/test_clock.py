import pytest

from karasync.core.clock import ManualClock, PlaybackClock

from conftest import FakeWallClock


def test_manual_clock():
    clock = ManualClock(500)
    assert clock.now() == 500
    assert clock.advance(250) == 750
    assert clock.seek(100) == 100
    assert clock.now() == 100


class TestPlaybackClock:
    def test_follows_wall_clock(self):
        wall = FakeWallClock(10_000)
        clock = PlaybackClock(wall_clock=wall)
        wall.advance(1500)
        assert clock.now() == 1500

    def test_rate_change_keeps_position(self):
        wall = FakeWallClock()
        clock = PlaybackClock(wall_clock=wall)
        wall.advance(1000)
        clock.set_rate(2.0)
        assert clock.now() == 1000
        wall.advance(500)
        assert clock.now() == 2000
        assert clock.rate == 2.0

    def test_negative_rate_rejected(self):
        clock = PlaybackClock(wall_clock=FakeWallClock())
        with pytest.raises(ValueError):
            clock.set_rate(-1.0)

    def test_pause_and_resume(self):
        wall = FakeWallClock()
        clock = PlaybackClock(wall_clock=wall)
        wall.advance(1000)
        clock.pause()
        wall.advance(5000)
        assert clock.now() == 1000

        clock.resume()
        wall.advance(200)
        assert clock.now() == 1200

    def test_seek(self):
        wall = FakeWallClock()
        clock = PlaybackClock(start_ms=3000, wall_clock=wall)
        wall.advance(100)
        clock.seek(60_000)
        assert clock.now() == 60_000
        wall.advance(100)
        assert clock.now() == 60_100

    def test_seek_while_paused(self):
        wall = FakeWallClock()
        clock = PlaybackClock(wall_clock=wall)
        clock.pause()
        clock.seek(8000)
        wall.advance(1000)
        assert clock.now() == 8000
