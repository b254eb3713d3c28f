from cardbeacon.seen_cache import SeenCache


class FakeClock:
    def __init__(self, t: float = 100.0):
        self.t = t

    def __call__(self) -> float:
        return self.t


class TestSeenCache:
    def test_first_sighting_is_new_then_duplicate(self) -> None:
        cache = SeenCache(10.0)

        assert cache.check_and_add("CARD_x") is True
        assert cache.check_and_add("CARD_x") is False
        assert "CARD_x" in cache
        assert len(cache) == 1

    def test_clear_returns_count(self) -> None:
        cache = SeenCache(10.0)
        cache.check_and_add("a")
        cache.check_and_add("b")

        assert cache.clear() == 2
        assert len(cache) == 0
        assert cache.check_and_add("a") is True

    def test_expire_drops_only_old_entries(self) -> None:
        clock = FakeClock()
        cache = SeenCache(10.0, clock=clock)
        cache.check_and_add("old")
        clock.t += 6.0
        cache.check_and_add("young")
        clock.t += 4.0  # old is exactly 10 s old

        assert cache.expire() == 1
        assert "old" not in cache
        assert "young" in cache

    def test_duplicate_does_not_refresh_timestamp(self) -> None:
        clock = FakeClock()
        cache = SeenCache(5.0, clock=clock)
        cache.check_and_add("x")
        clock.t += 4.0
        cache.check_and_add("x")
        clock.t += 1.0

        assert cache.expire() == 1

    def test_expire_with_explicit_now(self) -> None:
        cache = SeenCache(1.0, clock=FakeClock(0.0))
        cache.check_and_add("x")

        assert cache.expire(now=0.5) == 0
        assert cache.expire(now=1.5) == 1

    def test_fixed_window_keeps_old_entries_until_cleared(self) -> None:
        clock = FakeClock()
        cache = SeenCache(5.0, clock=clock)
        cache.check_and_add("x")
        clock.t += 60.0

        assert cache.check_and_add("x") is False

    def test_sliding_entry_is_new_again_after_its_window(self) -> None:
        clock = FakeClock()
        cache = SeenCache(5.0, clock=clock, sliding=True)
        cache.check_and_add("x")
        clock.t += 4.9
        assert cache.check_and_add("x") is False

        clock.t += 0.1
        assert cache.check_and_add("x") is True
        # re-stamped: a fresh window starts now
        clock.t += 4.9
        assert cache.check_and_add("x") is False
