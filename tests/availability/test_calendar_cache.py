from availability.calendar.cache import CalendarCache


def test_get_returns_none_for_missing_key(clock):
    cache = CalendarCache(clock=clock)
    assert cache.get("busy_windows:{}") is None


def test_entry_survives_until_ttl_then_is_evicted(clock):
    cache = CalendarCache(clock=clock)
    cache.set("k", ["value"], ttl=60)

    clock.advance(60)
    assert cache.get("k") == ["value"]

    clock.advance(1)
    assert cache.get("k") is None
    assert cache.stats() == {"size": 0, "entries": []}


def test_empty_list_is_a_cache_hit(clock):
    cache = CalendarCache(clock=clock)
    cache.set("k", [], ttl=60)
    assert cache.get("k") == []


def test_set_overwrites_and_restarts_ttl(clock):
    cache = CalendarCache(clock=clock)
    cache.set("k", "old", ttl=10)
    clock.advance(8)
    cache.set("k", "new", ttl=10)
    clock.advance(8)

    assert cache.get("k") == "new"


def test_key_ignores_parameter_order():
    first = CalendarCache.key("free_slots", {"timeZone": "UTC", "durationMinutes": 30})
    second = CalendarCache.key("free_slots", {"durationMinutes": 30, "timeZone": "UTC"})

    assert first == second
    assert first.startswith("free_slots:")
    assert first != CalendarCache.key("free_slots", {"durationMinutes": 45, "timeZone": "UTC"})
    assert first != CalendarCache.key("busy_windows", {"durationMinutes": 30, "timeZone": "UTC"})


def test_clear_is_idempotent_and_stats_list_keys(clock):
    cache = CalendarCache(clock=clock)
    cache.set("a", 1, ttl=10)
    cache.set("b", 2, ttl=10)

    assert cache.stats() == {"size": 2, "entries": ["a", "b"]}

    cache.clear()
    cache.clear()

    assert len(cache) == 0
    assert cache.get("a") is None
