import json
from datetime import datetime

import pytest

from adslots.errors import ValidationError
from adslots.services.capacity import AvailabilityCache, check_capacity, get_city_availability
from adslots.services.capacity.availability import (
    REASON_CAPACITY_FULL,
    REASON_INSUFFICIENT_REGION,
    REASON_NO_SELLABLE,
    get_availability_stats,
    pick_locations,
)

from conftest import fill_location, make_location

NOW = datetime(2026, 3, 10, 12, 0)


def test_triple_in_sittard_with_two_free_locations_waitlists(db):
    make_location(db, name="S1", city="Sittard")
    make_location(db, name="S2", city="Sittard")
    full = make_location(db, name="S3", city="Sittard")
    fill_location(db, full, 20)
    make_location(db, name="M1", city="Maastricht")

    result = check_capacity(db, "TRIPLE", ["sittard"], now=NOW)

    assert result.is_available is False
    assert result.available_screens == 2
    assert result.required_screens == 3
    assert REASON_INSUFFICIENT_REGION in result.top_reasons
    assert REASON_CAPACITY_FULL in result.top_reasons


def test_check_without_cities_uses_whole_network(db):
    make_location(db, name="S1", city="Sittard")
    make_location(db, name="M1", city="Maastricht")
    make_location(db, name="H1", city="Heerlen")

    result = check_capacity(db, "triple", [], now=NOW)

    assert result.is_available is True
    assert result.top_reasons == []


def test_check_is_stable_without_state_change(db):
    make_location(db, name="S1", city="Sittard")
    first = check_capacity(db, "TRIPLE", ["Sittard"], now=NOW)
    second = check_capacity(db, "TRIPLE", ["Sittard"], now=NOW)

    assert (first.is_available, first.available_screens, first.top_reasons) == (
        second.is_available, second.available_screens, second.top_reasons,
    )


def test_no_sellable_locations_reason(db):
    result = check_capacity(db, "SINGLE", ["nowhere"], now=NOW)
    assert result.is_available is False
    assert REASON_NO_SELLABLE in result.top_reasons


def test_unknown_package_is_rejected(db):
    with pytest.raises(ValidationError):
        check_capacity(db, "MEGA", [], now=NOW)


def test_blank_city_code_is_rejected(db):
    with pytest.raises(ValidationError):
        check_capacity(db, "SINGLE", ["  "], now=NOW)


def test_pick_prefers_held_then_emptiest(db):
    a = make_location(db, name="A")
    b = make_location(db, name="B")
    c = make_location(db, name="C")
    fill_location(db, a, 5)
    fill_location(db, b, 1)
    fill_location(db, c, 10)

    result = check_capacity(db, "SINGLE", now=NOW)
    assert [loc.location_id for loc in pick_locations(result.locations, 2)] == [b.id, a.id]
    assert [loc.location_id for loc in pick_locations(result.locations, 1, preferred_ids=[c.id])] == [c.id]


def test_city_availability_is_cached_and_invalidated(db, redis):
    make_location(db, name="S1", city="Sittard")
    full = make_location(db, name="S2", city="Sittard")
    fill_location(db, full, 20)
    make_location(db, name="M1", city="Maastricht")

    cities = get_city_availability(db, redis)
    assert [(c.label, c.screens_total, c.screens_with_space, c.screens_full) for c in cities] == [
        ("Maastricht", 1, 1, 0),
        ("Sittard", 2, 1, 1),
    ]
    assert AvailabilityCache.KEY in redis.store
    assert redis.ttls[AvailabilityCache.KEY] == 45

    # Served from cache even after the ledger changed
    make_location(db, name="M2", city="Maastricht")
    cached = get_city_availability(db, redis)
    assert cached[0].screens_total == 1

    AvailabilityCache(redis).invalidate()
    fresh = get_city_availability(db, redis)
    assert fresh[0].label == "Maastricht"
    assert fresh[0].screens_total == 2


def test_unreadable_cache_is_ignored(db, redis):
    make_location(db, name="S1", city="Sittard")
    redis.store[AvailabilityCache.KEY] = "not json"

    cities = get_city_availability(db, redis)
    assert cities[0].label == "Sittard"
    assert json.loads(redis.store[AvailabilityCache.KEY])[0]["code"] == "sittard"


def test_availability_stats(db, redis):
    make_location(db, name="S1", city="Sittard")
    full = make_location(db, name="G1", city="Geleen")
    fill_location(db, full, 20)

    stats = get_availability_stats(db, redis)
    assert stats["total_sellable_screens"] == 2
    assert stats["total_screens_with_space"] == 1
    assert stats["total_screens_full"] == 1
    assert stats["cities_with_zero_space"] == ["Geleen"]
