from datetime import date, datetime, timedelta

import pytest

from adslots.errors import CapacityExceeded
from adslots.models.tables import CapacityReservations, WaitlistRequests
from adslots.services.capacity.ledger import (
    count_live_placements,
    ensure_room,
    get_location_capacities,
)

from conftest import fill_location, first_screen, make_contract, make_location, make_placement

NOW = datetime(2026, 3, 10, 12, 0)


def _capacity(db, location_id, **kwargs):
    for cap in get_location_capacities(db, now=NOW, **kwargs):
        if cap.location_id == location_id:
            return cap
    return None


def test_nineteen_plus_one_fills_location(db):
    location = make_location(db, name="A")
    contract = fill_location(db, location, 19)

    cap = _capacity(db, location.id)
    assert cap.active_count == 19
    assert cap.has_space is True

    make_placement(db, contract, first_screen(db, location))

    cap = _capacity(db, location.id)
    assert cap.active_count == 20
    assert cap.has_space is False
    assert cap.is_bookable is False


def test_capacity_is_pooled_across_screens(db):
    location = make_location(db, name="Multi", screens=2)
    screens = location.screens
    contract = make_contract(db)
    make_placement(db, contract, screens[0])
    make_placement(db, contract, screens[1])
    make_placement(db, contract, screens[1])

    assert count_live_placements(db, NOW.date())[location.id] == 3


def test_only_live_placements_count(db):
    location = make_location(db)
    screen = first_screen(db, location)
    signed = make_contract(db)
    draft = make_contract(db, status="draft", signed=False)
    cancelled = make_contract(db, status="cancelled")

    make_placement(db, signed, screen)                                    # live
    make_placement(db, signed, screen, is_active=False)                   # inactive
    make_placement(db, signed, screen, start=date(2026, 4, 1))            # not started
    make_placement(db, signed, screen, end=date(2026, 3, 9))              # ended
    make_placement(db, signed, screen, end=date(2026, 3, 10))             # ends today, still live
    make_placement(db, draft, screen)                                     # unsigned
    make_placement(db, cancelled, screen)                                 # cancelled

    assert count_live_placements(db, NOW.date()) == {location.id: 2}


def test_non_sellable_locations_are_excluded(db):
    sellable = make_location(db, name="Open")
    make_location(db, name="Not ready", ready=False)
    make_location(db, name="Inactive", status="inactive")
    make_location(db, name="No city", city=None, region_code=None)

    ids = [cap.location_id for cap in get_location_capacities(db, now=NOW)]
    assert ids == [sellable.id]


def test_city_falls_back_to_region_code(db):
    location = make_location(db, city="  ", region_code="Geleen")
    caps = get_location_capacities(db, cities=["geleen"], now=NOW)
    assert [c.location_id for c in caps] == [location.id]
    assert caps[0].city_code == "geleen"
    assert caps[0].city_label == "Geleen"


def test_active_holds_of_other_requests_reduce_available_slots(db):
    location = make_location(db)
    fill_location(db, location, 18)
    request = WaitlistRequests(
        company_name="Bakkerij", contact_name="Anna", email="anna@example.nl",
        package_type="SINGLE", required_count=1, target_region_codes=[], form_data={},
    )
    db.add(request)
    db.commit()
    db.add(CapacityReservations(
        waitlist_request_id=request.id, location_id=location.id, kind="invite",
        status="active", expires_at=NOW + timedelta(hours=1),
    ))
    db.add(CapacityReservations(
        waitlist_request_id=request.id, location_id=location.id, kind="invite",
        status="active", expires_at=NOW - timedelta(minutes=1),
    ))
    db.commit()

    cap = _capacity(db, location.id)
    assert cap.reserved_count == 1
    assert cap.available_slots == 1
    assert cap.has_space is True

    own = _capacity(db, location.id, exclude_request_id=request.id)
    assert own.available_slots == 2


def test_ensure_room_rejects_overfill(db):
    location = make_location(db)
    fill_location(db, location, 20)

    with pytest.raises(CapacityExceeded):
        ensure_room(db, {location.id: 1}, NOW.date())


def test_ensure_room_allows_last_slot(db):
    location = make_location(db)
    fill_location(db, location, 19)

    ensure_room(db, {location.id: 1}, NOW.date())
