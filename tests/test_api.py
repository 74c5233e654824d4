from datetime import date, datetime, timedelta
from decimal import Decimal

from adslots.models.tables import Contracts, Placements, WaitlistRequests
from adslots.services.capacity import AvailabilityCache
from adslots.services.waitlist import state
from adslots.services.waitlist.sweeper import SWEEP_LOCK_KEY
from adslots.utils.hashing import new_token

from conftest import fill_location, first_screen, make_contract, make_location, make_placement


def _signup(**overrides):
    body = {
        "companyName": "Kapsalon Piet",
        "contactName": "Piet",
        "email": "piet@example.nl",
        "packageType": "SINGLE",
        "targetRegionCodes": ["sittard"],
        "formData": {"phone": "0612345678"},
    }
    body.update(overrides)
    return body


# ──────────────────────────────────────────────────────────────────────────────
# Availability
# ──────────────────────────────────────────────────────────────────────────────

def test_capacity_check_speaks_camel_case(client, db):
    make_location(db, city="Sittard")

    response = client.post("/capacity/check", json={"packageType": "SINGLE", "targetRegionCodes": ["sittard"]})

    assert response.status_code == 200
    body = response.json()
    assert body["isAvailable"] is True
    assert body["availableScreens"] == 1
    assert body["requiredScreens"] == 1
    assert body["topReasons"] == []
    assert "nextCheckAt" in body


def test_capacity_check_accepts_snake_case_input(client, db):
    make_location(db, city="Sittard")

    response = client.post("/capacity/check", json={"package_type": "TRIPLE", "target_region_codes": ["sittard"]})

    assert response.status_code == 200
    assert response.json()["isAvailable"] is False


def test_unknown_package_is_a_validation_error(client):
    response = client.post("/capacity/check", json={"packageType": "MEGA"}, headers={"X-Correlation-ID": "abc-123"})

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"
    assert response.json()["correlation_id"] == "abc-123"
    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_city_availability_endpoint(client, db, redis):
    make_location(db, city="Sittard")

    response = client.get("/availability/cities")

    assert response.status_code == 200
    assert response.json() == [
        {"code": "sittard", "label": "Sittard", "screensTotal": 1, "screensWithSpace": 1, "screensFull": 0},
    ]
    assert AvailabilityCache.KEY in redis.store

    response = client.post("/availability/invalidate")
    assert response.json() == {"deleted_keys": 1}


def test_correlation_id_is_generated_when_missing(client):
    response = client.get("/availability/stats")
    assert response.status_code == 200
    assert response.headers["X-Correlation-ID"]


# ──────────────────────────────────────────────────────────────────────────────
# Waitlist & claims
# ──────────────────────────────────────────────────────────────────────────────

def test_signup_with_space_is_admitted(client, db):
    make_location(db, city="Sittard")

    response = client.post("/waitlist", json=_signup())

    assert response.status_code == 200
    assert response.json()["admitted"] is True
    assert response.json()["waitlistRequestId"] is None


def test_signup_without_space_is_queued(client, db):
    full = make_location(db, city="Sittard")
    fill_location(db, full, 20)

    response = client.post("/waitlist", json=_signup())

    assert response.status_code == 201
    body = response.json()
    assert body["admitted"] is False
    assert body["status"] == state.WAITING
    assert body["capacity"]["topReasons"]

    listed = client.get("/admin/waitlist", params={"status": "WAITING"}).json()
    assert [r["id"] for r in listed] == [body["waitlistRequestId"]]


def test_signup_with_invalid_email_is_rejected(client):
    response = client.post("/waitlist", json=_signup(email="geen-email"))
    assert response.status_code == 422


def test_unknown_claim_token_is_404(client):
    response = client.get("/claim/bogus")

    assert response.status_code == 404
    assert response.json()["code"] == "token_invalid"


def test_expired_invite_is_410(client, db):
    token, token_hash = new_token()
    sent = datetime(2020, 1, 1, 12, 0)
    db.add(WaitlistRequests(
        company_name="Kapsalon Piet", contact_name="Piet", email="piet@example.nl",
        package_type="SINGLE", required_count=1, target_region_codes=[], form_data={},
        status=state.INVITED, invite_token_hash=token_hash, invite_sent_at=sent,
        invite_expires_at=sent + timedelta(hours=48), created_at=sent, updated_at=sent,
    ))
    db.commit()

    response = client.get(f"/claim/{token}")
    assert response.status_code == 410
    assert response.json()["code"] == "token_expired"

    response = client.post(f"/claim/{token}/confirm")
    assert response.status_code == 410


def test_trigger_check(client, redis):
    response = client.post("/admin/waitlist/trigger-check")
    assert response.status_code == 200
    assert response.json() == {"expired": 0, "checked": 0, "invited": 0, "errors": 0}

    redis.lock(SWEEP_LOCK_KEY).acquire()
    response = client.post("/admin/waitlist/trigger-check")
    assert response.status_code == 409
    assert response.json()["code"] == "sweep_already_running"


def test_cancel_twice_is_a_conflict(client, db):
    full = make_location(db, city="Sittard")
    fill_location(db, full, 20)
    request_id = client.post("/waitlist", json=_signup()).json()["waitlistRequestId"]

    assert client.post(f"/admin/waitlist/{request_id}/cancel").json()["status"] == state.CANCELLED
    response = client.post(f"/admin/waitlist/{request_id}/cancel")
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"

    assert client.post(f"/admin/waitlist/{request_id}/reset").json()["status"] == state.WAITING


# ──────────────────────────────────────────────────────────────────────────────
# Inventory commands
# ──────────────────────────────────────────────────────────────────────────────

def test_location_update_invalidates_only_on_capacity_fields(client, db, redis):
    location = make_location(db, city="Sittard")

    redis.store[AvailabilityCache.KEY] = "[]"
    response = client.patch(f"/locations/{location.id}", json={"revenue_share_percent": "30"})
    assert response.status_code == 200
    assert AvailabilityCache.KEY in redis.store

    response = client.patch(f"/locations/{location.id}", json={"ready_for_ads": False})
    assert response.status_code == 200
    assert response.json()["ready_for_ads"] is False
    assert AvailabilityCache.KEY not in redis.store


def test_placement_on_full_location_is_refused(client, db):
    location = make_location(db)
    contract = fill_location(db, location, 20)
    screen = first_screen(db, location)

    response = client.post("/placements", json={"contract_id": contract.id, "screen_id": screen.id})
    assert response.status_code == 409
    assert response.json()["code"] == "capacity_exceeded"

    response = client.post(
        "/placements",
        json={"contract_id": contract.id, "screen_id": screen.id, "is_active": False},
    )
    assert response.status_code == 201


def test_reactivating_placement_on_full_location_is_refused(client, db):
    location = make_location(db)
    contract = fill_location(db, location, 20)
    parked = make_placement(db, contract, first_screen(db, location), is_active=False)

    response = client.patch(f"/placements/{parked.id}", json={"is_active": True})
    assert response.status_code == 409
    assert response.json()["code"] == "capacity_exceeded"

    db.expire_all()
    assert db.get(Placements, parked.id).is_active is False

    # Editing a parked placement without making it LIVE is fine
    response = client.patch(f"/placements/{parked.id}", json={"seconds_per_loop": 15})
    assert response.status_code == 200


def test_moving_placement_start_into_today_on_full_location_is_refused(client, db):
    location = make_location(db)
    contract = fill_location(db, location, 20)
    future = make_placement(db, contract, first_screen(db, location), start=date(2099, 1, 1))

    response = client.patch(f"/placements/{future.id}", json={"start_date": "2020-01-01"})
    assert response.status_code == 409
    assert response.json()["code"] == "capacity_exceeded"

    db.expire_all()
    assert db.get(Placements, future.id).start_date == date(2099, 1, 1)


def test_reactivating_placement_with_room_is_allowed(client, db, redis):
    location = make_location(db)
    contract = fill_location(db, location, 19)
    parked = make_placement(db, contract, first_screen(db, location), is_active=False)
    redis.store[AvailabilityCache.KEY] = "[]"

    response = client.patch(f"/placements/{parked.id}", json={"is_active": True})

    assert response.status_code == 200
    assert response.json()["is_active"] is True
    assert AvailabilityCache.KEY not in redis.store


def test_signing_contract_checks_the_ceiling(client, db):
    location = make_location(db)
    fill_location(db, location, 20)
    draft = make_contract(db, advertiser_id=9, status="draft", signed=False)
    make_placement(db, draft, first_screen(db, location))

    response = client.post(f"/contracts/{draft.id}/sign")
    assert response.status_code == 409
    assert response.json()["code"] == "capacity_exceeded"


def test_unknown_location_is_404(client):
    assert client.get("/locations/999").status_code == 404


def test_screen_weight_override_update(client, db):
    screen = first_screen(db, make_location(db))

    response = client.patch(f"/screens/{screen.id}", json={"weight_override": "1.3"})
    assert response.status_code == 200
    assert Decimal(response.json()["weight_override"]) == Decimal("1.3")

    assert client.patch(f"/screens/{screen.id}", json={"weight_override": "0"}).status_code == 422
    assert client.patch("/screens/999", json={"name": "x"}).status_code == 404


# ──────────────────────────────────────────────────────────────────────────────
# Month close
# ──────────────────────────────────────────────────────────────────────────────

def test_month_close_flow(client, db):
    location = make_location(db, share="50")
    contract = make_contract(db, price="100.00", start=date(2025, 1, 1))
    make_placement(db, contract, first_screen(db, location))

    created = client.post("/snapshots", json={"year": 2026, "month": 1})
    assert created.status_code == 201
    assert created.json()["created"] is True
    snapshot_id = created.json()["snapshot"]["id"]

    again = client.post("/snapshots", json={"year": 2026, "month": 1})
    assert again.status_code == 200
    assert again.json()["created"] is False
    assert again.json()["snapshot"]["id"] == snapshot_id

    early = client.post(f"/snapshots/{snapshot_id}/generate-payouts")
    assert early.status_code == 409
    assert early.json()["code"] == "invalid_snapshot_state"

    invoices = client.post(f"/snapshots/{snapshot_id}/generate-invoices")
    assert invoices.status_code == 200
    assert invoices.json()["generated"] is True
    [invoice] = invoices.json()["invoices"]
    assert invoice["invoice_number"] == "INV-2026-01-0001"
    assert Decimal(invoice["amount_inc_vat"]) == Decimal("121.00")

    repeat = client.post(f"/snapshots/{snapshot_id}/generate-invoices")
    assert repeat.status_code == 200
    assert repeat.json()["generated"] is False
    assert len(repeat.json()["invoices"]) == 1

    payouts = client.post(f"/snapshots/{snapshot_id}/generate-payouts")
    assert payouts.status_code == 200
    [payout] = payouts.json()["payouts"]
    assert Decimal(payout["payout_amount"]) == Decimal("50.00")
    assert len(payouts.json()["allocations"]) == 1

    locked = client.post(f"/snapshots/{snapshot_id}/lock")
    assert locked.status_code == 200
    assert locked.json()["status"] == "locked"

    for step in ("generate-invoices", "generate-payouts", "lock"):
        response = client.post(f"/snapshots/{snapshot_id}/{step}")
        assert response.status_code == 409
        assert response.json()["code"] == "snapshot_locked"

    detail = client.get(f"/snapshots/{snapshot_id}").json()
    assert detail["contracts_count"] == 1
    assert detail["period_end"] == "2026-01-31"

    assert [i["status"] for i in client.get(f"/snapshots/{snapshot_id}/invoices").json()] == ["final"]
    assert [p["status"] for p in client.get(f"/snapshots/{snapshot_id}/payouts").json()] == ["approved"]

    edit = client.patch(f"/contracts/{contract.id}", json={"monthly_price_ex_vat": "150.00"})
    assert edit.status_code == 409
    assert edit.json()["code"] == "snapshot_locked"

    cancel = client.post(f"/contracts/{contract.id}/cancel")
    assert cancel.status_code == 409
    assert cancel.json()["code"] == "snapshot_locked"
    db.expire_all()
    assert db.get(Contracts, contract.id).status == "signed"

    ended = client.patch(f"/contracts/{contract.id}", json={"end_date": "2026-01-31"})
    assert ended.status_code == 200


def test_cancelling_contract_outside_locked_periods(client, db, redis):
    contract = make_contract(db)
    redis.store[AvailabilityCache.KEY] = "[]"

    response = client.post(f"/contracts/{contract.id}/cancel")

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert AvailabilityCache.KEY not in redis.store


def test_carry_over_ledger_endpoint(client, db):
    location = make_location(db, share="10")
    contract = make_contract(db, price="100.00", start=date(2025, 1, 1))
    make_placement(db, contract, first_screen(db, location))

    snapshot_id = client.post("/snapshots", json={"year": 2026, "month": 1}).json()["snapshot"]["id"]
    client.post(f"/snapshots/{snapshot_id}/generate-invoices")
    payouts = client.post(f"/snapshots/{snapshot_id}/generate-payouts").json()["payouts"]
    assert payouts[0]["carried_over"] is True

    ledger = client.get("/payouts/carry-overs", params={"location_id": location.id}).json()
    assert [(e["period_month"], Decimal(e["amount"]), e["status"]) for e in ledger] == [
        (1, Decimal("10.00"), "pending"),
    ]

    balance = client.get("/payouts/carry-overs/balance", params={"location_id": location.id})
    assert balance.status_code == 200
    assert balance.json()["location_id"] == location.id
    assert Decimal(balance.json()["pending_balance"]) == Decimal("10.00")

    other = client.get("/payouts/carry-overs/balance", params={"location_id": 999}).json()
    assert Decimal(other["pending_balance"]) == Decimal("0.00")


def test_unknown_snapshot_is_404(client):
    response = client.post("/snapshots/999/lock")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_invalid_period_is_rejected(client):
    assert client.post("/snapshots", json={"year": 2026, "month": 13}).status_code == 422
