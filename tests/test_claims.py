import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

import pytest

from adslots.errors import TokenAlreadyClaimed, TokenExpired, TokenInvalid
from adslots.models.tables import CapacityReservations, ClaimGrants, WaitlistRequests
from adslots.services.waitlist import confirm_claim, consume_grant, inspect_claim, run_sweep, state
from adslots.services.waitlist.claims import RACE_LOST_MESSAGE
from adslots.utils.hashing import new_token

from conftest import fill_location, make_location

T = datetime(2026, 3, 10, 12, 0)


def _invited(db, email="piet@example.nl", sent_at=T, form_data=None):
    """An INVITED request with a known token and no slot holds."""
    token, token_hash = new_token()
    request = WaitlistRequests(
        company_name="Kapsalon Piet", contact_name="Piet", email=email,
        package_type="SINGLE", required_count=1, target_region_codes=["sittard"],
        form_data=form_data or {"phone": "0612345678"},
        status=state.INVITED, invite_token_hash=token_hash,
        invite_sent_at=sent_at, invite_expires_at=sent_at + timedelta(hours=48),
        created_at=sent_at, updated_at=sent_at,
    )
    db.add(request)
    db.commit()
    return request, token


def _status(db, request_id):
    db.expire_all()
    return db.get(WaitlistRequests, request_id).status


def test_inspect_valid_invite(db, redis):
    request, token = _invited(db)

    view = inspect_claim(db, redis, token, now=T + timedelta(hours=1))

    assert view.request_id == request.id
    assert view.package_type == "SINGLE"
    assert view.invite_expires_at == T + timedelta(hours=48)


def test_unknown_token_is_invalid(db, redis):
    with pytest.raises(TokenInvalid):
        inspect_claim(db, redis, "does-not-exist", now=T)


def test_invite_visited_after_49_hours_is_expired(db, redis):
    make_location(db, city="Sittard")
    request, token = _invited(db)

    with pytest.raises(TokenExpired):
        inspect_claim(db, redis, token, now=T + timedelta(hours=49))
    assert _status(db, request.id) == state.EXPIRED

    with pytest.raises(TokenExpired):
        confirm_claim(db, redis, token, now=T + timedelta(hours=49))
    assert _status(db, request.id) == state.EXPIRED


def test_confirm_takes_the_slot_and_issues_grant(db, redis):
    location = make_location(db, city="Sittard")
    request, token = _invited(db, form_data={"phone": "0612345678", "email": "spoofed@example.nl"})

    outcome = confirm_claim(
        db, redis, token,
        form_data={"kvk_number": "12345678", "company_name": "Spoofed BV"},
        now=T + timedelta(hours=2),
    )

    assert outcome.claimed is True
    assert outcome.status == state.CLAIMED
    assert outcome.grant_token
    assert outcome.grant_expires_at == T + timedelta(hours=2, minutes=30)

    db.expire_all()
    saved = db.get(WaitlistRequests, request.id)
    assert saved.status == state.CLAIMED
    assert saved.claimed_at == T + timedelta(hours=2)

    holds = db.query(CapacityReservations).filter(CapacityReservations.status == "active").all()
    assert [(h.location_id, h.kind) for h in holds] == [(location.id, "claim")]

    grant = db.query(ClaimGrants).one()
    assert grant.form_data["kvk_number"] == "12345678"
    assert grant.form_data["company_name"] == "Kapsalon Piet"
    assert grant.form_data["email"] == "piet@example.nl"
    assert grant.form_data["location_ids"] == [location.id]

    with pytest.raises(TokenAlreadyClaimed):
        confirm_claim(db, redis, token, now=T + timedelta(hours=3))


def test_concurrent_confirmations_for_one_slot_have_one_winner(file_session_factory, redis):
    setup = file_session_factory()
    location = make_location(setup, city="Sittard")
    location_id = location.id
    fill_location(setup, location, 19)
    invited = [_invited(setup, email=f"klant{i}@example.nl") for i in range(6)]
    request_ids = [request.id for request, _ in invited]
    tokens = [token for _, token in invited]
    setup.close()

    barrier = threading.Barrier(len(tokens))

    def confirm(token):
        session = file_session_factory()
        try:
            barrier.wait()
            return confirm_claim(session, redis, token, now=T + timedelta(hours=1))
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(tokens)) as pool:
        outcomes = list(pool.map(confirm, tokens))

    assert sum(o.claimed for o in outcomes) == 1
    assert all(o.message == RACE_LOST_MESSAGE for o in outcomes if not o.claimed)

    check = file_session_factory()
    try:
        statuses = [check.get(WaitlistRequests, request_id).status for request_id in request_ids]
        assert sorted(statuses) == [state.CLAIMED] + [state.WAITING] * 5

        losers = [check.get(WaitlistRequests, request_id) for request_id, o in zip(request_ids, outcomes) if not o.claimed]
        assert all(loser.invite_token_hash is None for loser in losers)
        assert all(loser.invite_expires_at is None for loser in losers)

        holds = check.query(CapacityReservations).filter(CapacityReservations.status == "active").all()
        assert [(h.location_id, h.kind) for h in holds] == [(location_id, "claim")]
    finally:
        check.close()


def test_invite_hold_blocks_other_claims(db, redis, session_factory):
    location = make_location(db, city="Sittard")
    contract = fill_location(db, location, 20)
    request, _ = _invited(db)
    request.status = state.WAITING
    request.invite_token_hash = None
    db.commit()

    contract.placements[0].is_active = False
    db.commit()
    run_sweep(redis, session_factory=session_factory, now=T)

    # The invite holds the only free slot; a check for someone else finds nothing
    stranger, stranger_token = _invited(db, email="stranger@example.nl")
    lost = confirm_claim(db, redis, stranger_token, now=T + timedelta(hours=1))
    assert lost.claimed is False

    db.expire_all()
    invited = db.get(WaitlistRequests, request.id)
    assert invited.status == state.INVITED


def test_grant_is_consumed_once(db, redis):
    make_location(db, city="Sittard")
    request, token = _invited(db)
    outcome = confirm_claim(db, redis, token, now=T)

    form_data = consume_grant(db, redis, outcome.grant_token, now=T + timedelta(minutes=5))
    assert form_data["waitlist_request_id"] == request.id

    consumed = db.query(CapacityReservations).filter(CapacityReservations.status == "consumed").count()
    assert consumed == 1

    with pytest.raises(TokenAlreadyClaimed):
        consume_grant(db, redis, outcome.grant_token, now=T + timedelta(minutes=6))


def test_grant_expires(db, redis):
    make_location(db, city="Sittard")
    _, token = _invited(db)
    outcome = confirm_claim(db, redis, token, now=T)

    with pytest.raises(TokenExpired):
        consume_grant(db, redis, outcome.grant_token, now=T + timedelta(minutes=31))


def test_unknown_grant_is_invalid(db, redis):
    with pytest.raises(TokenInvalid):
        consume_grant(db, redis, "nope", now=T)
