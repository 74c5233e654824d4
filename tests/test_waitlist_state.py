from itertools import product
from types import SimpleNamespace

import pytest

from adslots.errors import InvalidTransition
from adslots.services.waitlist import state

ALLOWED = {
    (state.WAITING, state.INVITED, "sweep"),
    (state.INVITED, state.CLAIMED, "claim"),
    (state.INVITED, state.EXPIRED, "expiry"),
    (state.INVITED, state.WAITING, "revert"),
    (state.WAITING, state.CANCELLED, "cancel"),
    (state.INVITED, state.CANCELLED, "cancel"),
    (state.EXPIRED, state.WAITING, "admin_reset"),
    (state.CANCELLED, state.WAITING, "admin_reset"),
}
TRIGGERS = {"sweep", "claim", "expiry", "revert", "cancel", "admin_reset"}


@pytest.mark.parametrize("current,target,trigger", sorted(ALLOWED))
def test_allowed_edges(current, target, trigger):
    request = SimpleNamespace(id=1, status=current)
    state.transition(request, target, trigger)
    assert request.status == target


def test_every_other_edge_is_rejected():
    for current, target, trigger in product(state.STATUSES, state.STATUSES, TRIGGERS):
        if (current, target, trigger) in ALLOWED:
            continue
        request = SimpleNamespace(id=1, status=current)
        with pytest.raises(InvalidTransition):
            state.transition(request, target, trigger)
        assert request.status == current


def test_claimed_is_terminal():
    assert not any(current == state.CLAIMED for current, _ in state.TRANSITIONS)


def test_admin_reset_only_from_terminal_states():
    assert not state.can_transition(state.INVITED, state.WAITING, "admin_reset")
    assert not state.can_transition(state.CLAIMED, state.WAITING, "admin_reset")
