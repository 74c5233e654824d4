# adslots/services/waitlist/state.py
"""
Waitlist request state machine.

    WAITING ──sweep──▶ INVITED ──claim──▶ CLAIMED
       ▲                 │ │
       │                 │ └──expiry──▶ EXPIRED ──admin_reset──┐
       │                 └──revert──▶ WAITING                  │
       └───────────────────────────────────────────────────────┘
    WAITING / INVITED ──cancel──▶ CANCELLED ──admin_reset──▶ WAITING

`revert` is taken by the system only: a claim that lost the capacity race,
or an invite that could not be dispatched. Every other pair is rejected.
"""

import logging

from ...errors import InvalidTransition

logger = logging.getLogger(__name__)

WAITING = "WAITING"
INVITED = "INVITED"
CLAIMED = "CLAIMED"
EXPIRED = "EXPIRED"
CANCELLED = "CANCELLED"

STATUSES = (WAITING, INVITED, CLAIMED, EXPIRED, CANCELLED)

# (from, to) → trigger allowed to take the edge
TRANSITIONS: dict[tuple[str, str], str] = {
    (WAITING, INVITED): "sweep",
    (INVITED, CLAIMED): "claim",
    (INVITED, EXPIRED): "expiry",
    (INVITED, WAITING): "revert",
    (WAITING, CANCELLED): "cancel",
    (INVITED, CANCELLED): "cancel",
    (EXPIRED, WAITING): "admin_reset",
    (CANCELLED, WAITING): "admin_reset",
}


def can_transition(current: str, target: str, trigger: str) -> bool:
    return TRANSITIONS.get((current, target)) == trigger


def transition(request, target: str, trigger: str) -> None:
    """
    Move a waitlist request to `target`.

    Raises:
        InvalidTransition: the edge does not exist or needs another trigger
    """
    current = request.status
    if not can_transition(current, target, trigger):
        raise InvalidTransition(
            f"Statuswijziging {current} → {target} is niet toegestaan.",
            request_id=request.id,
            trigger=trigger,
        )
    request.status = target
    logger.info(f"Waitlist request {request.id}: {current} → {target} ({trigger})")
