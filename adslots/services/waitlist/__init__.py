# adslots/services/waitlist/__init__.py
"""
Waitlist module.

Manager: admission decision, admin cancel/reset
Sweeper: periodic single-flight re-evaluation and claim invites
Claims: claim inspection, locked confirmation, onboarding grants
"""

from . import state
from .manager import AdmissionResult, cancel_request, list_requests, reset_request, submit_request
from .sweeper import SweepStats, run_sweep, waitlist_sweep_loop
from .claims import ClaimOutcome, ClaimView, confirm_claim, consume_grant, inspect_claim

__all__ = [
    "state",
    "AdmissionResult",
    "submit_request",
    "list_requests",
    "cancel_request",
    "reset_request",
    "SweepStats",
    "run_sweep",
    "waitlist_sweep_loop",
    "ClaimOutcome",
    "ClaimView",
    "inspect_claim",
    "confirm_claim",
    "consume_grant",
]
