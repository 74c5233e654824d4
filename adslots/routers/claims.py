# adslots/routers/claims.py
"""
Claim endpoints.

GET  /claim/{token}                           - validate invite (404 / 410)
POST /claim/{token}/confirm                   - take the slot, or back to the waitlist
POST /internal/claim-grants/{token}/consume   - onboarding redeems the grant
"""

from fastapi import APIRouter, Depends
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import get_redis
from ..schemas.claims import ClaimConfirmRequest, ClaimConfirmResponse, ClaimInfo, GrantConsumeResponse
from ..services.waitlist import confirm_claim, consume_grant, inspect_claim

router = APIRouter(tags=["claims"])


@router.get("/claim/{token}", response_model=ClaimInfo)
def get_claim(
    token: str,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    return inspect_claim(db, redis, token)


@router.post("/claim/{token}/confirm", response_model=ClaimConfirmResponse)
def confirm(
    token: str,
    data: ClaimConfirmRequest | None = None,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    """
    Losing the capacity race is answered with 200 and claimed=false: the
    request is back on the waitlist.
    """
    form_data = data.form_data if data else None
    return confirm_claim(db, redis, token, form_data=form_data)


@router.post("/internal/claim-grants/{token}/consume", response_model=GrantConsumeResponse)
def consume(
    token: str,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    return GrantConsumeResponse(form_data=consume_grant(db, redis, token))
