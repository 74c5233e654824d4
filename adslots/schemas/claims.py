# adslots/schemas/claims.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .availability import PublicModel


class ClaimInfo(PublicModel):
    """Response for GET /claim/{token}"""
    request_id: int
    company_name: str
    contact_name: str
    package_type: str
    required_count: int
    target_region_codes: list[str]
    invite_expires_at: datetime


class ClaimConfirmRequest(PublicModel):
    """Request body for POST /claim/{token}/confirm"""
    form_data: dict = Field(default_factory=dict)


class ClaimConfirmResponse(PublicModel):
    claimed: bool
    request_id: int
    status: str
    message: str
    grant_token: Optional[str] = None
    grant_expires_at: Optional[datetime] = None


class GrantConsumeResponse(BaseModel):
    """Captured signup data handed to onboarding."""
    form_data: dict
