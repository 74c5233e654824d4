# adslots/schemas/waitlist.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .availability import CapacityCheckResponse, PublicModel


# ──────────────────────────────────────────────────────────────────────────────
# Public signup
# ──────────────────────────────────────────────────────────────────────────────

class WaitlistCreate(PublicModel):
    """Request body for POST /waitlist"""
    company_name: str = Field(..., min_length=1)
    contact_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    package_type: str
    target_region_codes: list[str] = Field(default_factory=list)
    form_data: dict = Field(default_factory=dict, description="Remaining signup form fields")


class WaitlistCreateResponse(PublicModel):
    admitted: bool
    waitlist_request_id: Optional[int] = None
    status: Optional[str] = None
    message: str
    capacity: CapacityCheckResponse


# ──────────────────────────────────────────────────────────────────────────────
# Admin
# ──────────────────────────────────────────────────────────────────────────────

class WaitlistRequestRead(BaseModel):
    id: int
    company_name: str
    contact_name: str
    email: str
    package_type: str
    required_count: int
    target_region_codes: list[str]
    status: str
    last_checked_at: Optional[datetime] = None
    invite_sent_at: Optional[datetime] = None
    invite_expires_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SweepResponse(BaseModel):
    """Result of POST /admin/waitlist/trigger-check"""
    expired: int
    checked: int
    invited: int
    errors: int

    model_config = {"from_attributes": True}
