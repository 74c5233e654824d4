# adslots/schemas/inventory.py
# Capacity-changing facts supplied by provider sync.

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class LocationUpdate(BaseModel):
    name: Optional[str] = None
    city: Optional[str] = None
    region_code: Optional[str] = None
    status: Optional[Literal["active", "inactive"]] = None
    ready_for_ads: Optional[bool] = None
    revenue_share_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    payout_type: Optional[Literal["revshare", "fixed"]] = None
    fixed_payout_amount: Optional[Decimal] = Field(None, ge=0)
    visitors_per_week: Optional[int] = Field(None, ge=0)


class LocationRead(BaseModel):
    id: int
    name: str
    city: Optional[str] = None
    region_code: Optional[str] = None
    status: str
    ready_for_ads: bool
    revenue_share_percent: Decimal
    payout_type: str
    fixed_payout_amount: Optional[Decimal] = None
    visitors_per_week: Optional[int] = None

    model_config = {"from_attributes": True}


class ScreenUpdate(BaseModel):
    name: Optional[str] = None
    weight_override: Optional[Decimal] = Field(None, gt=0, le=10)


class ScreenRead(BaseModel):
    id: int
    location_id: int
    name: Optional[str] = None
    status: str
    weight_override: Optional[Decimal] = None

    model_config = {"from_attributes": True}


class ContractUpdate(BaseModel):
    monthly_price_ex_vat: Optional[Decimal] = Field(None, ge=0)
    vat_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ContractRead(BaseModel):
    id: int
    advertiser_id: int
    monthly_price_ex_vat: Decimal
    vat_percent: Decimal
    status: str  # draft, signed, active, cancelled
    signed_at: Optional[datetime] = None
    start_date: date
    end_date: Optional[date] = None

    model_config = {"from_attributes": True}


class PlacementCreate(BaseModel):
    contract_id: int
    screen_id: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool = True
    seconds_per_loop: int = Field(10, gt=0)
    plays_per_hour: int = Field(6, gt=0)


class PlacementUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None
    seconds_per_loop: Optional[int] = Field(None, gt=0)
    plays_per_hour: Optional[int] = Field(None, gt=0)


class PlacementRead(BaseModel):
    id: int
    contract_id: int
    screen_id: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool
    seconds_per_loop: int
    plays_per_hour: int

    model_config = {"from_attributes": True}
