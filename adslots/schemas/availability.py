# adslots/schemas/availability.py
"""
Pydantic schemas for the public availability and capacity API.

Public signup endpoints speak camelCase on the wire (the signup frontend's
convention); field names stay snake_case and either form is accepted on input.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PublicModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class CityAvailabilityRead(PublicModel):
    """City aggregate of sellable locations."""
    code: str
    label: str
    screens_total: int
    screens_with_space: int
    screens_full: int


class AvailabilityStats(PublicModel):
    total_sellable_screens: int
    total_screens_with_space: int
    total_screens_full: int
    cities_with_zero_space: list[str]


class CapacityCheckRequest(PublicModel):
    """Request body for POST /capacity/check"""
    package_type: str = Field(..., description="SINGLE | TRIPLE | TEN | CUSTOM")
    target_region_codes: list[str] = Field(default_factory=list, description="City codes; empty = anywhere")


class CapacityCheckResponse(PublicModel):
    is_available: bool
    available_screens: int
    required_screens: int
    top_reasons: list[str]
    next_check_at: datetime


class CacheInvalidateResponse(BaseModel):
    deleted_keys: int
