from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional
from decimal import Decimal
from datetime import datetime


class PropertyResponse(BaseModel):
    """Property record as exposed to the frontend (camelCase keys, decimals as strings)."""
    id: int
    title: str
    description: str
    location: str
    property_type: str
    total_value: Decimal
    total_tokens: int
    available_tokens: int
    expected_roi: Decimal
    min_investment: Decimal
    image_url: str
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )
