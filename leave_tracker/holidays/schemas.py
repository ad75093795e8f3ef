"""Holiday Pydantic v2 schemas."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from leave_tracker.common.constants import HolidayType


class HolidayCreate(BaseModel):
    """Payload for declaring a holiday."""

    name: str = Field(..., min_length=1, max_length=150)
    date: dt.date
    holiday_type: HolidayType = HolidayType.national


class HolidayUpdate(BaseModel):
    """Partial update; omitted fields keep their value."""

    name: Optional[str] = Field(None, min_length=1, max_length=150)
    date: Optional[dt.date] = None
    holiday_type: Optional[HolidayType] = None


class HolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    date: dt.date
    holiday_type: HolidayType
    created_at: dt.datetime
