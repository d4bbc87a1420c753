from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from line_attendance.config import LED_INDEX_MAX
from line_attendance.models import STATIONS


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class OperatorCreate(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    employee_id: str = Field(min_length=1, max_length=64)
    station: str
    image_path: str = Field(min_length=1, max_length=255)
    led_index: int | None = Field(default=None, ge=0, le=LED_INDEX_MAX)

    @field_validator("station")
    @classmethod
    def _known_station(cls, value: str) -> str:
        if value not in STATIONS:
            raise ValueError(f"Unknown station '{value}'.")
        return value


class OperatorResponse(CamelModel):
    id: str
    line: str
    name: str
    employee_id: str
    station: str
    image_path: str
    led_index: int | None
    created_at: datetime | None = None
