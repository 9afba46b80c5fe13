from datetime import datetime

from pydantic import Field, field_validator, model_validator

from conquest.domain.context import as_utc
from conquest.domain.enums import (
    MilestonePriority,
    MilestoneStatus,
    MilestoneType,
)

from .base import FilterModel, InputModel, ReadModel


class MilestoneCreate(InputModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    type: MilestoneType
    priority: MilestonePriority = MilestonePriority.MEDIUM
    planned_start_date: datetime
    planned_end_date: datetime
    assigned_to: str | None = None
    target_value: float | None = None

    @field_validator("planned_start_date", "planned_end_date")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _ordered_window(self) -> "MilestoneCreate":
        if self.planned_start_date >= self.planned_end_date:
            raise ValueError("planned_start_date must be before planned_end_date")
        return self


class MilestoneFilters(FilterModel):
    type: MilestoneType | None = None
    status: MilestoneStatus | None = None
    priority: MilestonePriority | None = None
    assigned_to: str | None = None


class MilestoneProgressUpdate(InputModel):
    progress_percentage: float = Field(..., ge=0.0, le=100.0)
    notes: str | None = None
    actual_value: float | None = None


class MilestoneRead(ReadModel):
    id: int
    title: str
    description: str
    type: MilestoneType
    status: MilestoneStatus
    priority: MilestonePriority
    assigned_to: str | None
    planned_start_date: datetime
    planned_end_date: datetime
    actual_start_date: datetime | None
    actual_end_date: datetime | None
    progress_percentage: float
    target_value: float | None
    actual_value: float | None
