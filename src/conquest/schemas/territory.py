from datetime import datetime

from pydantic import Field

from conquest.domain.enums import TerritoryStatus, TerritoryType

from .base import FilterModel, InputModel, ReadModel


class TerritoryCreate(InputModel):
    name: str = Field(..., min_length=1, description="Display name of the territory")
    type: TerritoryType = Field(..., description="residential/commercial/mixed")
    county: str | None = None
    state: str | None = None
    city: str | None = None
    zip_code: str | None = None
    population: int | None = Field(None, ge=0)
    households: int | None = Field(None, ge=0)
    median_income: float | None = Field(None, ge=0.0)
    tree_canopy_coverage: float | None = Field(None, ge=0.0, le=100.0)


class TerritoryFilters(FilterModel):
    county: str | None = None
    state: str | None = None
    city: str | None = None
    status: TerritoryStatus | None = None
    type: TerritoryType | None = None
    professional_id: str | None = None


class TerritoryRead(ReadModel):
    id: int
    name: str
    type: TerritoryType
    county: str | None
    state: str | None
    city: str | None
    zip_code: str | None
    status: TerritoryStatus
    professional_id: str | None
    exclusivity_fee: float | None
    protection_started_at: datetime | None
    protected_until: datetime | None
    opportunity_score: int
    version: int
