from datetime import datetime

from pydantic import Field, PositiveFloat

from conquest.domain.enums import CompetitorType, JobOutcomeKind, ThreatLevel

from .base import FilterModel, InputModel, ReadModel


class CompetitorCreate(InputModel):
    name: str = Field(..., min_length=1, description="Business name")
    type: CompetitorType = Field(..., description="Business shape of the competitor")
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    estimated_revenue: float | None = Field(None, ge=0.0)
    employee_count: int | None = Field(None, ge=0)
    service_areas: list[str] | None = None
    pricing: dict[str, PositiveFloat] | None = Field(
        None, description="Listed price per service type"
    )


class CompetitorFilters(FilterModel):
    territory_id: int | None = None
    city: str | None = None
    state: str | None = None
    type: CompetitorType | None = None
    threat_level: ThreatLevel | None = None


class JobOutcomeCreate(InputModel):
    outcome: JobOutcomeKind = Field(..., description="won/lost from our side")
    job_value: float = Field(..., gt=0.0)
    our_bid: float = Field(..., gt=0.0)
    their_bid: float | None = Field(None, gt=0.0)
    professional_id: str | None = Field(None, min_length=1)


class JobOutcomeBatchItem(JobOutcomeCreate):
    competitor_id: int


class CompetitorRead(ReadModel):
    id: int
    territory_id: int | None
    name: str
    type: CompetitorType
    city: str | None
    state: str | None
    presence_score: int
    jobs_won_against: int
    jobs_lost_to: int
    value_won: float
    value_lost: float
    average_bid_gap: float | None
    threat_score: float
    threat_level: ThreatLevel
    win_rate: float


class JobOutcomeRead(ReadModel):
    id: int
    competitor_id: int
    outcome: JobOutcomeKind
    job_value: float
    our_bid: float
    their_bid: float | None
    professional_id: str | None
    recorded_at: datetime
