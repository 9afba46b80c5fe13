"""SQLAlchemy models for the conquest engine.

This module exports every table model and the declarative base.
"""

from .base import Base, TimestampCreatedMixin, TimestampMixin

# Competitor intelligence
from .competitor import Competitor, JobOutcome

# Execution scheduler
from .milestone import Milestone

# Territory store
from .territory import Territory

# Tier progression
from .tier import ProfessionalTier, RevenueEvent, TierChange

__all__ = [
    "Base",
    "Competitor",
    "JobOutcome",
    "Milestone",
    "ProfessionalTier",
    "RevenueEvent",
    "Territory",
    "TierChange",
    "TimestampCreatedMixin",
    "TimestampMixin",
]
