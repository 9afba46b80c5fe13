"""Request-scoped caller identity and clock."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from conquest.domain.enums import CallerRole


def utc_now() -> datetime:
    """Get current UTC time with timezone awareness."""

    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Convert to UTC, treating naive datetimes as already UTC.

    Storage drops the offset, so every datetime handed to it must be UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def resolve_now(now: datetime | None) -> datetime:
    """The given clock in UTC, or the current time."""

    return as_utc(now) if now is not None else utc_now()


@dataclass(frozen=True, slots=True)
class CallerContext:
    """Already-authenticated caller passed into every mutating operation.

    ``now`` is the clock for the whole request so that every timestamp written
    by one operation agrees. It is normalized to UTC on construction.
    """

    caller_id: str
    role: CallerRole = CallerRole.PROFESSIONAL
    now: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "now", as_utc(self.now))

    @property
    def is_admin(self) -> bool:
        return self.role == CallerRole.ADMIN

    def acts_for(self, professional_id: str) -> bool:
        """True when the caller may act on behalf of ``professional_id``."""

        return self.is_admin or self.caller_id == professional_id


def system_context(now: datetime | None = None) -> CallerContext:
    """Context used by scheduled maintenance jobs."""

    return CallerContext(caller_id="system", role=CallerRole.ADMIN, now=resolve_now(now))


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
