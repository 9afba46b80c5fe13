"""Transport-agnostic result envelopes.

``run_operation`` turns "return a value or raise a ConquestError" into
``{"success": True, "data": ...}`` / ``{"success": False, "error": {...}}``.
ORM entities in the data are rendered through their read schemas.
"""

from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from pydantic import BaseModel

from conquest.errors import ConquestError
from conquest.models import (
    Competitor,
    JobOutcome,
    Milestone,
    ProfessionalTier,
    Territory,
    TierChange,
)
from conquest.schemas import (
    CompetitorRead,
    JobOutcomeRead,
    MilestoneRead,
    ProfessionalTierRead,
    TerritoryRead,
    TierChangeRead,
)

ItemT = TypeVar("ItemT")

READ_MODELS: dict[type, type[BaseModel]] = {
    Territory: TerritoryRead,
    Competitor: CompetitorRead,
    JobOutcome: JobOutcomeRead,
    ProfessionalTier: ProfessionalTierRead,
    TierChange: TierChangeRead,
    Milestone: MilestoneRead,
}


def to_data(value: Any) -> Any:
    """Render entities (possibly nested in lists/dicts) as plain data."""

    read_model = READ_MODELS.get(type(value))
    if read_model is not None:
        return read_model.model_validate(value).model_dump(mode="json")
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {key: to_data(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [to_data(item) for item in value]
    return value


def run_operation(operation: Callable[..., Any], *args: Any, **kwargs: Any) -> dict[str, Any]:
    """Call ``operation`` and wrap its outcome in a success or failure envelope.

    Only :class:`ConquestError` is converted; anything else is a bug and
    propagates.
    """
    try:
        result = operation(*args, **kwargs)
    except ConquestError as exc:
        return {"success": False, **exc.to_payload()}
    return {"success": True, "data": to_data(result)}


def run_batch(
    items: Iterable[ItemT], operation: Callable[[ItemT], Any]
) -> dict[str, Any]:
    """Apply ``operation`` to every item and label each outcome.

    Returns:
        ``executed_count``, ``success_count``, ``failure_count`` and a
        ``results`` list with one envelope (plus ``index``) per item
    """
    results = []
    for index, item in enumerate(items):
        envelope = run_operation(operation, item)
        results.append({"index": index, **envelope})

    success_count = sum(1 for entry in results if entry["success"])
    return {
        "executed_count": len(results),
        "success_count": success_count,
        "failure_count": len(results) - success_count,
        "results": results,
    }
