from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from conquest.errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class InputModel(BaseModel):
    """Base for caller-supplied payloads."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid", allow_inf_nan=False)


class FilterModel(BaseModel):
    """Base for filter records; unset fields impose no filter."""

    model_config = ConfigDict(extra="forbid")

    def active(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


def validate_input(
    model_cls: type[ModelT], data: ModelT | Mapping[str, Any] | None, entity: str
) -> ModelT:
    """Coerce ``data`` into ``model_cls`` or raise the engine's ValidationError."""

    if isinstance(data, model_cls):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    if data is not None and not isinstance(data, Mapping):
        raise ValidationError(
            f"Invalid {entity}: expected a mapping, got {type(data).__name__}",
            entity=entity,
            fields={entity: "expected a mapping"},
        )
    try:
        return model_cls.model_validate(dict(data or {}))
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc, entity) from exc

