"""Strict pydantic bases and the validation bridge into domain exceptions."""

from __future__ import annotations

from typing import Any, Mapping, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from referral_engine.core.exceptions import ValidationException

M = TypeVar("M", bound=BaseModel)


class StrictModel(BaseModel):
    """Forbid extras, validate defaults and assignments."""

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
        validate_assignment=True,
    )


class StrictRequestModel(StrictModel):
    """Request payloads: strict and immutable once validated."""

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
        frozen=True,
    )


def coerce_model(model_cls: Type[M], data: Union[M, Mapping[str, Any], None]) -> M:
    """
    Return ``data`` as ``model_cls``.

    Mappings are validated; pydantic errors surface as ``ValidationException``
    with the field errors in ``details``.
    """
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(dict(data or {}))
    except ValidationError as exc:
        raise ValidationException(
            f"Invalid {model_cls.__name__}",
            code="VALIDATION_ERROR",
            details={
                "errors": [
                    {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                    for err in exc.errors()
                ]
            },
        ) from exc
