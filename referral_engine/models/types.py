"""Shared column helpers for the referral engine models."""

from __future__ import annotations

from enum import Enum
from typing import Type

from sqlalchemy import Enum as SAEnum, Numeric

# Money columns: two decimal places, surfaced as Decimal
MONEY = Numeric(10, 2, asdecimal=True)


def enum_column(enum_cls: Type[Enum], name: str) -> SAEnum:
    """String-backed enum column that stores the member values."""

    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        validate_strings=True,
        values_callable=lambda cls: [member.value for member in cls],
    )
