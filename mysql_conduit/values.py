from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from mysql_conduit.types import WireType


@dataclass(frozen=True)
class DatabaseValue:
    """
    A single value read from or written to the wire.

    Decimals are held as their exact digit string. Durations are
    `datetime.timedelta` and spatial points are `Geometry` instances.

    Args:
        wire_type: type code of the column the value belongs to
        value: native value, None when `is_null`
        is_null: whether the value is SQL NULL
    """

    wire_type: WireType
    value: Any = None
    is_null: bool = False

    def __post_init__(self) -> None:
        if self.is_null and self.value is not None:
            raise ValueError("A null DatabaseValue cannot carry a value")

    @classmethod
    def null(cls, wire_type: WireType) -> DatabaseValue:
        return cls(wire_type, is_null=True)

    def to_decimal(self) -> Optional[Decimal]:
        if self.is_null:
            return None
        return Decimal(str(self.value))

    def to_double(self) -> Optional[float]:
        if self.is_null:
            return None
        return float(self.value)


@dataclass
class TypeInfo:
    """One row of the DataTypes metadata collection"""

    type_name: str
    provider_type: WireType
    column_size: int = 0
    create_format: Optional[str] = None
    create_parameters: Optional[str] = None
    native_data_type: Optional[str] = None
    is_auto_incrementable: bool = False
    is_case_sensitive: bool = False
    is_fixed_length: bool = True
    is_fixed_precision_scale: bool = True
    is_long: bool = False
    is_nullable: bool = True
    is_searchable: bool = True
    is_searchable_with_like: bool = False
    is_unsigned: bool = False
    maximum_scale: int = 0
    minimum_scale: int = 0
    is_concurrency_type: Optional[bool] = None
    is_literal_supported: bool = False
    literal_prefix: Optional[str] = None
    literal_suffix: Optional[str] = None


def type_info(type_name: str, provider_type: WireType, **kwargs: Any) -> TypeInfo:
    """Build a metadata row, defaulting create_format to the type name"""
    kwargs.setdefault("create_format", type_name)
    return TypeInfo(type_name=type_name, provider_type=provider_type, **kwargs)
