from __future__ import annotations

from typing import Any, Dict, List, Type

from mysql_conduit.codecs import (
    BINARY_TYPES,
    INTEGER_TYPES,
    STRING_TYPES,
    BinaryCodec,
    BitCodec,
    Codec,
    DecimalCodec,
    FloatingPointCodec,
    GuidCodec,
    IntegerCodec,
    StringCodec,
)
from mysql_conduit.errors import ErrorCode, MysqlError
from mysql_conduit.geometry import GeometryCodec
from mysql_conduit.temporal import TimeCodec
from mysql_conduit.types import WireType
from mysql_conduit.values import TypeInfo

CODECS: Dict[WireType, Type[Codec]] = {
    **{wire_type: IntegerCodec for wire_type in INTEGER_TYPES},
    **{wire_type: StringCodec for _, wire_type, _ in STRING_TYPES},
    **{wire_type: BinaryCodec for _, wire_type, _, _ in BINARY_TYPES},
    WireType.VAR_STRING: StringCodec,
    WireType.BIT: BitCodec,
    WireType.DECIMAL: DecimalCodec,
    WireType.NEW_DECIMAL: DecimalCodec,
    WireType.DOUBLE: FloatingPointCodec,
    WireType.FLOAT: FloatingPointCodec,
    WireType.TIME: TimeCodec,
    WireType.GEOMETRY: GeometryCodec,
    WireType.GUID: GuidCodec,
}

# Order of the DataTypes collection
CODEC_TYPES: List[Type[Codec]] = [
    BitCodec,
    BinaryCodec,
    TimeCodec,
    StringCodec,
    FloatingPointCodec,
    IntegerCodec,
    DecimalCodec,
    GeometryCodec,
    GuidCodec,
]


def get_codec(wire_type: WireType, **options: Any) -> Codec:
    """
    Get a codec for a wire type.

    Args:
        wire_type: type of the column
        options: codec specific flags, e.g. `treat_as_boolean` or `old_guids`
    """
    codec = CODECS.get(wire_type)
    if codec is None:
        raise MysqlError(
            f"Unsupported wire type: {wire_type!r}", ErrorCode.NOT_SUPPORTED_YET
        )
    return codec(wire_type, **options)  # type: ignore[call-arg]


def describe_types() -> List[TypeInfo]:
    rows: List[TypeInfo] = []
    for codec in CODEC_TYPES:
        codec.describe_type(rows)
    return rows
