from __future__ import annotations

from datetime import time, timedelta
from typing import Any, List, Tuple

from mysql_conduit.codecs import Codec
from mysql_conduit.errors import FormatError, ProtocolViolation
from mysql_conduit.packet import Packet
from mysql_conduit.types import WireType
from mysql_conduit.values import DatabaseValue, TypeInfo, type_info


Duration = Tuple[bool, int, int, int, int, int]


def split_duration(value: timedelta) -> Duration:
    """Split into (is_negative, days, hours, minutes, seconds, microseconds)"""
    is_negative = value < timedelta(0)
    value = abs(value)
    hours, remainder = divmod(value.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return is_negative, value.days, hours, minutes, seconds, value.microseconds


def make_duration(
    is_negative: bool,
    days: int,
    hours: int = 0,
    minutes: int = 0,
    seconds: int = 0,
    microseconds: int = 0,
) -> timedelta:
    value = timedelta(
        days=days,
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        microseconds=microseconds,
    )
    return -value if is_negative else value


def parse_time(text: str) -> timedelta:
    """
    Parse `[-][D ]HH:MM[:SS[.ffffff]]`.

    Hours past 24 are folded into days, so "25:00:00" is one day and one hour.
    """
    s = text.strip()
    is_negative = s.startswith("-")
    if is_negative:
        s = s[1:]

    try:
        days = 0
        if " " in s:
            day_part, s = s.split(" ", 1)
            days = int(day_part)

        parts = s.split(":")
        if len(parts) not in (2, 3):
            raise FormatError(f"Invalid TIME value: {text!r}")

        secs, _, fraction = (parts[2] if len(parts) == 3 else "0").partition(".")
        hours = int(parts[0])
        minutes = int(parts[1])
        seconds = int(secs)
        microseconds = int(fraction[:6].ljust(6, "0")) if fraction else 0
    except ValueError as e:
        raise FormatError(f"Invalid TIME value: {text!r}") from e

    days += hours // 24
    hours %= 24
    return make_duration(is_negative, days, hours, minutes, seconds, microseconds)


def format_time(value: timedelta) -> str:
    is_negative, days, hours, minutes, seconds, microseconds = split_duration(value)
    sign = "-" if is_negative else ""
    return f"{sign}{days} {hours:02}:{minutes:02}:{seconds:02}.{microseconds:06}"


def to_timedelta(value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    if isinstance(value, time):
        return timedelta(
            hours=value.hour,
            minutes=value.minute,
            seconds=value.second,
            microseconds=value.microsecond,
        )
    return parse_time(str(value))


class TimeCodec(Codec):
    """
    TIME columns, decoded as `datetime.timedelta`.

    The binary form is a length byte (0, 5, 8 or 12) followed by the sign,
    a 4 byte day count, hours, minutes, seconds and 4 bytes of microseconds.
    """

    def __init__(self, wire_type: WireType = WireType.TIME):
        super().__init__(wire_type)

    def write(
        self, packet: Packet, value: Any, binary: bool = True, length: int = 0
    ) -> None:
        duration = to_timedelta(value)
        if not binary:
            packet.write_string(f"'{format_time(duration)}'")
            return

        is_negative, days, hours, minutes, seconds, microseconds = split_duration(
            duration
        )
        packet.write_byte(12 if microseconds else 8)
        packet.write_byte(1 if is_negative else 0)
        packet.write_uinteger(days, 4)
        packet.write_byte(hours)
        packet.write_byte(minutes)
        packet.write_byte(seconds)
        if microseconds:
            packet.write_uinteger(microseconds, 4)

    def read(
        self, packet: Packet, length: int = -1, is_null: bool = False
    ) -> DatabaseValue:
        if is_null:
            return self.null()
        if length != -1:
            return DatabaseValue(self.wire_type, parse_time(packet.read_string(length)))

        length = packet.read_byte()
        if length == 0:
            return self.null()
        if length not in (5, 8, 12):
            raise ProtocolViolation(f"Invalid TIME length {length}")

        is_negative = packet.read_byte() == 1
        days = packet.read_uinteger(4)
        hours = minutes = seconds = microseconds = 0
        if length >= 8:
            hours = packet.read_byte()
            minutes = packet.read_byte()
            seconds = packet.read_byte()
        if length == 12:
            microseconds = packet.read_uinteger(4)

        return DatabaseValue(
            self.wire_type,
            make_duration(is_negative, days, hours, minutes, seconds, microseconds),
        )

    def skip(self, packet: Packet) -> None:
        length = packet.read_byte()
        packet.position += length

    @classmethod
    def describe_type(cls, rows: List[TypeInfo]) -> None:
        rows.append(type_info("TIME", WireType.TIME))
