from __future__ import annotations

import sys
from collections.abc import Iterator


# Characters MySQL treats as a backslash or a quote in some character set
BACKSLASH_CHARS = "\u005c\u00a5\u0160\u20a9\u2216\ufe68\uff3c"
QUOTE_CHARS = (
    "\u0022\u0027\u0060\u00b4\u02b9\u02ba\u02bb\u02bc\u02c8\u02ca\u02cb"
    "\u02d9\u0300\u0301\u2018\u2019\u201a\u2032\u2035\u275b\u275c\uff07"
)
_ESCAPED_CHARS = frozenset(BACKSLASH_CHARS + QUOTE_CHARS)

_ESCAPED_BYTES = {
    0: b"\\0",
    ord("\\"): b"\\\\",
    ord("'"): b"\\'",
    ord('"'): b'\\"',
}


class seq(Iterator):
    """Auto-incrementing sequence with an optional maximum size"""

    def __init__(self, size: int | None = None):
        self.size = size
        self.value = 0

    def __next__(self) -> int:
        value = self.value
        self.value = self.value + 1
        if self.size:
            self.value = self.value % self.size
        return value

    def reset(self) -> None:
        self.value = 0


def xor(a: bytes, b: bytes) -> bytes:
    # Fast XOR implementation, according to https://stackoverflow.com/questions/29408173/byte-operations-xor-in-python
    a, b = a[: len(b)], b[: len(a)]
    int_b = int.from_bytes(b, sys.byteorder)
    int_a = int.from_bytes(a, sys.byteorder)
    int_enc = int_b ^ int_a
    return int_enc.to_bytes(len(b), sys.byteorder)


def escape_string(value: str) -> str:
    """Backslash-escape every quote or backslash lookalike in `value`"""
    return "".join("\\" + c if c in _ESCAPED_CHARS else c for c in value)


def escape_bytes(value: bytes) -> bytes:
    return b"".join(_ESCAPED_BYTES.get(b, bytes((b,))) for b in value)
