from __future__ import annotations

from enum import Enum
from typing import Dict


class CharacterSet(Enum):
    """
    Server character sets the client can encode and decode.

    Each member carries the id of its default collation (sent in the handshake),
    the python codec used for text, and the maximum bytes per character.
    """

    big5 = (1, "big5", 2)
    latin1 = (8, "cp1252", 1)
    latin2 = (9, "iso8859_2", 1)
    ascii = (11, "ascii", 1)
    ujis = (12, "euc_jp", 3)
    sjis = (13, "shift_jis", 2)
    hebrew = (16, "iso8859_8", 1)
    euckr = (19, "euc_kr", 2)
    koi8u = (22, "koi8_u", 1)
    gb2312 = (24, "gb2312", 2)
    greek = (25, "iso8859_7", 1)
    cp1250 = (26, "cp1250", 1)
    gbk = (28, "gbk", 2)
    utf8 = (33, "utf8", 3)
    utf8mb4 = (45, "utf8", 4)
    cp1251 = (51, "cp1251", 1)
    utf16 = (54, "utf_16_be", 4)
    utf16le = (56, "utf_16_le", 4)
    cp1256 = (57, "cp1256", 1)
    cp1257 = (59, "cp1257", 1)
    utf32 = (60, "utf_32_be", 4)
    binary = (63, "latin1", 1)
    cp932 = (95, "cp932", 2)
    gb18030 = (248, "gb18030", 4)

    def __init__(self, collation: int, codec: str, max_length: int):
        self.default_collation = collation
        self.codec = codec
        self.max_length = max_length

    @classmethod
    def from_name(cls, name: str) -> CharacterSet:
        key = name.strip().lower()
        key = ALIASES.get(key, key.replace("-", ""))
        return cls[key]

    @classmethod
    def from_collation(cls, collation: int) -> CharacterSet:
        """Character set of a collation id, utf8mb4 if the id is unknown"""
        return COLLATIONS.get(collation, cls.utf8mb4)

    def decode(self, b: bytes) -> str:
        return b.decode(self.codec)

    def encode(self, s: str) -> bytes:
        return s.encode(self.codec)


# Older or alternate names servers and connection strings use
ALIASES = {
    "utf8mb3": "utf8",
    "cp1252": "latin1",
    "hp8": "latin1",
    "dec8": "latin1",
    "swe7": "latin1",
    "eucjpms": "ujis",
    "euc_kr": "euckr",
    "win1250": "cp1250",
    "win1251": "cp1251",
    "usa7": "ascii",
}

COLLATIONS: Dict[int, CharacterSet] = {cs.default_collation: cs for cs in CharacterSet}
COLLATIONS.update(
    {
        # utf8_bin, utf8mb4_bin, latin1_bin and the 0900 default
        83: CharacterSet.utf8,
        46: CharacterSet.utf8mb4,
        47: CharacterSet.latin1,
        255: CharacterSet.utf8mb4,
    }
)
COLLATIONS.update({i: CharacterSet.utf8 for i in range(192, 216)})
COLLATIONS.update({i: CharacterSet.utf8mb4 for i in range(224, 248)})
