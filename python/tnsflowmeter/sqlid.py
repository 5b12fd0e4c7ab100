"""Oracle ``SQL_ID`` computation used as the default statement fingerprint."""

from __future__ import annotations

import hashlib
import struct

SQL_ID_ALPHABET = "0123456789abcdfghjkmnpqrstuvwxyz"
SQL_ID_LENGTH = 13


def sql_id(sql_text: str) -> str:
    """Return the 13 character ``SQL_ID`` Oracle assigns to ``sql_text``.

    The database hashes the statement text plus a terminating NUL with MD5
    and renders the low 64 bits of the digest in base 32.
    """
    digest = hashlib.md5(sql_text.encode("utf-8") + b"\x00").digest()
    _, _, msb, lsb = struct.unpack("<IIII", digest)
    value = (msb << 32) | lsb

    chars = []
    for _ in range(SQL_ID_LENGTH):
        chars.append(SQL_ID_ALPHABET[value & 0x1F])
        value >>= 5
    return "".join(reversed(chars))


__all__ = ["SQL_ID_ALPHABET", "SQL_ID_LENGTH", "sql_id"]
