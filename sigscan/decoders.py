"""
PDF Field Decoders
==================
Decoding helpers for the two signature dictionary fields we read:

    - Literal strings (/Name): optional UTF-16BE with a FE FF marker,
      otherwise taken as UTF-8/ASCII-compatible bytes.
    - Dates (/M): D:YYYYMMDDHHmmSS... normalized to "YYYY-MM-DD HH:MM:SS".

Both are pure functions. Timezone suffixes are ignored and no calendar
validation is performed.
"""

from __future__ import annotations

import re
from typing import Optional

UTF16BE_BOM = b"\xfe\xff"

# Minimum digits for a usable date (YYYYMMDD)
MIN_DATE_DIGITS = 8
MAX_DATE_DIGITS = 14

# Single-character escapes inside a PDF literal string
_SIMPLE_ESCAPES = {
    ord("n"): b"\n",
    ord("r"): b"\r",
    ord("t"): b"\t",
    ord("b"): b"\b",
    ord("f"): b"\f",
    ord("("): b"(",
    ord(")"): b")",
    ord("\\"): b"\\",
}

_ESCAPE_PATTERN = re.compile(rb"\\(?:([0-7]{1,3})|(\r\n|\r|\n)|(.))", re.DOTALL)


class DecodeError(ValueError):
    """Raised when a PDF string payload cannot be decoded."""


def unescape_literal(payload: bytes) -> bytes:
    """
    Resolve backslash escapes of a PDF literal string body.

    Unknown escapes drop the backslash, an escaped end-of-line is a line
    continuation and octal escapes are truncated to one byte.
    """
    def _replace(match: re.Match) -> bytes:
        octal, newline, char = match.groups()
        if octal is not None:
            return bytes([int(octal, 8) & 0xFF])
        if newline is not None:
            return b""
        return _SIMPLE_ESCAPES.get(char[0], char)

    return _ESCAPE_PATTERN.sub(_replace, payload)


def decode_pdf_string(payload: bytes) -> str:
    """
    Decode a PDF literal-string payload to text.

    Args:
        payload: Raw bytes between the string delimiters.

    Returns:
        The decoded text.

    Raises:
        DecodeError: If a UTF-16BE payload is malformed.
    """
    payload = bytes(payload)

    if payload.startswith(UTF16BE_BOM):
        try:
            return payload[len(UTF16BE_BOM):].decode("utf-16-be")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Malformed UTF-16BE string: {e}") from e

    # PDFDocEncoding high-bit characters are not mapped
    return payload.decode("utf-8", errors="replace")


def parse_pdf_date(digits: str) -> Optional[str]:
    """
    Normalize the digit run of a PDF date to "YYYY-MM-DD HH:MM:SS".

    Args:
        digits: Date body with the "D:" prefix already stripped.

    Returns:
        The timestamp string, or None when fewer than 8 digits are given.
    """
    date_str = digits[:MAX_DATE_DIGITS]

    if len(date_str) < MIN_DATE_DIGITS:
        return None

    year = date_str[0:4]
    month = date_str[4:6]
    day = date_str[6:8]
    hour = date_str[8:10] if len(date_str) >= 10 else "00"
    minute = date_str[10:12] if len(date_str) >= 12 else "00"
    second = date_str[12:14] if len(date_str) >= 14 else "00"

    return f"{year}-{month}-{day} {hour}:{minute}:{second}"
