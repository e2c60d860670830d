"""SQL text escaping helpers."""

from __future__ import annotations

import re

_LIKE_SPECIALS = re.compile(r"[\\%_]")


def _wrap(text: str, quote: str) -> str:
    return quote + text.replace(quote, quote * 2) + quote


def escape_literal(text: str) -> str:
    """Quote text as an SQL string literal."""
    return _wrap(text, "'")


def escape_identifier(text: str) -> str:
    """Quote text as an SQL identifier."""
    return _wrap(text, '"')


def escape_blob(data: bytes) -> str:
    """Render bytes as an SQL blob literal."""
    return "x'" + data.hex() + "'"


def escape_like(text: str) -> str:
    """Backslash-escape LIKE wildcards; use with ESCAPE '\\'."""
    return _LIKE_SPECIALS.sub(lambda match: "\\" + match.group(0), text)
