"""Binding keys for statement parameters."""

from __future__ import annotations

from typing import Iterator, Union

BindingKey = Union[int, str]
"""A 1-based parameter position or a named placeholder."""

PARAMETER_SIGILS = (":", "@", "$")


def is_positional(key: BindingKey) -> bool:
    """Return True for a positional (integer) key."""
    return isinstance(key, int) and not isinstance(key, bool)


def candidate_names(name: str) -> Iterator[str]:
    """Spellings under which a named placeholder may appear in SQL.

    A name that already carries a sigil (or is a numbered "?NNN") is used
    as-is; a bare name is tried with each sigil in turn.

    Example:
        >>> list(candidate_names("id"))
        [':id', '@id', '$id']
    """
    if name.startswith(PARAMETER_SIGILS) or name.startswith("?"):
        yield name
        return
    for sigil in PARAMETER_SIGILS:
        yield sigil + name
