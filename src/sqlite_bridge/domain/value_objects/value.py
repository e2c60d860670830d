"""The Value type: one column or parameter value.

A Value is a closed tagged union over the five fundamental engine types.
Equality is case-exact: Value.integer(1) != Value.float(1.0), even though
their coercing accessors agree.

Strict accessors (as_text, as_integer, ...) return the payload only when the
case matches. Coercing accessors (text_value, integer_value, ...) convert
across cases and return None where no conversion is defined. None of them
raise.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


class ValueKind(Enum):
    """The five cases of a Value."""

    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    BLOB = "blob"
    NULL = "null"


def _parse_float(text: str) -> float | None:
    if not text or text != text.strip() or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _parse_integer(text: str) -> int | None:
    if not _INTEGER_PATTERN.fullmatch(text):
        return None
    number = int(text)
    if number < INT64_MIN or number > INT64_MAX:
        return None
    return number


def _decode(data: bytes) -> str | None:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


@dataclass(frozen=True, slots=True)
class Value:
    """A typed engine value.

    Attributes:
        kind: Which of the five cases this value is
        payload: str for TEXT, int for INTEGER, float for FLOAT,
            bytes for BLOB, None for NULL

    Example:
        >>> Value.integer(1) == Value.float(1.0)
        False
        >>> Value.integer(1).float_value == Value.float(1.0).float_value
        True
    """

    kind: ValueKind
    payload: Any = None

    NULL: ClassVar[Value]
    TRUE: ClassVar[Value]
    FALSE: ClassVar[Value]

    def __post_init__(self) -> None:
        """Validate the payload against the case."""
        kind, payload = self.kind, self.payload
        if kind is ValueKind.TEXT:
            if not isinstance(payload, str):
                raise TypeError(f"text payload must be str, got {type(payload).__name__}")
        elif kind is ValueKind.INTEGER:
            if not isinstance(payload, int):
                raise TypeError(f"integer payload must be int, got {type(payload).__name__}")
            if payload < INT64_MIN or payload > INT64_MAX:
                raise ValueError(f"integer {payload} does not fit in 64 bits")
            if isinstance(payload, bool):
                object.__setattr__(self, "payload", int(payload))
        elif kind is ValueKind.FLOAT:
            if isinstance(payload, bool) or not isinstance(payload, (int, float)):
                raise TypeError(f"float payload must be float, got {type(payload).__name__}")
            object.__setattr__(self, "payload", float(payload))
        elif kind is ValueKind.BLOB:
            if not isinstance(payload, (bytes, bytearray, memoryview)):
                raise TypeError(f"blob payload must be bytes, got {type(payload).__name__}")
            object.__setattr__(self, "payload", bytes(payload))
        elif payload is not None:
            raise TypeError("null carries no payload")

    # Constructors

    @classmethod
    def text(cls, text: str) -> Value:
        return cls(ValueKind.TEXT, text)

    @classmethod
    def integer(cls, number: int) -> Value:
        return cls(ValueKind.INTEGER, number)

    @classmethod
    def float(cls, number: float) -> Value:
        return cls(ValueKind.FLOAT, number)

    @classmethod
    def blob(cls, data: bytes | bytearray | memoryview) -> Value:
        return cls(ValueKind.BLOB, data)

    @classmethod
    def boolean(cls, flag: bool) -> Value:
        """Booleans are stored as Integer 1 / 0."""
        return cls.TRUE if flag else cls.FALSE

    @classmethod
    def of(cls, obj: Any) -> Value:
        """Build a Value from a plain Python object.

        Accepts None, bool, int, float, str, bytes-like objects, and Values
        (returned unchanged).

        Raises:
            TypeError: If the object has no Value representation.
        """
        if isinstance(obj, Value):
            return obj
        if obj is None:
            return cls.NULL
        if isinstance(obj, bool):
            return cls.boolean(obj)
        if isinstance(obj, int):
            return cls(ValueKind.INTEGER, obj)
        if isinstance(obj, float):
            return cls(ValueKind.FLOAT, obj)
        if isinstance(obj, str):
            return cls(ValueKind.TEXT, obj)
        if isinstance(obj, (bytes, bytearray, memoryview)):
            return cls(ValueKind.BLOB, obj)
        raise TypeError(f"cannot convert {type(obj).__name__} to a Value")

    # Strict accessors

    @property
    def as_text(self) -> str | None:
        return self.payload if self.kind is ValueKind.TEXT else None

    @property
    def as_integer(self) -> int | None:
        return self.payload if self.kind is ValueKind.INTEGER else None

    @property
    def as_float(self) -> float | None:
        return self.payload if self.kind is ValueKind.FLOAT else None

    @property
    def as_blob(self) -> bytes | None:
        return self.payload if self.kind is ValueKind.BLOB else None

    @property
    def as_bool(self) -> bool | None:
        """Strict bool: only Integer 0 and 1 map to False and True."""
        if self.kind is ValueKind.INTEGER and self.payload in (0, 1):
            return self.payload == 1
        return None

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    # Coercing accessors

    @property
    def text_value(self) -> str | None:
        kind = self.kind
        if kind is ValueKind.TEXT:
            return self.payload
        if kind is ValueKind.INTEGER:
            return str(self.payload)
        if kind is ValueKind.FLOAT:
            return repr(self.payload)
        if kind is ValueKind.BLOB:
            return _decode(self.payload)
        return None

    @property
    def float_value(self) -> float | None:
        kind = self.kind
        if kind is ValueKind.TEXT:
            return _parse_float(self.payload)
        if kind is ValueKind.FLOAT:
            return self.payload
        if kind is ValueKind.INTEGER:
            return float(self.payload)
        if kind is ValueKind.BLOB:
            text = _decode(self.payload)
            return None if text is None else _parse_float(text)
        return None

    @property
    def integer_value(self) -> int | None:
        kind = self.kind
        if kind is ValueKind.TEXT:
            return _parse_integer(self.payload)
        if kind is ValueKind.FLOAT:
            number = self.payload
            if math.isnan(number) or math.isinf(number):
                return None
            truncated = int(number)
            if truncated < INT64_MIN or truncated > INT64_MAX:
                return None
            return truncated
        if kind is ValueKind.INTEGER:
            return self.payload
        if kind is ValueKind.BLOB:
            text = _decode(self.payload)
            return None if text is None else _parse_integer(text)
        return None

    @property
    def blob_value(self) -> bytes | None:
        kind = self.kind
        if kind is ValueKind.BLOB:
            return self.payload
        if kind is ValueKind.NULL:
            return None
        return self.text_value.encode("utf-8", "surrogatepass")

    @property
    def bool_value(self) -> bool:
        """Truthiness via float_value; None counts as 0."""
        return (self.float_value or 0.0) != 0

    def to_python(self) -> str | int | float | bytes | None:
        """The bare payload."""
        return self.payload

    def __repr__(self) -> str:
        if self.kind is ValueKind.NULL:
            return "Value.NULL"
        return f"Value.{self.kind.value}({self.payload!r})"


Value.NULL = Value(ValueKind.NULL)
Value.TRUE = Value(ValueKind.INTEGER, 1)
Value.FALSE = Value(ValueKind.INTEGER, 0)
