"""Unit tests for the Value type."""

from __future__ import annotations

import math

import pytest

from sqlite_bridge.domain.value_objects import INT64_MAX, INT64_MIN, Value, ValueKind


@pytest.mark.unit
class TestValueConstruction:
    """Tests for Value constructors and validation."""

    def test_constructors_set_kind(self) -> None:
        """Test that each constructor produces its case."""
        assert Value.text("a").kind is ValueKind.TEXT
        assert Value.integer(1).kind is ValueKind.INTEGER
        assert Value.float(1.5).kind is ValueKind.FLOAT
        assert Value.blob(b"\x00").kind is ValueKind.BLOB
        assert Value.NULL.kind is ValueKind.NULL

    def test_integer_range(self) -> None:
        """Test that integers must fit in 64 bits."""
        assert Value.integer(INT64_MAX).as_integer == INT64_MAX
        assert Value.integer(INT64_MIN).as_integer == INT64_MIN
        with pytest.raises(ValueError):
            Value.integer(INT64_MAX + 1)

    def test_payload_type_checked(self) -> None:
        """Test that mismatched payloads are rejected."""
        with pytest.raises(TypeError):
            Value(ValueKind.TEXT, 1)
        with pytest.raises(TypeError):
            Value(ValueKind.NULL, "x")

    def test_blob_is_copied_to_bytes(self) -> None:
        """Test that bytes-like payloads are stored as immutable bytes."""
        data = bytearray(b"abc")
        value = Value.blob(data)
        data[0] = ord("z")
        assert value.as_blob == b"abc"
        assert isinstance(value.payload, bytes)

    def test_boolean_is_integer(self) -> None:
        """Test that booleans are stored as Integer 1/0."""
        assert Value.boolean(True) == Value.integer(1)
        assert Value.boolean(False) == Value.integer(0)

    def test_of(self) -> None:
        """Test conversion from plain Python objects."""
        assert Value.of(None) is Value.NULL
        assert Value.of(True) == Value.integer(1)
        assert Value.of(7) == Value.integer(7)
        assert Value.of(2.5) == Value.float(2.5)
        assert Value.of("x") == Value.text("x")
        assert Value.of(memoryview(b"y")) == Value.blob(b"y")
        value = Value.text("same")
        assert Value.of(value) is value
        with pytest.raises(TypeError):
            Value.of(object())


@pytest.mark.unit
class TestValueEquality:
    """Tests for case-exact equality."""

    def test_cross_case_inequality(self) -> None:
        """Test that equal renderings in different cases are not equal."""
        assert Value.integer(1) != Value.float(1.0)
        assert Value.text("1") != Value.integer(1)
        assert Value.blob(b"a") != Value.text("a")

    def test_coercions_agree_across_cases(self) -> None:
        """Test that coercing accessors agree where defined."""
        assert Value.integer(1).float_value == Value.float(1.0).float_value == 1.0
        assert Value.text("1").integer_value == Value.integer(1).integer_value

    def test_hashable(self) -> None:
        """Test that values can be used as keys."""
        assert len({Value.integer(1), Value.integer(1), Value.float(1.0)}) == 2


@pytest.mark.unit
class TestStrictAccessors:
    """Tests for the strict accessors."""

    def test_only_matching_case(self) -> None:
        """Test that strict accessors return None for other cases."""
        value = Value.integer(3)
        assert value.as_integer == 3
        assert value.as_text is None
        assert value.as_float is None
        assert value.as_blob is None

    def test_strict_bool(self) -> None:
        """Test that only Integer 0/1 are booleans."""
        assert Value.integer(1).as_bool is True
        assert Value.integer(0).as_bool is False
        assert Value.integer(2).as_bool is None
        assert Value.float(1.0).as_bool is None
        assert Value.text("1").as_bool is None

    def test_is_null(self) -> None:
        assert Value.NULL.is_null
        assert not Value.integer(0).is_null


@pytest.mark.unit
class TestCoercingAccessors:
    """Tests for the coercing accessors."""

    def test_text_value(self) -> None:
        """Test text renderings of every case."""
        assert Value.text("x").text_value == "x"
        assert Value.integer(-4).text_value == "-4"
        assert Value.float(0.5).text_value == "0.5"
        assert Value.blob("é".encode()).text_value == "é"
        assert Value.blob(b"\xff").text_value is None
        assert Value.NULL.text_value is None

    def test_float_value(self) -> None:
        """Test float parsing and widening."""
        assert Value.text("2.5").float_value == 2.5
        assert Value.text("1e3").float_value == 1000.0
        assert Value.text("abc").float_value is None
        assert Value.text(" 1").float_value is None
        assert Value.text("1_000").float_value is None
        assert Value.integer(3).float_value == 3.0
        assert Value.blob(b"4.25").float_value == 4.25
        assert Value.NULL.float_value is None

    def test_integer_value(self) -> None:
        """Test integer parsing and truncation."""
        assert Value.text("-12").integer_value == -12
        assert Value.text("+7").integer_value == 7
        assert Value.text("1.5").integer_value is None
        assert Value.text(str(INT64_MAX + 1)).integer_value is None
        assert Value.float(2.9).integer_value == 2
        assert Value.float(-2.9).integer_value == -2
        assert Value.float(math.nan).integer_value is None
        assert Value.float(math.inf).integer_value is None
        assert Value.float(1e300).integer_value is None
        assert Value.blob(b"42").integer_value == 42

    def test_blob_value(self) -> None:
        """Test byte renderings of every case."""
        assert Value.text("é").blob_value == "é".encode()
        assert Value.integer(12).blob_value == b"12"
        assert Value.float(1.5).blob_value == b"1.5"
        assert Value.blob(b"\x01").blob_value == b"\x01"
        assert Value.NULL.blob_value is None

    def test_bool_value(self) -> None:
        """Test truthiness through float_value."""
        assert Value.text("2").bool_value is True
        assert Value.text("0").bool_value is False
        assert Value.text("yes").bool_value is False
        assert Value.float(0.1).bool_value is True
        assert Value.NULL.bool_value is False

    def test_coercions_never_raise(self) -> None:
        """Test that every accessor is total over odd inputs."""
        odd = [
            Value.text(""),
            Value.text("nan"),
            Value.blob(b""),
            Value.blob(b"\xc3"),
            Value.float(math.nan),
            Value.float(-math.inf),
            Value.NULL,
        ]
        for value in odd:
            value.text_value
            value.float_value
            value.integer_value
            value.blob_value
            value.bool_value
