"""Tests for SQL literal and identifier encoding.

Covers every value category the introspector produces, the quoting rules
for identifiers and text, and the error raised for values with no rule.
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

import pytest

from db_dumper.exceptions import SerializationError
from db_dumper.schema.encoding import (
    encode_array,
    encode_row,
    encode_scalar,
    encode_value,
    qualified_name,
    quote_ident,
    quote_literal,
)
from db_dumper.schema.models import ColumnSchema, ValueCategory


def column(data_type: str, category: ValueCategory, name: str = "c") -> ColumnSchema:
    return ColumnSchema(name=name, data_type=data_type, category=category)


# ============================================================
# Test: Identifiers and text
# ============================================================


class TestQuoting:
    """Identifiers are always double-quoted, literals single-quoted."""

    def test_quote_ident_plain(self) -> None:
        assert quote_ident("users") == '"users"'

    def test_quote_ident_keeps_case(self) -> None:
        assert quote_ident("MixedCase") == '"MixedCase"'

    def test_quote_ident_doubles_embedded_quote(self) -> None:
        assert quote_ident('my "table"') == '"my ""table"""'

    def test_qualified_name(self) -> None:
        assert qualified_name("sales", "order items") == '"sales"."order items"'

    def test_qualified_name_without_schema(self) -> None:
        """Global objects such as roles have no schema."""
        assert qualified_name("", "admin") == '"admin"'

    def test_quote_literal_doubles_single_quote(self) -> None:
        assert quote_literal("it's") == "'it''s'"

    def test_quote_literal_keeps_backslash(self) -> None:
        """standard_conforming_strings=on: backslashes are literal."""
        assert quote_literal("C:\\temp") == "'C:\\temp'"


# ============================================================
# Test: Scalars
# ============================================================


class TestEncodeScalar:
    """Native Python values map to canonical SQL literals."""

    def test_none(self) -> None:
        assert encode_scalar(None) == "NULL"

    def test_booleans(self) -> None:
        assert encode_scalar(True) == "true"
        assert encode_scalar(False) == "false"

    def test_int(self) -> None:
        assert encode_scalar(-42) == "-42"

    def test_float_uses_repr(self) -> None:
        assert encode_scalar(0.1) == "0.1"
        assert encode_scalar(1e100) == "1e+100"

    def test_float_special_values_quoted(self) -> None:
        assert encode_scalar(float("nan")) == "'NaN'"
        assert encode_scalar(float("inf")) == "'Infinity'"
        assert encode_scalar(float("-inf")) == "'-Infinity'"

    def test_decimal(self) -> None:
        assert encode_scalar(Decimal("12.500")) == "12.500"

    def test_decimal_special_values_quoted(self) -> None:
        assert encode_scalar(Decimal("NaN")) == "'NaN'"
        assert encode_scalar(Decimal("-Infinity")) == "'-Infinity'"

    def test_text_with_quote(self) -> None:
        assert encode_scalar("O'Brien") == "'O''Brien'"

    def test_empty_text_is_not_null(self) -> None:
        assert encode_scalar("") == "''"

    def test_bytes(self) -> None:
        assert encode_scalar(b"\x00\xffab") == "'\\x00ff6162'::bytea"

    def test_memoryview(self) -> None:
        assert encode_scalar(memoryview(b"\x01")) == "'\\x01'::bytea"

    def test_date(self) -> None:
        assert encode_scalar(date(2024, 2, 29)) == "'2024-02-29'"

    def test_datetime_with_timezone(self) -> None:
        value = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone(timedelta(hours=2)))
        assert encode_scalar(value) == "'2024-01-02T03:04:05+02:00'"

    def test_time(self) -> None:
        assert encode_scalar(time(12, 30, 0, 500)) == "'12:30:00.000500'"

    def test_unsupported_type_raises(self) -> None:
        with pytest.raises(SerializationError, match="dict"):
            encode_scalar({"a": 1})


# ============================================================
# Test: Arrays
# ============================================================


class TestEncodeArray:
    """Arrays use ARRAY[...] constructors cast to the declared type."""

    def test_flat_array(self) -> None:
        assert encode_array([1, 2, None], "integer[]") == "ARRAY[1, 2, NULL]::integer[]"

    def test_nested_array(self) -> None:
        assert (
            encode_array([[1, 2], [3, 4]], "integer[]")
            == "ARRAY[[1, 2], [3, 4]]::integer[]"
        )

    def test_text_elements_quoted(self) -> None:
        assert encode_array(["a'b", "c"], "text[]") == "ARRAY['a''b', 'c']::text[]"

    def test_empty_array(self) -> None:
        assert encode_array([], "text[]") == "'{}'::text[]"


# ============================================================
# Test: Column-aware encoding
# ============================================================


class TestEncodeValue:
    """encode_value uses the column category to decide on casts."""

    def test_null_in_any_category(self) -> None:
        for category in ValueCategory:
            assert encode_value(None, column("text", category)) == "NULL"

    def test_enum_label_cast(self) -> None:
        col = column('"public".mood', ValueCategory.ENUM)
        assert encode_value("happy", col) == "'happy'::\"public\".mood"

    def test_text_cast_column(self) -> None:
        col = column("jsonb", ValueCategory.TEXT_CAST)
        assert encode_value('{"k": "it\'s"}', col) == "'{\"k\": \"it''s\"}'::jsonb"

    def test_text_cast_rejects_native_value(self) -> None:
        with pytest.raises(SerializationError, match="expected text"):
            encode_value(5, column("uuid", ValueCategory.TEXT_CAST))

    def test_array_column(self) -> None:
        col = column("text[]", ValueCategory.ARRAY)
        assert encode_value(["x", None], col) == "ARRAY['x', NULL]::text[]"

    def test_array_column_rejects_scalar(self) -> None:
        with pytest.raises(SerializationError, match="expected a list"):
            encode_value("x", column("text[]", ValueCategory.ARRAY))

    def test_list_in_scalar_column_raises(self) -> None:
        with pytest.raises(SerializationError, match="not an array column"):
            encode_value([1], column("integer", ValueCategory.NUMERIC))

    def test_numeric_special_value_cast(self) -> None:
        col = column("numeric(10,2)", ValueCategory.NUMERIC)
        assert encode_value(Decimal("NaN"), col) == "'NaN'::numeric(10,2)"

    def test_plain_numeric_not_cast(self) -> None:
        assert encode_value(7, column("bigint", ValueCategory.NUMERIC)) == "7"

    def test_temporal_cast(self) -> None:
        col = column("time without time zone", ValueCategory.TEMPORAL)
        assert encode_value(time(8, 0), col) == "'08:00:00'::time without time zone"

    def test_text_column_not_cast(self) -> None:
        assert encode_value("a", column("text", ValueCategory.TEXT)) == "'a'"

    @pytest.mark.parametrize(
        ("data_type", "text", "expected"),
        [
            ("time without time zone", "24:00:00", "'24:00:00'::time without time zone"),
            ("time with time zone", "24:00:00+00", "'24:00:00+00'::time with time zone"),
            ("date", "infinity", "'infinity'::date"),
            ("timestamp without time zone", "0044-03-15 00:00:00 BC",
             "'0044-03-15 00:00:00 BC'::timestamp without time zone"),
        ],
    )
    def test_out_of_range_temporal_text(self, data_type: str, text: str, expected: str) -> None:
        assert encode_value(text, column(data_type, ValueCategory.TEXT_CAST)) == expected


class TestEncodeRow:
    """encode_row joins per-column literals."""

    def test_row(self) -> None:
        columns = [
            column("integer", ValueCategory.NUMERIC, "id"),
            column("text", ValueCategory.TEXT, "name"),
            column("boolean", ValueCategory.BOOLEAN, "active"),
        ]
        assert encode_row((1, None, True), columns) == "1, NULL, true"

    def test_length_mismatch_raises(self) -> None:
        with pytest.raises(SerializationError, match="2 values for 1 columns"):
            encode_row((1, 2), [column("integer", ValueCategory.NUMERIC)])
