"""SQL literal and identifier encoding.

Turns every value the introspector can produce into SQL text that
reimports to an identical value. The output assumes the session settings
the serializer writes at the top of every dump, in particular
``standard_conforming_strings = on`` (backslashes are literal characters).

Encoding rules:
- None -> NULL
- bool -> true / false
- int, Decimal, float -> canonical literal; NaN and infinities quoted
- str -> single-quoted, embedded quotes doubled
- bytes -> '\\x<hex>'::bytea
- list -> ARRAY[...] with nested [...] levels, cast to the column type
- date, time, datetime -> quoted ISO-8601 literal
- quoted numeric and temporal scalars are cast to the column type
- enum labels and text-fetched values -> quoted text cast to the column type

Anything else raises ``SerializationError``.
"""

import math
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Sequence

from db_dumper.exceptions import SerializationError
from db_dumper.schema.models import ColumnSchema, ValueCategory


def quote_ident(name: str) -> str:
    """Double-quote an identifier, doubling embedded double quotes.

    Example:
        >>> quote_ident('a"b')
        '"a""b"'
    """
    return '"' + name.replace('"', '""') + '"'


def qualified_name(schema_name: str, name: str) -> str:
    """Render ``"schema"."name"``, or just ``"name"`` for global objects."""
    if schema_name:
        return f"{quote_ident(schema_name)}.{quote_ident(name)}"
    return quote_ident(name)


def quote_literal(text: str) -> str:
    """Single-quote a string literal, doubling embedded single quotes.

    Example:
        >>> quote_literal("it's")
        "'it''s'"
    """
    return "'" + text.replace("'", "''") + "'"


def encode_scalar(value: Any) -> str:
    """Encode one non-array value by its Python type."""
    if value is None:
        return "NULL"
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "'NaN'"
        if math.isinf(value):
            return "'Infinity'" if value > 0 else "'-Infinity'"
        return repr(value)
    if isinstance(value, Decimal):
        if value.is_nan():
            return "'NaN'"
        if value.is_infinite():
            return "'Infinity'" if value > 0 else "'-Infinity'"
        return str(value)
    if isinstance(value, str):
        return quote_literal(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"'\\x{bytes(value).hex()}'::bytea"
    if isinstance(value, (datetime, date, time)):
        return quote_literal(value.isoformat())
    raise SerializationError(
        f"Cannot encode value of type {type(value).__name__}: {value!r}"
    )


def _encode_elements(values: Sequence[Any]) -> str:
    parts: list[str] = []
    for item in values:
        if isinstance(item, list):
            parts.append(f"[{_encode_elements(item)}]")
        else:
            parts.append(encode_scalar(item))
    return ", ".join(parts)


def encode_array(values: list, data_type: str) -> str:
    """Encode a (possibly nested) list as an ``ARRAY[...]`` constructor.

    Example:
        >>> encode_array([[1, 2], [3, None]], "integer[]")
        'ARRAY[[1, 2], [3, NULL]]::integer[]'
    """
    if not values:
        return f"'{{}}'::{data_type}"
    return f"ARRAY[{_encode_elements(values)}]::{data_type}"


def encode_value(value: Any, column: ColumnSchema) -> str:
    """Encode a value fetched from ``column``.

    Args:
        value: Value as returned by the introspector's row stream.
        column: Column the value belongs to; its category decides whether
            the literal needs a cast back to the declared type.

    Returns:
        SQL literal text.

    Raises:
        SerializationError: If the value does not fit the column category
            or its Python type has no encoding rule.
    """
    if value is None:
        return "NULL"

    category = column.category
    if category in (ValueCategory.ENUM, ValueCategory.TEXT_CAST):
        if not isinstance(value, str):
            raise SerializationError(
                f"Column {column.name} ({column.data_type}) expected text, "
                f"got {type(value).__name__}"
            )
        return f"{quote_literal(value)}::{column.data_type}"

    if category == ValueCategory.ARRAY:
        if not isinstance(value, list):
            raise SerializationError(
                f"Column {column.name} ({column.data_type}) expected a list, "
                f"got {type(value).__name__}"
            )
        return encode_array(value, column.data_type)

    if isinstance(value, list):
        raise SerializationError(
            f"Column {column.name} ({column.data_type}) is not an array column"
        )
    encoded = encode_scalar(value)
    if encoded.startswith("'") and category in (ValueCategory.NUMERIC, ValueCategory.TEMPORAL):
        return f"{encoded}::{column.data_type}"
    return encoded


def encode_row(row: Sequence[Any], columns: Sequence[ColumnSchema]) -> str:
    """Encode a row as a comma-separated ``VALUES`` list body."""
    if len(row) != len(columns):
        raise SerializationError(
            f"Row has {len(row)} values for {len(columns)} columns"
        )
    return ", ".join(encode_value(v, c) for v, c in zip(row, columns))
