"""
Tabular Payload Helpers

MOEX ISS answers with column-oriented blocks:

    {"marketdata": {"columns": ["SECID", "LAST"], "data": [["USD000UTSTOM", 91.2]]}}

These helpers turn such blocks into plain field -> value mappings and
report every shape problem as ParseError.
"""

import math
from typing import Any, Dict, List, Mapping, Sequence

from core.errors import ParseError


def zip_columns(columns: Sequence[str], row: Sequence[Any]) -> Dict[str, Any]:
    """
    Zip a column list with one data row.

    Args:
        columns: Column names
        row: Values, one per column

    Returns:
        Dict mapping column name to value, in column order

    Raises:
        ParseError: If the lengths differ

    Example:
        >>> zip_columns(["SECID", "LAST"], ["USD000UTSTOM", "91.2"])
        {'SECID': 'USD000UTSTOM', 'LAST': '91.2'}
    """
    if len(columns) != len(row):
        raise ParseError(
            f"Column/row length mismatch: {len(columns)} columns, {len(row)} values"
        )
    return dict(zip(columns, row))


def table_block(payload: Any, name: str) -> tuple:
    """
    Extract (columns, data) from a named block of an ISS payload.

    Raises:
        ParseError: If the block, its columns or its data are missing or
            of the wrong type
    """
    if not isinstance(payload, Mapping):
        raise ParseError(f"Expected a JSON object, got {type(payload).__name__}")

    block = payload.get(name)
    if not isinstance(block, Mapping):
        raise ParseError(f"Missing '{name}' block in response")

    columns = block.get("columns")
    data = block.get("data")
    if not isinstance(columns, list) or not isinstance(data, list):
        raise ParseError(f"'{name}' block must contain 'columns' and 'data' lists")

    return columns, data


def table_rows(payload: Any, name: str) -> List[Dict[str, Any]]:
    """
    All rows of a named block as mappings, provider order preserved.

    Example:
        >>> table_rows({"history": {"columns": ["TRADEDATE", "CLOSE"],
        ...                         "data": [["2023-06-15", 82.1], ["2023-06-14", 83.0]]}}, "history")
        [{'TRADEDATE': '2023-06-15', 'CLOSE': 82.1}, {'TRADEDATE': '2023-06-14', 'CLOSE': 83.0}]
    """
    columns, data = table_block(payload, name)
    rows = []
    for row in data:
        if not isinstance(row, list):
            raise ParseError(f"'{name}' data rows must be lists")
        rows.append(zip_columns(columns, row))
    return rows


def single_row(payload: Any, name: str) -> Dict[str, Any]:
    """
    The first (and only expected) row of a named block.

    Raises:
        ParseError: If the block has no rows
    """
    rows = table_rows(payload, name)
    if not rows:
        raise ParseError(f"'{name}' block has no data rows")
    return rows[0]


def parse_number(value: Any, field: str) -> float:
    """
    Convert a provider value (number or numeric string) to a finite float.

    Raises:
        ParseError: If the value is null, not numeric, NaN or infinite
    """
    if value is None or isinstance(value, bool):
        raise ParseError(f"Field '{field}' is missing or null")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Field '{field}' is not numeric: {value!r}") from e
    if not math.isfinite(number):
        raise ParseError(f"Field '{field}' is not a finite number: {value!r}")
    return number
