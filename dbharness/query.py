"""Result-set queries built from literal rows."""

from typing import Any, List, Mapping, Sequence

from dbharness.db.platforms import DatabasePlatform
from dbharness.exceptions import InvalidRowSetError


def generate_result_set_query(rows: Sequence[Mapping[str, Any]], platform: DatabasePlatform) -> str:
    """Generate a query returning ``rows`` without creating a temporary table.

    Each row becomes a dummy select of ``value "column"`` pairs; the selects are
    joined with ``UNION ALL`` in input order. Strings are quoted as string
    literals, every other value is rendered as a bare literal.

    Raises:
        InvalidRowSetError: If there are no rows, a row has no columns, or rows
            do not share the same columns in the same order, or a number is
            not finite.
    """
    if not rows:
        raise InvalidRowSetError("At least one row is required")

    columns = list(rows[0].keys())
    selects: List[str] = []

    for index, row in enumerate(rows):
        if not row:
            raise InvalidRowSetError(f"Row {index} has no columns", row_index=index)
        if list(row.keys()) != columns:
            raise InvalidRowSetError(
                f"Row {index} has columns {list(row.keys())}, expected {columns}",
                row_index=index,
            )

        expressions = []
        for column, value in row.items():
            if isinstance(value, str):
                literal = platform.quote_string_literal(value)
            else:
                try:
                    literal = platform.render_literal(value)
                except InvalidRowSetError as e:
                    raise InvalidRowSetError(f"Row {index} column {column!r}: {e.message}", row_index=index) from e
            expressions.append(f"{literal} {platform.quote_identifier(column)}")

        selects.append(platform.get_dummy_select_sql(", ".join(expressions)))

    return " UNION ALL ".join(selects)
