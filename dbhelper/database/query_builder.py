"""
Parameterized SQL builders for INSERT, UPDATE and DELETE statements.

Builders are pure functions: they validate and quote identifiers, assign a
unique placeholder name to every bound value and return a ``Statement``
holding the SQL text and the matching parameter mapping. Execution is left
to ``dbhelper.database.connection.Database``.

Placeholder naming:
- SET / VALUES fields use the column name (``:name``)
- WHERE fields are prefixed with ``where_`` (``:where_name``)
- ON DUPLICATE KEY fields are prefixed with ``duplicate_``
- multi-row VALUES are prefixed with the row index (``:0_name``, ``:1_name``)
- LIMIT is bound as ``:limit``

If a derived name is already taken in the statement a numeric suffix is
appended (``:limit_2``), so names are unique for any combination of columns.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..security import quote_identifier
from .exceptions import QueryBuildError
from .records import FieldSet, as_field_set

# Same rule SQLAlchemy's text() uses to find bind parameters
PLACEHOLDER_PATTERN = re.compile(r'(?<![:\w\\]):(\w+)(?!:)')

WHERE_PREFIX = 'where_'
DUPLICATE_PREFIX = 'duplicate_'
LIMIT_PARAM = 'limit'

QUOTE_CHARS = {
    'mysql': '`',
    'mariadb': '`',
}
DEFAULT_QUOTE_CHAR = '"'


@dataclass(frozen=True)
class Statement:
    """SQL text plus the parameters bound to its placeholders."""
    sql: str
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def placeholders(self) -> List[str]:
        return find_placeholders(self.sql)


def find_placeholders(sql: str) -> List[str]:
    """
    List the named placeholders in SQL text, in order of appearance

    Args:
        sql: SQL text using ``:name`` placeholders

    Returns:
        Placeholder names without the leading colon
    """
    return PLACEHOLDER_PATTERN.findall(sql)


def quote_char_for(dialect: str) -> str:
    """Identifier quote character for a SQLAlchemy dialect name."""
    return QUOTE_CHARS.get(dialect.lower(), DEFAULT_QUOTE_CHAR)


class _ParamRegistry:
    """Allocates unique placeholder names within one statement."""

    def __init__(self):
        self.params: Dict[str, Any] = {}

    def bind(self, column: str, value: Any, prefix: str = '') -> str:
        # '$' and '-' are valid in identifiers but not in bind names
        base = prefix + re.sub(r'\W', '_', column)
        name = base
        suffix = 2
        while name in self.params:
            name = f"{base}_{suffix}"
            suffix += 1
        self.params[name] = value
        return name


def _assignments(registry: _ParamRegistry, fields: FieldSet, quote_char: str,
                 separator: str = ', ', prefix: str = '') -> str:
    """Render ``col = :placeholder`` pairs, e.g. for SET or WHERE clauses."""
    return separator.join(
        f"{quote_identifier(column, quote_char)} = :{registry.bind(column, value, prefix)}"
        for column, value in fields.items()
    )


def _values(registry: _ParamRegistry, fields: FieldSet, columns: Sequence[str],
            prefix: str = '') -> str:
    """Render a ``(:a, :b)`` tuple in the given column order."""
    return '(' + ', '.join(f":{registry.bind(c, fields[c], prefix)}" for c in columns) + ')'


def _column_list(columns: Sequence[str], quote_char: str) -> str:
    return '(' + ', '.join(quote_identifier(c, quote_char) for c in columns) + ')'


def _limit_clause(registry: _ParamRegistry, limit: Optional[int]) -> str:
    if limit is None:
        return ''
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
        raise QueryBuildError(f"LIMIT must be a non-negative integer, got {limit!r}")
    return f" LIMIT :{registry.bind(LIMIT_PARAM, limit)}"


def _required(fields: Any, what: str) -> FieldSet:
    field_set = as_field_set(fields)
    if not field_set:
        raise QueryBuildError(f"{what} must contain at least one column")
    return field_set


def build_insert(table: str, fields: Mapping[str, Any],
                 on_duplicate: Optional[Mapping[str, Any]] = None,
                 dialect: str = 'mysql',
                 conflict_columns: Optional[Sequence[str]] = None) -> Statement:
    """
    Build a single-row INSERT.

    MySQL gets the ``INSERT INTO t SET ...`` form with an optional
    ``ON DUPLICATE KEY UPDATE`` clause; other dialects get a column list with
    ``VALUES`` and ``ON CONFLICT (<conflict_columns>) DO UPDATE SET``.

    Args:
        table: Target table
        fields: Column values for the new row
        on_duplicate: Column values to set when the row already exists
        dialect: SQLAlchemy dialect name
        conflict_columns: Unique key columns for the ON CONFLICT target;
            required with ``on_duplicate`` outside MySQL, ignored by MySQL

    Returns:
        Statement with merged field and ``duplicate_`` parameters

    Raises:
        QueryBuildError: If ``on_duplicate`` is given for a non-MySQL
            dialect without ``conflict_columns``
    """
    quote_char = quote_char_for(dialect)
    table_sql = quote_identifier(table, quote_char)
    field_set = _required(fields, 'Insert fields')
    duplicate_set = as_field_set(on_duplicate) if on_duplicate else {}
    if isinstance(conflict_columns, str):
        conflict_columns = [conflict_columns]
    conflict_target = [quote_identifier(c, quote_char) for c in conflict_columns or ()]

    registry = _ParamRegistry()
    if quote_char == '`':
        sql = f"INSERT INTO {table_sql} SET {_assignments(registry, field_set, quote_char)}"
        if duplicate_set:
            sql += " ON DUPLICATE KEY UPDATE " + _assignments(
                registry, duplicate_set, quote_char, prefix=DUPLICATE_PREFIX
            )
    else:
        columns = list(field_set)
        sql = (f"INSERT INTO {table_sql} {_column_list(columns, quote_char)} "
               f"VALUES {_values(registry, field_set, columns)}")
        if duplicate_set:
            if not conflict_target:
                raise QueryBuildError(
                    f"on_duplicate requires conflict_columns for dialect '{dialect}'"
                )
            sql += f" ON CONFLICT ({', '.join(conflict_target)}) DO UPDATE SET " + _assignments(
                registry, duplicate_set, quote_char, prefix=DUPLICATE_PREFIX
            )

    return Statement(sql, registry.params)


def build_insert_multi(table: str, rows: Sequence[Mapping[str, Any]],
                       dialect: str = 'mysql') -> Statement:
    """
    Build one INSERT carrying several VALUES tuples.

    The column list comes from the first row. Every other row must have the
    same set of columns; their values are emitted in the first row's order.

    Args:
        table: Target table
        rows: Field sets, one per row
        dialect: SQLAlchemy dialect name

    Returns:
        Statement whose placeholders are prefixed with the row index

    Raises:
        QueryBuildError: If there are no rows or the rows disagree on columns
    """
    quote_char = quote_char_for(dialect)
    table_sql = quote_identifier(table, quote_char)
    if not rows:
        raise QueryBuildError("insert_multi requires at least one row")

    field_sets = [_required(row, f"Row {index}") for index, row in enumerate(rows)]
    columns = list(field_sets[0])
    expected = set(columns)

    registry = _ParamRegistry()
    values = []
    for index, field_set in enumerate(field_sets):
        if set(field_set) != expected:
            missing = sorted(expected - set(field_set))
            extra = sorted(set(field_set) - expected)
            raise QueryBuildError(
                f"Row {index} columns differ from row 0 (missing={missing}, extra={extra})"
            )
        values.append(_values(registry, field_set, columns, prefix=f"{index}_"))

    sql = (f"INSERT INTO {table_sql} {_column_list(columns, quote_char)} "
           f"VALUES {', '.join(values)}")
    return Statement(sql, registry.params)


def build_update(table: str, fields: Mapping[str, Any],
                 where: Optional[Mapping[str, Any]] = None,
                 limit: Optional[int] = None,
                 dialect: str = 'mysql') -> Statement:
    """
    Build an UPDATE with optional equality WHERE clause and LIMIT.

    Args:
        table: Target table
        fields: Columns to set
        where: Column values joined with AND; placeholders get ``where_``
        limit: Maximum number of rows to update
        dialect: SQLAlchemy dialect name

    Returns:
        Statement with SET, WHERE and LIMIT parameters merged
    """
    quote_char = quote_char_for(dialect)
    table_sql = quote_identifier(table, quote_char)
    field_set = _required(fields, 'Update fields')
    where_set = as_field_set(where) if where else {}

    registry = _ParamRegistry()
    sql = f"UPDATE {table_sql} SET {_assignments(registry, field_set, quote_char)}"
    if where_set:
        sql += " WHERE " + _assignments(
            registry, where_set, quote_char, separator=' AND ', prefix=WHERE_PREFIX
        )
    sql += _limit_clause(registry, limit)

    return Statement(sql, registry.params)


def build_delete(table: str, where: Mapping[str, Any],
                 limit: Optional[int] = None,
                 dialect: str = 'mysql') -> Statement:
    """
    Build a DELETE restricted by an equality WHERE clause.

    Args:
        table: Target table
        where: Column values joined with AND; placeholders get ``where_``
        limit: Maximum number of rows to delete
        dialect: SQLAlchemy dialect name

    Returns:
        Statement with WHERE and LIMIT parameters

    Raises:
        QueryBuildError: If ``where`` is empty
    """
    quote_char = quote_char_for(dialect)
    table_sql = quote_identifier(table, quote_char)
    where_set = _required(where, 'Delete conditions')

    registry = _ParamRegistry()
    sql = f"DELETE FROM {table_sql} WHERE " + _assignments(
        registry, where_set, quote_char, separator=' AND ', prefix=WHERE_PREFIX
    )
    sql += _limit_clause(registry, limit)

    return Statement(sql, registry.params)
