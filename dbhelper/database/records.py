"""
Field sets and row records.

A field set is the ordered column -> value mapping handed to the insert,
update and delete helpers. A record is the immutable mapping handed back for
every selected row.
"""

import dataclasses
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, Iterator, Mapping, Union

from pydantic import BaseModel

from ..security import validate_identifier
from .exceptions import QueryBuildError

FieldValue = Union[None, bool, int, float, Decimal, str, bytes, bytearray, date, datetime, time]
FieldSet = Dict[str, FieldValue]

SCALAR_TYPES = (bool, int, float, Decimal, str, bytes, bytearray, date, datetime, time)


def as_field_set(fields: Union[Mapping[str, Any], BaseModel, Any]) -> FieldSet:
    """
    Normalise caller input into a validated field set.

    Args:
        fields: Mapping, pydantic model or dataclass instance

    Returns:
        New dict in the caller's key order

    Raises:
        InvalidIdentifier: If a column name is unsafe
        QueryBuildError: If the input is not a mapping or holds a non-scalar value
    """
    if isinstance(fields, BaseModel):
        fields = fields.model_dump()
    elif dataclasses.is_dataclass(fields) and not isinstance(fields, type):
        fields = dataclasses.asdict(fields)

    if not isinstance(fields, Mapping):
        raise QueryBuildError(
            f"Fields must be a mapping, pydantic model or dataclass, got {type(fields).__name__}"
        )

    result: FieldSet = {}
    for column, value in fields.items():
        validate_identifier(column)
        if value is not None and not isinstance(value, SCALAR_TYPES):
            raise QueryBuildError(
                f"Column '{column}' has unsupported value type {type(value).__name__}"
            )
        result[column] = value
    return result


class Record(Mapping[str, Any]):
    """Read-only representation of one selected row.

    Columns are available both as keys (``row['name']``) and as
    attributes (``row.name``). Attribute access only reaches columns whose
    names do not clash with a Mapping method: a column called ``keys``,
    ``items``, ``values`` or ``get`` must be read as ``row['keys']``.
    """

    __slots__ = ('_data',)

    def __init__(self, data: Mapping[str, Any]):
        object.__setattr__(self, '_data', dict(data))

    @classmethod
    def from_row(cls, row) -> 'Record':
        """Build a record from a SQLAlchemy ``Row``; the last of duplicate column names wins."""
        return cls(dict(zip(row._fields, row)))

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __getattr__(self, name: str) -> Any:
        if name.startswith('__') or name == '_data':
            raise AttributeError(name)
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(f"Record has no column '{name}'") from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Record is read-only")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("Record is read-only")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Record):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    def __reduce__(self):
        return (self.__class__, (self._data,))

    def __repr__(self) -> str:
        return f"Record({self._data!r})"

    def to_dict(self) -> Dict[str, Any]:
        """Return a mutable copy of the row."""
        return dict(self._data)
