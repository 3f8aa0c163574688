"""Ordered field maps and the Dradis ``#[Field]#`` block text format.

Issues, evidence, notes and issue library entries expose their content as
an ordered set of named fields. The order matters: it is the order the
fields are rendered in the Dradis UI and the order they are written back
when the entity is updated.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from .errors import FieldNotFoundError


class OrderedFieldMap:
    """Insertion-ordered ``str -> str`` map with unique keys.

    Re-setting an existing key updates the value in place and keeps its
    position; a new key is appended.
    """

    def __init__(self, items: Union[Mapping[str, Any], Iterable[Tuple[str, Any]], None] = None) -> None:
        self._data: Dict[str, str] = {}
        if items is None:
            return
        pairs = items.items() if isinstance(items, Mapping) else items
        for k, v in pairs:
            self.set(k, v)

    def set(self, key: str, value: Any) -> None:
        self._data[str(key)] = "" if value is None else str(value)

    def get(self, key: str) -> str:
        try:
            return self._data[key]
        except KeyError:
            raise FieldNotFoundError(key) from None

    def lookup(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def delete(self, key: str) -> None:
        if key not in self._data:
            raise FieldNotFoundError(key)
        del self._data[key]

    def keys(self) -> List[str]:
        return list(self._data)

    def items(self) -> List[Tuple[str, str]]:
        return list(self._data.items())

    def clone(self) -> "OrderedFieldMap":
        return OrderedFieldMap(self._data.items())

    def to_dict(self) -> Dict[str, str]:
        return dict(self._data)

    def __getitem__(self, key: str) -> str:
        return self.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OrderedFieldMap):
            return NotImplemented
        return self.items() == other.items()

    def __repr__(self) -> str:
        return f"OrderedFieldMap({self.items()!r})"


def render_fields(fields: Union[OrderedFieldMap, Mapping[str, Any]]) -> str:
    """Render fields as Dradis block text: ``#[Key]#\\r\\nValue\\r\\n\\r\\n`` per field.

    Values are not escaped. A value that itself contains ``#[Name]#`` will be
    split into an extra field when the server parses the text back.
    """
    if not isinstance(fields, OrderedFieldMap):
        fields = OrderedFieldMap(fields)
    return "".join(f"#[{k}]#\r\n{v}\r\n\r\n" for k, v in fields.items())
