"""ContextValue, the generic, self-describing data a template renders against.

A ContextValue is a closed variant over null, bool, int, float, string,
array, dictionary and opaque. It is immutable once built: arrays are stored
as tuples and dictionaries as read-only mapping proxies over a private copy.

Construction:
    >>> ContextValue.of({"user": {"name": "Ada"}, "tags": ["a", "b"]})
    >>> ContextValue.string("hello")
    >>> ContextValue.null()

Path resolution:
    >>> ctx = ContextValue.of({"users": [{"name": "Ada"}]})
    >>> ctx.fetch(("users", 0, "name")).text
    'Ada'

Truthiness:
    null → False; bool → itself; numbers → non-zero; string → non-empty and
    not "false" / "0"; array and dictionary → non-empty; opaque → bool(obj).

Textual form:
    null → ""; bool → "true" / "false"; int → decimal; float → repr();
    array and dictionary → compact JSON; opaque → str(obj).

Thread-Safety:
    Values are immutable and safe to share between concurrent renders.

"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

_FALSE_STRINGS = frozenset({"false", "0"})


class Kind(Enum):
    """The variant tag of a ContextValue."""

    NULL = "null"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    ARRAY = "array"
    DICTIONARY = "dictionary"
    OPAQUE = "opaque"


@dataclass(frozen=True, slots=True)
class ContextValue:
    """Immutable tagged union of template data.

    Attributes:
        kind: Which variant this value is
        value: The payload (None, bool, int, float, str, tuple of
            ContextValue, read-only mapping of str → ContextValue, or any
            object for OPAQUE)
    """

    kind: Kind
    value: Any = None

    # -- construction ---------------------------------------------------------

    @classmethod
    def null(cls) -> ContextValue:
        return _NULL

    @classmethod
    def boolean(cls, value: bool) -> ContextValue:
        return _TRUE if value else _FALSE

    @classmethod
    def integer(cls, value: int) -> ContextValue:
        return cls(Kind.INT, int(value))

    @classmethod
    def number(cls, value: float) -> ContextValue:
        return cls(Kind.FLOAT, float(value))

    @classmethod
    def string(cls, value: str) -> ContextValue:
        return cls(Kind.STRING, str(value))

    @classmethod
    def array(cls, items: Iterable[Any]) -> ContextValue:
        """Build an ARRAY; elements are converted with :meth:`of`."""
        return cls(Kind.ARRAY, tuple(cls.of(item) for item in items))

    @classmethod
    def dictionary(cls, mapping: Mapping[str, Any]) -> ContextValue:
        """Build a DICTIONARY; values are converted with :meth:`of`.

        Raises:
            TypeError: If a key is not a string
        """
        copied: dict[str, ContextValue] = {}
        for key, item in mapping.items():
            if not isinstance(key, str):
                raise TypeError(
                    f"ContextValue dictionary keys must be str, got {type(key).__name__}"
                )
            copied[key] = cls.of(item)
        return cls(Kind.DICTIONARY, MappingProxyType(copied))

    @classmethod
    def opaque(cls, obj: Any) -> ContextValue:
        return cls(Kind.OPAQUE, obj)

    @classmethod
    def of(cls, obj: Any) -> ContextValue:
        """Convert literal Python data into a ContextValue.

        Handles None, bool, int, float, str, mappings, lists and tuples
        recursively. Existing ContextValues are returned unchanged; anything
        else is wrapped as OPAQUE.
        """
        if obj is None:
            return _NULL
        if isinstance(obj, ContextValue):
            return obj
        # bool before int: bool is an int subclass
        if isinstance(obj, bool):
            return cls.boolean(obj)
        if isinstance(obj, int):
            return cls.integer(obj)
        if isinstance(obj, float):
            return cls.number(obj)
        if isinstance(obj, str):
            return cls.string(obj)
        if isinstance(obj, Mapping):
            return cls.dictionary(obj)
        if isinstance(obj, (list, tuple)):
            return cls.array(obj)
        return cls.opaque(obj)

    # -- inspection -----------------------------------------------------------

    @property
    def is_null(self) -> bool:
        return self.kind is Kind.NULL

    @property
    def truthy(self) -> bool:
        kind = self.kind
        if kind is Kind.NULL:
            return False
        if kind is Kind.STRING:
            return bool(self.value) and self.value.lower() not in _FALSE_STRINGS
        if kind is Kind.OPAQUE:
            return bool(self.value)
        # bool, numbers, tuple and mapping payloads follow Python truthiness
        return bool(self.value)

    def __bool__(self) -> bool:
        return self.truthy

    @property
    def text(self) -> str:
        """Textual form used when the value is written into a view."""
        kind = self.kind
        if kind is Kind.STRING:
            return self.value
        if kind is Kind.NULL:
            return ""
        if kind is Kind.BOOL:
            return "true" if self.value else "false"
        if kind is Kind.INT:
            return str(self.value)
        if kind is Kind.FLOAT:
            return repr(self.value)
        if kind is Kind.OPAQUE:
            return str(self.value)
        return json.dumps(
            self.to_python(),
            default=str,
            ensure_ascii=False,
            separators=(",", ":"),
        )

    def __str__(self) -> str:
        return self.text

    def as_int(self) -> int | None:
        """Integer view of numbers, bools and numeric strings; else None."""
        kind = self.kind
        if kind in (Kind.INT, Kind.BOOL):
            return int(self.value)
        if kind is Kind.FLOAT:
            return int(self.value)
        if kind is Kind.STRING:
            try:
                return int(self.value.strip())
            except ValueError:
                return None
        return None

    def as_float(self) -> float | None:
        """Float view of numbers, bools and numeric strings; else None."""
        kind = self.kind
        if kind in (Kind.INT, Kind.FLOAT, Kind.BOOL):
            return float(self.value)
        if kind is Kind.STRING:
            try:
                return float(self.value.strip())
            except ValueError:
                return None
        return None

    def as_list(self) -> tuple[ContextValue, ...] | None:
        return self.value if self.kind is Kind.ARRAY else None

    def as_dict(self) -> Mapping[str, ContextValue] | None:
        return self.value if self.kind is Kind.DICTIONARY else None

    def to_python(self) -> Any:
        """Unwrap into plain Python data (tuples become lists)."""
        kind = self.kind
        if kind is Kind.ARRAY:
            return [item.to_python() for item in self.value]
        if kind is Kind.DICTIONARY:
            return {key: item.to_python() for key, item in self.value.items()}
        return self.value

    # -- path resolution ------------------------------------------------------

    def get(self, key: str | int) -> ContextValue:
        """Resolve a single path step; missing steps resolve to null."""
        kind = self.kind
        if kind is Kind.DICTIONARY:
            found = self.value.get(key if isinstance(key, str) else str(key))
            return _NULL if found is None else found
        if kind is Kind.ARRAY:
            index = key
            if isinstance(index, str):
                try:
                    index = int(index)
                except ValueError:
                    return _NULL
            if -len(self.value) <= index < len(self.value):
                return self.value[index]
            return _NULL
        if kind is Kind.OPAQUE:
            return _step_into_object(self.value, key)
        return _NULL

    def fetch(self, path: Sequence[str | int]) -> ContextValue:
        """Resolve a dotted / indexed path such as ``("users", 0, "name")``.

        Missing keys, out-of-range indexes and steps into scalars all
        resolve to null rather than raising.
        """
        current = self
        for step in path:
            current = current.get(step)
            if current.kind is Kind.NULL:
                break
        return current

    def __hash__(self) -> int:
        # mapping proxies are unhashable; opaque payloads hash as themselves
        if self.kind is Kind.DICTIONARY:
            return hash((self.kind, frozenset(self.value.items())))
        return hash((self.kind, self.value))

    def __repr__(self) -> str:
        if self.kind is Kind.NULL:
            return "ContextValue.null()"
        return f"ContextValue({self.kind.value}, {self.to_python()!r})"


def _step_into_object(obj: Any, key: str | int) -> ContextValue:
    if isinstance(key, str):
        try:
            return ContextValue.of(getattr(obj, key))
        except AttributeError:
            pass
    try:
        return ContextValue.of(obj[key])
    except (KeyError, IndexError, TypeError):
        return _NULL


_NULL = ContextValue(Kind.NULL, None)
_TRUE = ContextValue(Kind.BOOL, True)
_FALSE = ContextValue(Kind.BOOL, False)
