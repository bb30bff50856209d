"""Encoding of arbitrary objects into ContextValues.

The renderer hands any context that is not already a ContextValue (or
None) to its encoder:

    async def encode(self, obj: Any, services: Any) -> ContextValue

``services`` is the renderer's opaque services handle, passed through for
encoders that need application state (e.g. a database session to resolve
lazy relations).

``DataEncoder`` is the bundled encoder. It understands plain data,
dataclasses, enums, dates and objects that expose ``__context_value__()``.
Anything else raises ContextEncodingError naming where in the object graph
the offending value sits.

"""

from __future__ import annotations

import dataclasses
import enum
from collections.abc import Mapping, Set
from datetime import date, datetime, time
from typing import Any, Protocol

from stencil.context import ContextValue
from stencil.exceptions import ContextEncodingError


class ContextEncoder(Protocol):
    """Converts an application object into a ContextValue."""

    async def encode(self, obj: Any, services: Any) -> ContextValue:
        """Encode ``obj``.

        Raises:
            ContextEncodingError: If ``obj`` cannot be represented
        """
        ...


class DataEncoder:
    """Encoder for plain data and dataclasses.

    Supported values:
        - None, bool, int, float, str
        - Mappings with string keys
        - lists and tuples (order kept), sets and frozensets (sorted by
          their textual form so renders are deterministic)
        - dataclass instances (fields in declaration order)
        - Enum members (their ``value``)
        - datetime, date and time (ISO 8601 strings)
        - objects with ``__context_value__()`` returning any of the above
        - ContextValues (kept as-is)

    Example:
        >>> @dataclass
        ... class User:
        ...     name: str
        >>> await DataEncoder().encode({"user": User("Ada")}, None)
        ContextValue(dictionary, {'user': {'name': 'Ada'}})
    """

    __slots__ = ()

    async def encode(self, obj: Any, services: Any) -> ContextValue:
        return self.encode_value(obj)

    def encode_value(self, obj: Any) -> ContextValue:
        """Synchronous encoding entry point."""
        try:
            return self._encode(obj, "$", set())
        except RecursionError as e:
            raise ContextEncodingError("nesting too deep", "$") from e

    def _encode(self, obj: Any, path: str, active: set[int]) -> ContextValue:
        if obj is None or isinstance(obj, (ContextValue, bool, int, float, str)):
            return ContextValue.of(obj)
        if isinstance(obj, enum.Enum):
            return self._encode(obj.value, path, active)
        if isinstance(obj, (datetime, date, time)):
            return ContextValue.string(obj.isoformat())

        try:
            hook = getattr(obj, "__context_value__", None)
            if hook is not None and callable(hook):
                return self._nested(hook(), path, active)
            if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
                fields = {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
                return self._nested(fields, path, active, marker=obj)
        except (ContextEncodingError, RecursionError):
            raise
        except Exception as e:
            raise ContextEncodingError(str(e) or type(e).__name__, path) from e
        if isinstance(obj, (Mapping, list, tuple, Set)):
            return self._nested(obj, path, active)
        raise ContextEncodingError(f"unsupported type {type(obj).__name__}", path)

    def _nested(
        self,
        obj: Any,
        path: str,
        active: set[int],
        marker: Any = None,
    ) -> ContextValue:
        ident = id(obj if marker is None else marker)
        if ident in active:
            raise ContextEncodingError("circular reference", path)
        active.add(ident)
        try:
            if isinstance(obj, Mapping):
                encoded: dict[str, ContextValue] = {}
                for key, value in obj.items():
                    if not isinstance(key, str):
                        raise ContextEncodingError(
                            f"dictionary key {key!r} is not a string", path
                        )
                    encoded[key] = self._encode(value, f"{path}.{key}", active)
                return ContextValue.dictionary(encoded)
            if isinstance(obj, Set):
                items = sorted(
                    (self._encode(value, f"{path}[*]", active) for value in obj),
                    key=lambda value: value.text,
                )
                return ContextValue.array(items)
            if isinstance(obj, (list, tuple)):
                return ContextValue.array(
                    self._encode(value, f"{path}[{index}]", active)
                    for index, value in enumerate(obj)
                )
            return self._encode(obj, path, active)
        finally:
            active.discard(ident)

    def __repr__(self) -> str:
        return "<DataEncoder>"
