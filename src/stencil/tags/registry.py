"""Tag handler protocol and the read-only tag registry.

A tag handler is any object with ``render(tag: TagContext)``. The result
may be a ContextValue, plain Python data (converted with
``ContextValue.of``), None (null), or an awaitable of any of those.

The registry is built once and never mutated; renders running concurrently
can read it without coordination. ``merged()`` returns a new registry for
the rare case where a derived tag set is needed.

Example:
    >>> registry = TagRegistry({"shout": lambda tag: tag.params[0].text.upper()})
    >>> "shout" in registry
    True
    >>> registry.merged({"whisper": Whisper()}).names()
    ['shout', 'whisper']

"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from stencil.tags.context import TagContext


@runtime_checkable
class TagHandler(Protocol):
    """Evaluates one tag invocation."""

    def render(self, tag: TagContext) -> Any: ...


class FunctionTag:
    """Adapts a plain callable ``func(tag)`` to the TagHandler protocol."""

    __slots__ = ("_func",)

    def __init__(self, func: Callable[[TagContext], Any]):
        self._func = func

    def render(self, tag: TagContext) -> Any:
        return self._func(tag)

    def __repr__(self) -> str:
        return f"<FunctionTag {getattr(self._func, '__qualname__', self._func)!r}>"


def _as_handler(name: str, handler: Any) -> TagHandler:
    if isinstance(handler, TagHandler):
        return handler
    if callable(handler):
        return FunctionTag(handler)
    raise TypeError(
        f"Tag '{name}' must be a TagHandler or a callable, got {type(handler).__name__}"
    )


class TagRegistry(Mapping[str, TagHandler]):
    """Immutable mapping of tag name → TagHandler.

    Plain callables are wrapped in FunctionTag on construction.
    """

    __slots__ = ("_tags",)

    def __init__(self, tags: Mapping[str, Any] | None = None):
        normalized: dict[str, TagHandler] = {}
        for name, handler in (tags or {}).items():
            if not isinstance(name, str) or not name:
                raise TypeError(f"Tag names must be non-empty strings, got {name!r}")
            normalized[name] = _as_handler(name, handler)
        self._tags = MappingProxyType(normalized)

    def lookup(self, name: str) -> TagHandler | None:
        """Handler registered under ``name``, or None."""
        return self._tags.get(name)

    def names(self) -> list[str]:
        return sorted(self._tags)

    def merged(self, tags: Mapping[str, Any]) -> TagRegistry:
        """New registry with ``tags`` added (overriding same-named entries)."""
        combined: dict[str, Any] = dict(self._tags)
        combined.update(tags)
        return TagRegistry(combined)

    def __getitem__(self, name: str) -> TagHandler:
        return self._tags[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tags)

    def __len__(self) -> int:
        return len(self._tags)

    def __repr__(self) -> str:
        return f"<TagRegistry {self.names()}>"
