"""AST nodes produced by parsers and consumed by the serializer.

All nodes track their source location for error reporting and are frozen
so a cached AST can be shared between concurrent renders.

"""

from __future__ import annotations

from dataclasses import dataclass

from stencil.context import ContextValue


@dataclass(frozen=True, slots=True)
class Node:
    """Base class for all AST nodes."""

    lineno: int
    col_offset: int


@dataclass(frozen=True, slots=True)
class Raw(Node):
    """Literal template text, written to the view verbatim."""

    value: str


@dataclass(frozen=True, slots=True)
class Constant(Node):
    """Literal parameter: ``"text"``, ``42``, ``1.5``, ``true``, ``null``."""

    value: ContextValue


@dataclass(frozen=True, slots=True)
class Identifier(Node):
    """Context lookup: ``user.friends[0].name`` → ``("user", "friends", 0, "name")``."""

    path: tuple[str | int, ...]


@dataclass(frozen=True, slots=True)
class Tag(Node):
    """Tag invocation resolved through the tag registry at render time.

    ``body`` is None for inline tags. ``orelse`` holds the nodes after an
    ``{% else %}`` inside a block, or None.
    """

    name: str
    params: tuple[Node, ...] = ()
    body: tuple[Node, ...] | None = None
    orelse: tuple[Node, ...] | None = None
