"""Serializer: walks an AST against a context and the tag registry.

The walk is strictly left to right. Each node is fully evaluated (awaiting
any asynchronous tag handler) before the next one starts, so tag side
effects happen in document order.

Output uses the StringBuilder pattern: fragments are appended to a local
list and joined once at the end. If any node fails, the list is dropped
with the exception and no partial output escapes.

Error Wrapping:
    - A tag missing from the registry raises UnknownTagError
    - A handler exception is wrapped in TagEvaluationError (``__cause__``
      set to the original)
    - UnknownTagError and TagEvaluationError raised by a nested
      serialization (a block body, an included template) pass through
      unchanged, so the innermost failing tag is the one reported
    - Cancellation is never wrapped

"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Sequence
from typing import TYPE_CHECKING

from stencil.context import ContextValue
from stencil.exceptions import TagEvaluationError, UnknownTagError
from stencil.nodes import Constant, Identifier, Node, Raw, Tag
from stencil.render_context import get_render_context
from stencil.tags.context import TagContext

if TYPE_CHECKING:
    from stencil.renderer import Renderer


class Serializer:
    """One serialization session bound to a renderer and a context.

    Example:
        >>> serializer = Serializer(renderer, ContextValue.of({"name": "Ada"}))
        >>> await serializer.serialize(ast)
        'Hello, Ada!'
    """

    __slots__ = ("context", "renderer")

    def __init__(self, renderer: Renderer, context: ContextValue):
        self.renderer = renderer
        self.context = context

    def child(self, context: ContextValue | None = None) -> Serializer:
        """Serializer for a nested body, sharing this session's renderer."""
        return Serializer(self.renderer, self.context if context is None else context)

    async def serialize(self, ast: Sequence[Node]) -> str:
        buf: list[str] = []
        _append = buf.append
        for node in ast:
            if isinstance(node, Raw):
                _append(node.value)
            elif isinstance(node, Tag):
                _append((await self.evaluate(node)).text)
            else:
                _append((await self.evaluate_param(node)).text)
        return "".join(buf)

    async def evaluate_param(self, node: Node) -> ContextValue:
        """Evaluate a parameter node to a ContextValue."""
        if isinstance(node, Constant):
            return node.value
        if isinstance(node, Identifier):
            return self.context.fetch(node.path)
        if isinstance(node, Tag):
            return await self.evaluate(node)
        if isinstance(node, Raw):
            return ContextValue.string(node.value)
        raise TypeError(f"Cannot evaluate AST node of type {type(node).__name__}")

    async def evaluate(self, tag: Tag) -> ContextValue:
        """Resolve ``tag`` in the registry and run its handler."""
        render_ctx = get_render_context()
        template_name = render_ctx.template_name if render_ctx else None

        handler = self.renderer.tags.lookup(tag.name)
        if handler is None:
            raise UnknownTagError(
                tag.name,
                available=frozenset(self.renderer.tags),
                template_name=template_name,
                lineno=tag.lineno,
            )

        try:
            params = tuple([await self.evaluate_param(param) for param in tag.params])
            if render_ctx is not None:
                render_ctx.line = tag.lineno
            tag_context = TagContext(
                name=tag.name,
                params=params,
                body=tag.body,
                orelse=tag.orelse,
                context=self.context,
                serializer=self,
                lineno=tag.lineno,
                col_offset=tag.col_offset,
            )
            result = handler.render(tag_context)
            if inspect.isawaitable(result):
                result = await result
            return ContextValue.of(result)
        except (UnknownTagError, TagEvaluationError, asyncio.CancelledError):
            raise
        except Exception as e:
            raise TagEvaluationError(
                tag.name,
                e,
                template_name=template_name,
                lineno=tag.lineno,
                template_stack=render_ctx.template_stack if render_ctx else None,
            ) from e
