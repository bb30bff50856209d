"""TagContext: everything a tag handler can see about one invocation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from stencil.context import ContextValue, Kind
from stencil.exceptions import TagContractError
from stencil.render_context import get_render_context

if TYPE_CHECKING:
    from stencil.nodes import Node
    from stencil.renderer import Renderer
    from stencil.serializer import Serializer


@dataclass(frozen=True, slots=True)
class TagContext:
    """One tag invocation as seen by its handler.

    Attributes:
        name: The tag name as written in the template
        params: Parameters, already evaluated, in source order
        body: Child nodes for block tags, None for inline tags
        orelse: Nodes after ``{% else %}``, or None
        context: The ContextValue the enclosing template renders against
        services: The renderer's opaque services handle, passed through
        renderer: The Renderer running this serialization
        lineno: Source line of the tag
        col_offset: Source column of the tag
    """

    name: str
    params: tuple[ContextValue, ...]
    body: tuple[Node, ...] | None
    orelse: tuple[Node, ...] | None
    context: ContextValue
    serializer: Serializer
    lineno: int = 0
    col_offset: int = 0

    @property
    def renderer(self) -> Renderer:
        return self.serializer.renderer

    @property
    def services(self) -> Any:
        return self.serializer.renderer.services

    def fetch(self, *path: str | int) -> ContextValue:
        """Resolve a path against the current context."""
        return self.context.fetch(path)

    async def render_body(self, context: ContextValue | None = None) -> str:
        """Serialize the block body, optionally against another context.

        Returns an empty string for inline tags.
        """
        if self.body is None:
            return ""
        return await self.serializer.child(context).serialize(self.body)

    async def render_else(self, context: ContextValue | None = None) -> str:
        """Serialize the ``{% else %}`` branch, or return an empty string."""
        if self.orelse is None:
            return ""
        return await self.serializer.child(context).serialize(self.orelse)

    def bind(self, bindings: Mapping[str, Any]) -> ContextValue:
        """Current context with ``bindings`` layered on top.

        A dictionary context keeps its other keys; any other context is
        replaced by a dictionary holding just the bindings.
        """
        base: dict[str, Any] = {}
        if self.context.kind is Kind.DICTIONARY:
            base.update(self.context.value)
        base.update(bindings)
        return ContextValue.dictionary(base)

    # -- contract checks -----------------------------------------------------

    def require_parameter_count(self, minimum: int, maximum: int | None = None) -> None:
        """Require ``minimum`` parameters, or between ``minimum`` and ``maximum``.

        Raises:
            TagContractError: If the count is out of range
        """
        upper = minimum if maximum is None else maximum
        count = len(self.params)
        if minimum <= count <= upper:
            return
        expected = str(minimum) if upper == minimum else f"{minimum} to {upper}"
        raise self._contract_error(f"Tag '{self.name}' expects {expected} parameter(s), got {count}")

    def require_body(self) -> None:
        if self.body is None:
            raise self._contract_error(
                f"Tag '{self.name}' requires a body; open it with {{% #{self.name} %}}"
            )

    def require_no_body(self) -> None:
        if self.body is not None:
            raise self._contract_error(f"Tag '{self.name}' does not accept a body")

    def _contract_error(self, message: str) -> TagContractError:
        render_ctx = get_render_context()
        return TagContractError(
            message,
            template_name=render_ctx.template_name if render_ctx else None,
            lineno=self.lineno or None,
        )
