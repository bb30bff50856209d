"""Per-render state held in a ContextVar.

Each ``Renderer.render_template()`` call runs inside its own RenderContext,
which carries the diagnostic label of the template being serialized, the
line of the tag currently evaluating, and the include chain. Nested renders
(the ``include`` tag, or any tag that renders another template through the
renderer) automatically get a child context with an incremented depth, so
circular includes fail fast instead of recursing forever.

Async Safety:
    Every asyncio task owns a copy of the ContextVar state, so concurrent
    renders never observe each other's RenderContext.

"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field

from stencil.exceptions import ErrorCode, TemplateRuntimeError

# Deep enough for any real template hierarchy, shallow enough to stop
# circular includes early.
DEFAULT_MAX_INCLUDE_DEPTH = 50


@dataclass
class RenderContext:
    """State for one render call.

    Attributes:
        template_name: Diagnostic label of the template being rendered
        line: Line of the tag currently being evaluated
        include_depth: How many renders enclose this one
        max_include_depth: Depth at which nested renders are refused
        template_stack: (template_name, line) of every enclosing render
    """

    template_name: str | None = None
    line: int = 0
    include_depth: int = 0
    max_include_depth: int = DEFAULT_MAX_INCLUDE_DEPTH
    template_stack: list[tuple[str, int]] = field(default_factory=list)

    def check_include_depth(self, template_name: str) -> None:
        """Refuse a nested render once the depth limit is reached.

        Raises:
            TemplateRuntimeError: If include_depth >= max_include_depth
        """
        if self.include_depth >= self.max_include_depth:
            error = TemplateRuntimeError(
                f"Maximum include depth exceeded ({self.max_include_depth}) "
                f"when rendering '{template_name}'",
                template_name=self.template_name,
                lineno=self.line or None,
                suggestion="Check for circular includes: A → B → A",
                template_stack=self.template_stack,
            )
            error.code = ErrorCode.INCLUDE_DEPTH
            raise error

    def child_context(self, template_name: str) -> RenderContext:
        """Context for a render nested inside this one."""
        stack = self.template_stack.copy()
        if self.template_name:
            stack.append((self.template_name, self.line))
        return RenderContext(
            template_name=template_name,
            include_depth=self.include_depth + 1,
            max_include_depth=self.max_include_depth,
            template_stack=stack,
        )


_render_context: ContextVar[RenderContext | None] = ContextVar(
    "stencil_render_context",
    default=None,
)


def get_render_context() -> RenderContext | None:
    """Current RenderContext, or None outside a render."""
    return _render_context.get()


@asynccontextmanager
async def render_context(
    template_name: str,
    max_include_depth: int = DEFAULT_MAX_INCLUDE_DEPTH,
) -> AsyncIterator[RenderContext]:
    """Enter render-scoped state for ``template_name``.

    Inside an enclosing render this creates a child context (after checking
    the include depth); otherwise a fresh root context.

    Example:
        async with render_context("/templates/home.html") as ctx:
            text = await serializer.serialize(ast)
    """
    parent = _render_context.get()
    if parent is None:
        ctx = RenderContext(template_name=template_name, max_include_depth=max_include_depth)
    else:
        parent.check_include_depth(template_name)
        ctx = parent.child_context(template_name)
    token: Token[RenderContext | None] = _render_context.set(ctx)
    try:
        yield ctx
    finally:
        _render_context.reset(token)
