"""Renderer — the public entry point of the rendering pipeline.

Pipeline:
    bytes → fingerprint → ASTCache ─hit──────────────┐
                             └─miss→ Parser → store ─┴→ Serializer → View

The renderer owns its configuration: parser, tag registry, AST cache,
loader, encoder, file ending, relative directory and an opaque services
handle passed through to tags and to the encoder.

Render operations are coroutines. Wrap one in ``asyncio.create_task`` to
get a cancellable handle; errors surface from the same await as results.

    >>> renderer = Renderer(relative_directory="/srv/templates/")
    >>> view = await renderer.render("home", {"title": "Welcome"})
    >>> view.text
    '<h1>Welcome</h1>'

    >>> view = await renderer.render_template(b"Hi {{ name }}", {"name": "Ada"})
    >>> bytes(view)
    b'Hi Ada'

Thread-Safety:
    A Renderer is safe to share between concurrent renders. The tag
    registry is immutable and the AST cache locks only around dict access.
    Each render builds its own serializer and output buffer.

"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from stencil.cache import ASTCache, fingerprint
from stencil.context import ContextValue
from stencil.encoder import ContextEncoder, DataEncoder
from stencil.exceptions import TemplateNotFoundError
from stencil.loaders import FileSystemLoader, Loader
from stencil.nodes import Node
from stencil.parser import Parser, TemplateParser
from stencil.render_context import DEFAULT_MAX_INCLUDE_DEPTH, render_context
from stencil.scanner import ByteScanner
from stencil.serializer import Serializer
from stencil.tags import TagRegistry, default_tags

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class View:
    """A finished render: UTF-8 encoded output bytes."""

    data: bytes = b""

    @property
    def text(self) -> str:
        return self.data.decode("utf-8")

    def __str__(self) -> str:
        return self.text

    def __bytes__(self) -> bytes:
        return self.data

    def __len__(self) -> int:
        return len(self.data)


@dataclass
class Renderer:
    """Parses, caches and serializes templates into Views.

    Attributes:
        parser: Turns scanned bytes into an AST (default: reference grammar)
        tags: Tag name → handler; a plain mapping is wrapped in a TagRegistry
        ast_cache: Parsed-AST memo; None parses on every render
        file_ending: Appended to paths that do not already end with it
        relative_directory: Prefixed to paths that do not start with ``/``
        loader: Reads template bytes for resolved paths
        encoder: Converts non-ContextValue contexts
        services: Opaque handle handed to tags and to the encoder
        max_include_depth: Nested render limit (circular include guard)
    """

    parser: Parser = field(default_factory=TemplateParser)
    tags: TagRegistry = field(default_factory=default_tags)
    ast_cache: ASTCache | None = field(default_factory=ASTCache)
    file_ending: str = ".html"
    relative_directory: str = ""
    loader: Loader = field(default_factory=FileSystemLoader)
    encoder: ContextEncoder = field(default_factory=DataEncoder)
    services: Any = None
    max_include_depth: int = DEFAULT_MAX_INCLUDE_DEPTH

    def __post_init__(self) -> None:
        if not isinstance(self.tags, TagRegistry):
            self.tags = TagRegistry(self.tags)

    # -- public API ------------------------------------------------------------

    async def render_template(
        self,
        template: bytes | str,
        context: Any = None,
        *,
        file: str = "template",
    ) -> View:
        """Render raw template bytes.

        Args:
            template: Raw template bytes (``str`` is encoded as UTF-8)
            context: ContextValue, None (null), or any object the encoder
                accepts
            file: Diagnostic label used in error messages only

        Raises:
            ContextEncodingError: If ``context`` cannot be encoded
            TemplateSyntaxError: If the bytes do not parse
            UnknownTagError: If the template uses an unregistered tag
            TagEvaluationError: If a tag handler fails
        """
        value = await self._context_value(context)
        data = template.encode("utf-8") if isinstance(template, str) else bytes(template)
        ast = self._ast(data, file)
        async with render_context(file, self.max_include_depth):
            text = await Serializer(self, value).serialize(ast)
        return View(text.encode("utf-8"))

    async def render(self, path: str, context: Any = None) -> View:
        """Load and render the template at ``path``.

        The path is resolved with :meth:`resolve_path`. Omitting
        ``context`` renders against null.

        Raises:
            TemplateNotFoundError: If the loader finds nothing at the
                resolved path
            ContextEncodingError, TemplateSyntaxError, UnknownTagError,
            TagEvaluationError: As for :meth:`render_template`
        """
        value = await self._context_value(context)
        absolute = self.resolve_path(path)
        data = await self.loader.load_bytes(absolute)
        if data is None:
            logger.debug("No template at %s", absolute)
            raise TemplateNotFoundError(absolute)
        return await self.render_template(data, value, file=absolute)

    def resolve_path(self, path: str) -> str:
        """Absolute location for ``path``.

        ``file_ending`` is appended unless already present, then
        ``relative_directory`` is prefixed unless the path starts with
        ``/``. Both steps are plain string concatenation.

        Example:
            >>> Renderer(file_ending=".tpl", relative_directory="/templates/").resolve_path("home")
            '/templates/home.tpl'
        """
        if not path.endswith(self.file_ending):
            path += self.file_ending
        if not path.startswith("/"):
            path = self.relative_directory + path
        return path

    # -- pipeline stages -------------------------------------------------------

    async def _context_value(self, context: Any) -> ContextValue:
        if context is None:
            return ContextValue.null()
        if isinstance(context, ContextValue):
            return context
        return await self.encoder.encode(context, self.services)

    def _ast(self, data: bytes, file: str) -> tuple[Node, ...]:
        cache = self.ast_cache
        key = fingerprint(data) if cache is not None else None
        if cache is not None:
            cached = cache.get(key)
            if cached is not None:
                logger.debug("AST cache hit for %s (%s)", file, key[:12])
                return cached

        ast = tuple(self.parser.parse(ByteScanner(data, file)))
        logger.debug("Parsed %s into %d nodes", file, len(ast))
        if cache is not None:
            cache.put(key, ast)
        return ast

    def __repr__(self) -> str:
        return (
            f"<Renderer tags={len(self.tags)} cache={'on' if self.ast_cache is not None else 'off'}"
            f" dir={self.relative_directory!r} ending={self.file_ending!r}>"
        )
