"""Stencil — an async template rendering pipeline with pluggable tags.

Templates are parsed once into an immutable AST, memoized by a SHA-256
fingerprint of their bytes, and serialized against a ContextValue. Every
directive, including control flow, is a tag resolved through a registry,
so the pipeline itself knows nothing about template-language specifics.

Quickstart:
    >>> from stencil import Renderer
    >>> renderer = Renderer()
    >>> view = await renderer.render_template("Hello, {{ name }}!", {"name": "World"})
    >>> view.text
    'Hello, World!'

File-based templates:
    >>> renderer = Renderer(relative_directory="templates/", file_ending=".html")
    >>> view = await renderer.render("index", {"page": page})

Custom tags:
    >>> def shout(tag):
    ...     return tag.params[0].text.upper() + "!"
    >>> renderer = Renderer(tags=default_tags().merged({"shout": shout}))
    >>> (await renderer.render_template("{{ shout(name) }}", {"name": "hi"})).text
    'HI!'

Architecture:
Template bytes → ByteScanner → Parser → AST → ASTCache → Serializer → View

Pipeline stages:
1. **Parser**: Builds an immutable AST (pluggable; a reference grammar ships)
2. **ASTCache**: Memoizes ASTs by content fingerprint (optional)
3. **Serializer**: Walks the AST in document order, dispatching tags
4. **Renderer**: Orchestrates the stages and loads/encodes inputs

Thread-Safety:
- ASTs and ContextValues are immutable
- The tag registry is read-only after construction
- The AST cache locks only around dict operations, never across awaits
- Each render owns its output buffer

"""

from stencil.cache import ASTCache, fingerprint
from stencil.context import ContextValue, Kind
from stencil.encoder import ContextEncoder, DataEncoder
from stencil.exceptions import (
    ContextEncodingError,
    ErrorCode,
    SourceSnippet,
    TagContractError,
    TagEvaluationError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    UnknownTagError,
    build_source_snippet,
)
from stencil.loaders import ChoiceLoader, DictLoader, FileSystemLoader, FunctionLoader, Loader
from stencil.parser import Parser, TemplateParser
from stencil.render_context import RenderContext, get_render_context
from stencil.renderer import Renderer, View
from stencil.scanner import ByteScanner
from stencil.serializer import Serializer
from stencil.tags import FunctionTag, TagContext, TagHandler, TagRegistry, default_tags

__version__ = "0.1.0"

__all__ = [
    "ASTCache",
    "ByteScanner",
    "ChoiceLoader",
    "ContextEncoder",
    "ContextEncodingError",
    "ContextValue",
    "DataEncoder",
    "DictLoader",
    "ErrorCode",
    "FileSystemLoader",
    "FunctionLoader",
    "FunctionTag",
    "Kind",
    "Loader",
    "Parser",
    "RenderContext",
    "Renderer",
    "Serializer",
    "SourceSnippet",
    "TagContext",
    "TagContractError",
    "TagEvaluationError",
    "TagHandler",
    "TagRegistry",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateParser",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "UnknownTagError",
    "View",
    "__version__",
    "build_source_snippet",
    "default_tags",
    "fingerprint",
    "get_render_context",
]
