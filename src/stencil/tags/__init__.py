"""Tag handlers, the tag registry and the built-in tag set."""

from stencil.tags.builtins import BUILTIN_TAGS, default_tags
from stencil.tags.context import TagContext
from stencil.tags.registry import FunctionTag, TagHandler, TagRegistry

__all__ = [
    "BUILTIN_TAGS",
    "FunctionTag",
    "TagContext",
    "TagHandler",
    "TagRegistry",
    "default_tags",
]
