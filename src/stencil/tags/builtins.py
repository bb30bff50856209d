"""Built-in tags.

Control flow (``if``, ``for``, ``with``), composition (``include``) and a
handful of value helpers are ordinary tags: the serializer knows nothing
about them beyond their registry entries.

| Tag          | Example                                               |
|--------------|-------------------------------------------------------|
| get          | ``{{ user.name }}``                                   |
| if           | ``{% #if user.admin %}…{% else %}…{% /if %}``         |
| for          | ``{% #for posts, "post" %}{{ loop.index }}{% /for %}``|
| with         | ``{% #with user.address, "addr" %}…{% /with %}``      |
| include      | ``{% include "partials/footer" %}``                   |
| raw          | ``{% #raw %}{{ kept verbatim }}{% /raw %}``           |
| comment      | ``{% #comment %}not rendered{% /comment %}``          |
| count        | ``{{ count(posts) }}``                                |
| contains     | ``{% #if contains(roles, "admin") %}…{% /if %}``      |
| lowercase    | ``{{ lowercase(name) }}``                             |
| uppercase    | ``{{ uppercase(name) }}``                             |
| capitalize   | ``{{ capitalize(name) }}``                            |
| default      | ``{{ default(nickname, "anonymous") }}``              |
| join         | ``{{ join(tags, " / ") }}``                           |
| date         | ``{{ date(post.published, "%Y-%m-%d") }}``            |

"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from stencil.context import ContextValue, Kind
from stencil.nodes import Raw
from stencil.tags.context import TagContext
from stencil.tags.registry import TagRegistry

DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Get:
    """Returns its single parameter; the target of ``{{ expr }}``."""

    def render(self, tag: TagContext) -> ContextValue:
        tag.require_parameter_count(1)
        tag.require_no_body()
        return tag.params[0]


class If:
    """Renders the body when the condition is truthy, otherwise the else branch."""

    async def render(self, tag: TagContext) -> str:
        tag.require_parameter_count(1)
        tag.require_body()
        if tag.params[0].truthy:
            return await tag.render_body()
        return await tag.render_else()


class For:
    """Renders the body once per element.

    The element is bound to the name given as second parameter (default
    ``item``), alongside a ``loop`` dictionary with ``index`` (1-based),
    ``index0``, ``first``, ``last`` and ``length``. Dictionaries iterate as
    ``{key, value}`` pairs in insertion order. An empty or null collection
    renders the else branch.
    """

    async def render(self, tag: TagContext) -> str:
        tag.require_parameter_count(1, 2)
        tag.require_body()
        items = _iterable(tag.params[0])
        name = tag.params[1].text if len(tag.params) > 1 else "item"
        if not items:
            return await tag.render_else()

        length = len(items)
        out: list[str] = []
        for index0, item in enumerate(items):
            loop = {
                "index": index0 + 1,
                "index0": index0,
                "first": index0 == 0,
                "last": index0 == length - 1,
                "length": length,
            }
            out.append(await tag.render_body(tag.bind({name: item, "loop": loop})))
        return "".join(out)


def _iterable(value: ContextValue) -> tuple[Any, ...]:
    kind = value.kind
    if kind is Kind.ARRAY:
        return value.value
    if kind is Kind.DICTIONARY:
        return tuple({"key": key, "value": item} for key, item in value.value.items())
    if kind is Kind.NULL:
        return ()
    raise TypeError(f"Cannot iterate over a {kind.value} value")


class With:
    """Renders the body with a value bound to a name."""

    async def render(self, tag: TagContext) -> str:
        tag.require_parameter_count(2)
        tag.require_body()
        return await tag.render_body(tag.bind({tag.params[1].text: tag.params[0]}))


class Include:
    """Renders another template against the current context.

    The path is resolved by the renderer exactly like ``Renderer.render``
    (file ending and relative directory applied). Nesting is limited by
    ``Renderer.max_include_depth``.
    """

    async def render(self, tag: TagContext) -> str:
        tag.require_parameter_count(1)
        tag.require_no_body()
        view = await tag.renderer.render(tag.params[0].text, tag.context)
        return view.text


class RawBlock:
    """Returns the literal text of its body without evaluating it."""

    def render(self, tag: TagContext) -> str:
        tag.require_parameter_count(0)
        tag.require_body()
        return "".join(node.value for node in tag.body if isinstance(node, Raw))


class Comment:
    """Renders nothing."""

    def render(self, tag: TagContext) -> None:
        return None


def count(tag: TagContext) -> int:
    tag.require_parameter_count(1)
    value = tag.params[0]
    if value.kind in (Kind.ARRAY, Kind.DICTIONARY, Kind.STRING):
        return len(value.value)
    if value.is_null:
        return 0
    raise TypeError(f"Cannot count a {value.kind.value} value")


def contains(tag: TagContext) -> bool:
    tag.require_parameter_count(2)
    haystack, needle = tag.params
    if haystack.kind is Kind.ARRAY:
        return needle in haystack.value
    if haystack.kind is Kind.DICTIONARY:
        return needle.text in haystack.value
    if haystack.kind is Kind.STRING:
        return needle.text in haystack.value
    return False


def _string_transform(func):
    def render(tag: TagContext) -> ContextValue:
        tag.require_parameter_count(1)
        value = tag.params[0]
        if value.is_null:
            return value
        return ContextValue.string(func(value.text))

    render.__qualname__ = f"string_transform({func.__qualname__})"
    return render


def default(tag: TagContext) -> ContextValue:
    tag.require_parameter_count(2)
    value, fallback = tag.params
    return fallback if value.is_null else value


def join(tag: TagContext) -> str:
    tag.require_parameter_count(1, 2)
    items = tag.params[0]
    separator = tag.params[1].text if len(tag.params) > 1 else ", "
    if items.is_null:
        return ""
    if items.kind is not Kind.ARRAY:
        raise TypeError(f"Cannot join a {items.kind.value} value")
    return separator.join(item.text for item in items.value)


def date(tag: TagContext) -> str:
    """Format a UNIX timestamp (UTC) with ``strftime``."""
    tag.require_parameter_count(1, 2)
    timestamp = tag.params[0].as_float()
    if timestamp is None:
        raise TypeError(f"Expected a timestamp, got {tag.params[0].kind.value}")
    fmt = tag.params[1].text if len(tag.params) > 1 else DEFAULT_DATE_FORMAT
    return datetime.fromtimestamp(timestamp, tz=UTC).strftime(fmt)


BUILTIN_TAGS: dict[str, Any] = {
    "get": Get(),
    "if": If(),
    "for": For(),
    "with": With(),
    "include": Include(),
    "raw": RawBlock(),
    "comment": Comment(),
    "count": count,
    "contains": contains,
    "lowercase": _string_transform(str.lower),
    "uppercase": _string_transform(str.upper),
    "capitalize": _string_transform(str.capitalize),
    "default": default,
    "join": join,
    "date": date,
}


def default_tags() -> TagRegistry:
    """Registry holding every built-in tag."""
    return TagRegistry(BUILTIN_TAGS)
