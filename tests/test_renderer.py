"""Tests for the Renderer pipeline: caching, path resolution and loading."""

from __future__ import annotations

import logging

import pytest

from stencil import (
    ASTCache,
    ContextEncodingError,
    ContextValue,
    DictLoader,
    ErrorCode,
    Renderer,
    TemplateNotFoundError,
    TemplateSyntaxError,
    UnknownTagError,
    View,
    fingerprint,
)

from .conftest import TEMPLATES, CountingParser, assert_contains


class TestRenderTemplate:
    @pytest.mark.asyncio
    async def test_basic_render(self, renderer: Renderer) -> None:
        view = await renderer.render_template(b"Hello, {{ name }}!", {"name": "World"})
        assert isinstance(view, View)
        assert view.data == b"Hello, World!"
        assert view.text == "Hello, World!"
        assert str(view) == bytes(view).decode()

    @pytest.mark.asyncio
    async def test_str_template_accepted(self, renderer: Renderer) -> None:
        view = await renderer.render_template("{{ greeting }}", {"greeting": "hi"})
        assert view.text == "hi"

    @pytest.mark.asyncio
    async def test_output_is_utf8(self, renderer: Renderer) -> None:
        view = await renderer.render_template("{{ word }}", {"word": "naïve ☃"})
        assert view.data == "naïve ☃".encode()
        assert len(view) == len("naïve ☃".encode())

    @pytest.mark.asyncio
    async def test_empty_template(self, renderer: Renderer) -> None:
        view = await renderer.render_template(b"", {"anything": 1})
        assert view.data == b""

    @pytest.mark.asyncio
    async def test_no_context_renders_against_null(self, renderer: Renderer) -> None:
        view = await renderer.render_template(b"[{{ missing }}]")
        assert view.text == "[]"

    @pytest.mark.asyncio
    async def test_context_value_used_as_is(self, renderer: Renderer) -> None:
        context = ContextValue.of({"n": 3})
        view = await renderer.render_template(b"{{ n }}", context)
        assert view.text == "3"

    @pytest.mark.asyncio
    async def test_idempotent(self, renderer: Renderer) -> None:
        template = b"{% #for items %}{{ loop.index }}:{{ item }} {% /for %}"
        context = {"items": ["a", "b"]}
        first = await renderer.render_template(template, context)
        second = await renderer.render_template(template, context)
        assert first == second
        assert first.text == "1:a 2:b "


class TestASTCaching:
    @pytest.mark.asyncio
    async def test_same_bytes_parsed_once(self, renderer: Renderer, parser: CountingParser) -> None:
        for name in ("a", "b", "c"):
            view = await renderer.render_template(b"Hi {{ name }}", {"name": name})
            assert view.text == f"Hi {name}"
        assert parser.count == 1
        assert renderer.ast_cache.stats()["hits"] == 2

    @pytest.mark.asyncio
    async def test_different_bytes_parsed_separately(
        self, renderer: Renderer, parser: CountingParser
    ) -> None:
        await renderer.render_template(b"{{ a }}")
        await renderer.render_template(b"{{ b }}")
        assert parser.count == 2
        assert len(renderer.ast_cache) == 2

    @pytest.mark.asyncio
    async def test_cache_keyed_by_fingerprint(self, renderer: Renderer) -> None:
        await renderer.render_template(b"keyed")
        assert fingerprint(b"keyed") in renderer.ast_cache

    @pytest.mark.asyncio
    async def test_cache_shared_across_files(
        self, renderer: Renderer, parser: CountingParser
    ) -> None:
        """Identical bytes under different labels share one AST."""
        await renderer.render_template(b"same", file="one.html")
        await renderer.render_template(b"same", file="two.html")
        assert parser.calls == ["one.html"]

    @pytest.mark.asyncio
    async def test_uncached_parses_every_time(
        self, uncached_renderer: Renderer, parser: CountingParser
    ) -> None:
        for _ in range(3):
            await uncached_renderer.render_template(b"{{ x }}", {"x": 1})
        assert parser.count == 3

    @pytest.mark.asyncio
    async def test_cached_and_uncached_agree(self, parser: CountingParser) -> None:
        template = b'{% #if show %}{{ join(xs, "-") }}{% else %}hidden{% /if %}'
        context = {"show": True, "xs": [1, 2, 3]}
        cached = Renderer(parser=parser)
        uncached = Renderer(parser=parser, ast_cache=None)
        assert (await cached.render_template(template, context)) == (
            await uncached.render_template(template, context)
        )

    @pytest.mark.asyncio
    async def test_syntax_error_not_cached(
        self, renderer: Renderer, parser: CountingParser
    ) -> None:
        for _ in range(2):
            with pytest.raises(TemplateSyntaxError):
                await renderer.render_template(b"{{ broken")
        assert parser.count == 2
        assert len(renderer.ast_cache) == 0

    @pytest.mark.asyncio
    async def test_shared_cache_between_renderers(self, parser: CountingParser) -> None:
        cache = ASTCache()
        first = Renderer(parser=parser, ast_cache=cache)
        second = Renderer(parser=parser, ast_cache=cache)
        await first.render_template(b"{{ x }}")
        await second.render_template(b"{{ x }}")
        assert parser.count == 1

    @pytest.mark.asyncio
    async def test_logs_cache_hit(self, renderer: Renderer, caplog) -> None:
        with caplog.at_level(logging.DEBUG, logger="stencil.renderer"):
            await renderer.render_template(b"log me", file="logged.html")
            await renderer.render_template(b"log me", file="logged.html")
        messages = [record.getMessage() for record in caplog.records]
        assert any("Parsed logged.html" in message for message in messages)
        assert any("AST cache hit for logged.html" in message for message in messages)


class TestResolvePath:
    @pytest.fixture
    def tpl_renderer(self) -> Renderer:
        return Renderer(file_ending=".tpl", relative_directory="/templates/")

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("home", "/templates/home.tpl"),
            ("home.tpl", "/templates/home.tpl"),
            ("/abs/file.tpl", "/abs/file.tpl"),
            ("/abs/file", "/abs/file.tpl"),
            ("nested/page", "/templates/nested/page.tpl"),
            ("page.html", "/templates/page.html.tpl"),
        ],
    )
    def test_resolution(self, tpl_renderer: Renderer, path: str, expected: str) -> None:
        assert tpl_renderer.resolve_path(path) == expected

    def test_no_separator_inserted(self) -> None:
        renderer = Renderer(file_ending=".html", relative_directory="views")
        assert renderer.resolve_path("home") == "viewshome.html"

    def test_empty_ending_and_directory(self) -> None:
        renderer = Renderer(file_ending="", relative_directory="")
        assert renderer.resolve_path("x") == "x"


class TestRenderPath:
    @pytest.mark.asyncio
    async def test_render_relative(self, renderer: Renderer) -> None:
        view = await renderer.render("greeting", {"name": "Ada"})
        assert view.text == "Hello, Ada!"

    @pytest.mark.asyncio
    async def test_render_with_ending(self, renderer: Renderer) -> None:
        view = await renderer.render("greeting.html", {"name": "Ada"})
        assert view.text == "Hello, Ada!"

    @pytest.mark.asyncio
    async def test_render_absolute(self, renderer: Renderer) -> None:
        view = await renderer.render("/abs/file")
        assert view.text == "absolute"

    @pytest.mark.asyncio
    async def test_render_matches_render_template(self, renderer: Renderer) -> None:
        context = {"items": [1, 2]}
        by_path = await renderer.render("list", context)
        by_bytes = await renderer.render_template(TEMPLATES["/templates/list.html"], context)
        assert by_path == by_bytes

    @pytest.mark.asyncio
    async def test_not_found_reports_resolved_path(self, renderer: Renderer) -> None:
        with pytest.raises(TemplateNotFoundError) as exc_info:
            await renderer.render("missing/page")
        assert exc_info.value.path == "/templates/missing/page.html"
        assert "No template found at path: /templates/missing/page.html" in str(exc_info.value)
        assert exc_info.value.code is ErrorCode.TEMPLATE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_syntax_error_labelled_with_path(self) -> None:
        renderer = Renderer(
            loader=DictLoader({"/t/bad.html": "ok\n{% #if x %}"}),
            relative_directory="/t/",
        )
        with pytest.raises(TemplateSyntaxError) as exc_info:
            await renderer.render("bad")
        assert exc_info.value.filename == "/t/bad.html"
        assert exc_info.value.code is ErrorCode.UNCLOSED_BLOCK

    @pytest.mark.asyncio
    async def test_unknown_tag_labelled_with_path(self) -> None:
        renderer = Renderer(
            loader=DictLoader({"/t/page.html": "line\n{{ shout(x) }}"}),
            relative_directory="/t/",
        )
        with pytest.raises(UnknownTagError) as exc_info:
            await renderer.render("page")
        assert exc_info.value.template_name == "/t/page.html"
        assert exc_info.value.lineno == 2

    @pytest.mark.asyncio
    async def test_include_chain(self, renderer: Renderer) -> None:
        view = await renderer.render("base", {"site": "stencil", "title": "Home"})
        assert view.text == "<html><nav>STENCIL</nav>Home</html>"


class TestContextEncoding:
    @pytest.mark.asyncio
    async def test_encoding_error_before_parsing(
        self, renderer: Renderer, parser: CountingParser
    ) -> None:
        with pytest.raises(ContextEncodingError) as exc_info:
            await renderer.render_template(b"{{ x }}", {"x": object()})
        assert exc_info.value.path == "$.x"
        assert parser.count == 0

    @pytest.mark.asyncio
    async def test_encoding_error_before_loading(self) -> None:
        loaded: list[str] = []

        class RecordingLoader:
            async def load_bytes(self, path: str) -> bytes | None:
                loaded.append(path)
                return b""

        renderer = Renderer(loader=RecordingLoader())
        with pytest.raises(ContextEncodingError):
            await renderer.render("/x", {1: "non-string key"})
        assert loaded == []

    @pytest.mark.asyncio
    async def test_custom_encoder_receives_services(self) -> None:
        seen = []

        class ServiceEncoder:
            async def encode(self, obj, services):
                seen.append(services)
                return ContextValue.of({"user": services[obj]})

        renderer = Renderer(encoder=ServiceEncoder(), services={7: "Ada"})
        view = await renderer.render_template(b"{{ user }}", 7)
        assert view.text == "Ada"
        assert seen == [{7: "Ada"}]

    @pytest.mark.asyncio
    async def test_none_context_skips_encoder(self) -> None:
        class FailingEncoder:
            async def encode(self, obj, services):
                raise AssertionError("encoder should not run")

        renderer = Renderer(encoder=FailingEncoder())
        assert (await renderer.render_template(b"ok")).text == "ok"


class TestConfiguration:
    def test_plain_mapping_tags_wrapped(self) -> None:
        renderer = Renderer(tags={"hello": lambda tag: "hi"})
        assert renderer.tags.names() == ["hello"]

    @pytest.mark.asyncio
    async def test_custom_tag_set_excludes_builtins(self) -> None:
        renderer = Renderer(tags={"hello": lambda tag: "hi"})
        with pytest.raises(UnknownTagError):
            await renderer.render_template(b"{{ x }}")

    @pytest.mark.asyncio
    async def test_custom_tags_used(self) -> None:
        renderer = Renderer(tags={"get": lambda tag: tag.params[0].text[::-1]})
        view = await renderer.render_template(b"{{ word }}", {"word": "abc"})
        assert view.text == "cba"

    def test_repr(self, renderer: Renderer) -> None:
        assert_contains(repr(renderer), "Renderer", "cache=on", "'/templates/'")
