"""Pytest configuration and fixtures for Stencil tests."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from stencil import ASTCache, ByteScanner, DictLoader, Renderer, TemplateParser
from stencil.nodes import Node


class CountingParser:
    """TemplateParser that records every parse call."""

    def __init__(self) -> None:
        self._parser = TemplateParser()
        self.calls: list[str] = []

    def parse(self, scanner: ByteScanner) -> Sequence[Node]:
        self.calls.append(scanner.file)
        return self._parser.parse(scanner)

    @property
    def count(self) -> int:
        return len(self.calls)


TEMPLATES = {
    "/templates/base.html": "<html>{% include \"partials/nav\" %}{{ title }}</html>",
    "/templates/partials/nav.html": "<nav>{{ uppercase(site) }}</nav>",
    "/templates/greeting.html": "Hello, {{ name }}!",
    "/templates/list.html": "{% #for items %}[{{ item }}]{% /for %}",
    "/templates/loop_a.html": "A{% include \"loop_b\" %}",
    "/templates/loop_b.html": "B{% include \"loop_a\" %}",
    "/abs/file.html": "absolute",
}


@pytest.fixture
def parser() -> CountingParser:
    return CountingParser()


@pytest.fixture
def renderer(parser: CountingParser) -> Renderer:
    """Renderer over an in-memory template tree rooted at /templates/."""
    return Renderer(
        parser=parser,
        loader=DictLoader(TEMPLATES),
        relative_directory="/templates/",
        file_ending=".html",
    )


@pytest.fixture
def uncached_renderer(parser: CountingParser) -> Renderer:
    return Renderer(parser=parser, ast_cache=None, loader=DictLoader(TEMPLATES))


@pytest.fixture
def cache() -> ASTCache:
    return ASTCache()


def assert_contains(result: str, *expected_parts: str) -> None:
    """Assert the rendered text contains every expected part."""
    for part in expected_parts:
        assert part in result, (
            f"Rendered output missing expected content:\n"
            f"  Missing: {part!r}\n"
            f"  Actual: {result!r}"
        )
