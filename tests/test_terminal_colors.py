"""Tests for terminal colour utilities."""

import re

import pytest

from stencil import TagEvaluationError, UnknownTagError, terminal

_ANSI_ESCAPE = re.compile(r"\x1B\[[0-9;]*m")


def strip_colors(text: str) -> str:
    return _ANSI_ESCAPE.sub("", text)


class TestColorDetection:
    """Colour detection and the colorize primitive."""

    def test_no_color_disables_colors(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        monkeypatch.delenv("FORCE_COLOR", raising=False)
        assert terminal._should_use_colors() is False

    def test_force_color_wins_over_no_color(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        monkeypatch.setenv("FORCE_COLOR", "1")
        assert terminal._should_use_colors() is True

    def test_colorize_returns_plain_when_disabled(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", False)
        result = terminal.colorize("Error", "bright_red", "bold")
        assert result == "Error"

    def test_colorize_adds_codes_when_enabled(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        result = terminal.colorize("Error", "bright_red", "bold")
        assert "\033[91m" in result
        assert "\033[1m" in result
        assert result.endswith("\033[0m")

    def test_colorize_unknown_color_is_plain(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        assert terminal.colorize("Error", "magenta") == "Error"


class TestSemanticHelpers:
    @pytest.mark.parametrize(
        ("helper", "code"),
        [
            ("error_code", "\033[91m"),
            ("location", "\033[36m"),
            ("line_number", "\033[33m"),
            ("hint", "\033[32m"),
            ("suggestion", "\033[92m"),
            ("dim_text", "\033[2m"),
        ],
    )
    def test_helper_colours(self, monkeypatch, helper, code):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        result = getattr(terminal, helper)("text")
        assert code in result
        assert strip_colors(result) == "text"

    def test_plain_text_mode(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", False)
        assert terminal.error_code("S-RUN-001") == "S-RUN-001"
        assert terminal.location("page.html") == "page.html"
        assert terminal.hint("Hint") == "Hint"
        assert terminal.suggestion("upper") == "upper"


class TestErrorFormatting:
    def test_format_error_header_with_code(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        result = terminal.format_error_header("S-RUN-001", "Unknown tag")
        assert strip_colors(result) == "S-RUN-001: Unknown tag"

    def test_format_error_header_without_code(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        assert terminal.format_error_header(None, "Something went wrong") == (
            "Something went wrong"
        )

    def test_format_source_line_normal(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        result = terminal.format_source_line(42, "{{ user }}", is_error=False)
        assert strip_colors(result) == "  42 | {{ user }}"
        assert "\033[2m" in result

    def test_format_source_line_error(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        result = terminal.format_source_line(7, "{{ oops }}", is_error=True)
        assert strip_colors(result) == ">  7 | {{ oops }}"
        assert "\033[91m" in result


class TestExceptionRendering:
    def test_messages_readable_without_colors(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", False)
        error = UnknownTagError(
            "uppercas", available=frozenset({"uppercase"}), template_name="page.html", lineno=5
        )
        message = str(error)
        assert "Unknown tag 'uppercas'" in message
        assert "page.html:5" in message
        assert "Did you mean 'uppercase'?" in message
        assert "\033[" not in message

    def test_compact_format_colours_code(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        error = TagEvaluationError("count", TypeError("nope"), template_name="t.html", lineno=1)
        compact = error.format_compact()
        assert "\033[" in compact
        assert strip_colors(compact).startswith("S-RUN-002: Tag 'count' failed")
