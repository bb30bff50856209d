"""Exceptions for the Stencil rendering pipeline.

Exception Hierarchy:
TemplateError (base)
├── TemplateNotFoundError     # Resolved path could not be loaded
├── TemplateSyntaxError       # Parse-time error in template bytes
├── ContextEncodingError      # Object could not become a ContextValue
└── TemplateRuntimeError      # Serialization-time error
    ├── UnknownTagError       # AST references an unregistered tag
    ├── TagEvaluationError    # A tag handler raised
    └── TagContractError      # Tag called with the wrong shape

Every error is terminal for the render call that raised it. Nothing is
retried and no partial view is returned.

Example:
    ```
    S-RUN-001: Unknown tag 'uppercse' in /templates/home.html:3
       Did you mean 'uppercase'?
    ```

"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import get_close_matches
from enum import Enum

from stencil import terminal


class ErrorCode(Enum):
    """Searchable error codes.

    Format: S-{CATEGORY}-{NUMBER}
    Categories: PAR (parser), RUN (runtime), TPL (template loading),
    ENC (context encoding)
    """

    # Parser errors (S-PAR-xxx)
    UNEXPECTED_TOKEN = "S-PAR-001"
    UNCLOSED_TAG = "S-PAR-002"
    UNCLOSED_BLOCK = "S-PAR-003"
    INVALID_EXPRESSION = "S-PAR-004"
    INVALID_ENCODING = "S-PAR-005"

    # Runtime errors (S-RUN-xxx)
    UNKNOWN_TAG = "S-RUN-001"
    TAG_ERROR = "S-RUN-002"
    TAG_CONTRACT = "S-RUN-003"
    INCLUDE_DEPTH = "S-RUN-004"
    RUNTIME_ERROR = "S-RUN-005"

    # Template loading errors (S-TPL-xxx)
    TEMPLATE_NOT_FOUND = "S-TPL-001"
    SYNTAX_ERROR = "S-TPL-002"

    # Context encoding errors (S-ENC-xxx)
    CONTEXT_ENCODING = "S-ENC-001"

    @property
    def category(self) -> str:
        """Error category (e.g., 'runtime', 'parser', 'template')."""
        prefix = self.value.split("-")[1]
        return {
            "PAR": "parser",
            "RUN": "runtime",
            "TPL": "template",
            "ENC": "encoding",
        }.get(prefix, "unknown")


# ---------------------------------------------------------------------------
# Source snippets
# ---------------------------------------------------------------------------


def format_template_stack(stack: list[tuple[str, int]] | None) -> str:
    """Format an include chain for error messages.

    Example:
        >>> print(format_template_stack([("base.html", 4), ("nav.html", 2)]))
        Template stack:
          • base.html:4
          • nav.html:2
    """
    if not stack:
        return ""
    lines = [terminal.dim_text("Template stack:")]
    for template_name, line_num in stack:
        lines.append(f"  • {terminal.location(f'{template_name}:{line_num}')}")
    return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source lines around an error.

    Attributes:
        lines: Tuple of (line_number, line_content) pairs around the error.
        error_line: The 1-based line number where the error occurred.
        column: Optional 0-based column for the caret pointer.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int
    column: int | None = None

    def format(self) -> str:
        parts: list[str] = [terminal.dim_text("   |")]
        for lineno, content in self.lines:
            parts.append(
                terminal.format_source_line(lineno, content, is_error=lineno == self.error_line)
            )
        if self.column is not None:
            caret = " " * self.column + "^"
            parts.append(f"{terminal.dim_text('   |')} {terminal.error_line(caret)}")
        parts.append(terminal.dim_text("   |"))
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    context_lines: int = 2,
    column: int | None = None,
) -> SourceSnippet:
    """Build a SourceSnippet showing ``context_lines`` around ``error_line``."""
    all_lines = source.splitlines()
    start = max(0, error_line - 1 - context_lines)
    end = min(len(all_lines), error_line + context_lines)
    lines = tuple((i + 1, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line, column=column)


def _location(name: str | None, lineno: int | None, col_offset: int | None = None) -> str:
    loc = name or "<template>"
    if lineno:
        loc += f":{lineno}"
        if col_offset is not None:
            loc += f":{col_offset}"
    return loc


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class TemplateError(Exception):
    """Base exception for all Stencil errors.

        >>> try:
        ...     view = await renderer.render("home")
        ... except TemplateError as e:
        ...     log.error(e.format_compact())

    Attributes:
        code: ErrorCode identifying the failure.
    """

    code: ErrorCode | None = None

    def format_compact(self) -> str:
        """Format the error as a short terminal diagnostic."""
        header = str(self)
        if self.code and self.code.value not in header:
            header = f"{self.code.value}: {header}"
        return header


class TemplateNotFoundError(TemplateError):
    """No template bytes could be loaded from the resolved path.

    Attributes:
        path: The absolute path the renderer resolved and tried to load.
    """

    code: ErrorCode | None = ErrorCode.TEMPLATE_NOT_FOUND

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No template found at path: {path}")


class TemplateSyntaxError(TemplateError):
    """Malformed template bytes.

    Raised by the parser. ``filename`` is the diagnostic label the template
    was rendered under; when ``source`` and ``lineno`` are known the message
    includes the offending line with a caret under ``col_offset``.
    """

    code: ErrorCode | None = ErrorCode.SYNTAX_ERROR

    def __init__(
        self,
        message: str,
        lineno: int | None = None,
        filename: str | None = None,
        source: str | None = None,
        col_offset: int | None = None,
        code: ErrorCode | None = None,
    ):
        self.message = message
        self.lineno = lineno
        self.filename = filename
        self.source = source
        self.col_offset = col_offset
        if code is not None:
            self.code = code
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        location = _location(self.filename, self.lineno, self.col_offset)
        header = f"Syntax Error: {self.message}\n  --> {location}"
        if self.source and self.lineno:
            lines = self.source.splitlines()
            if 0 < self.lineno <= len(lines):
                snippet = f"\n   |\n{self.lineno:>3} | {lines[self.lineno - 1]}"
                if self.col_offset is not None:
                    snippet += f"\n   | {' ' * self.col_offset}^"
                return header + snippet
        return header

    def format_compact(self) -> str:
        parts: list[str] = []
        code_prefix = f"{self.code.value}: " if self.code else ""
        parts.append(f"{code_prefix}{self.message}")
        parts.append(f"  --> {_location(self.filename, self.lineno)}")
        if self.source and self.lineno:
            snippet = build_source_snippet(self.source, self.lineno, column=self.col_offset)
            parts.append(snippet.format())
        return "\n".join(parts)


class ContextEncodingError(TemplateError):
    """An object could not be encoded into a ContextValue.

    Attributes:
        path: Location of the offending value inside the encoded object,
            e.g. ``$.items[2].owner``.
    """

    code: ErrorCode | None = ErrorCode.CONTEXT_ENCODING

    def __init__(self, message: str, path: str = "$"):
        self.message = message
        self.path = path
        super().__init__(f"Cannot encode value at {path}: {message}")


class TemplateRuntimeError(TemplateError):
    """Serialization-time error with template location.

    Attributes:
        message: Error description
        template_name: Diagnostic label of the template being rendered
        lineno: Line of the tag that failed
        suggestion: Actionable fix suggestion
        template_stack: Include chain as (template_name, line) pairs
    """

    code: ErrorCode | None = ErrorCode.RUNTIME_ERROR

    def __init__(
        self,
        message: str,
        *,
        template_name: str | None = None,
        lineno: int | None = None,
        suggestion: str | None = None,
        template_stack: list[tuple[str, int]] | None = None,
    ):
        self.message = message
        self.template_name = template_name
        self.lineno = lineno
        self.suggestion = suggestion
        self.template_stack = template_stack or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [f"Runtime Error: {self.message}"]
        if self.template_name or self.lineno:
            loc = _location(self.template_name, self.lineno)
            parts.append(f"  Location: {terminal.location(loc)}")
        if self.template_stack:
            parts.append("")
            parts.append(format_template_stack(self.template_stack))
        if self.suggestion:
            parts.append(f"\n  {terminal.hint('Suggestion:')} {self.suggestion}")
        return "\n".join(parts)

    def format_compact(self) -> str:
        parts: list[str] = [
            terminal.format_error_header(self.code.value if self.code else None, self.message),
            f"  Location: {terminal.location(_location(self.template_name, self.lineno))}",
        ]
        if self.template_stack:
            parts.append(format_template_stack(self.template_stack))
        if self.suggestion:
            parts.append(f"  {terminal.hint('Hint:')} {self.suggestion}")
        return "\n".join(parts)


class UnknownTagError(TemplateRuntimeError):
    """The AST references a tag that is not in the renderer's registry.

    If ``available`` is given, a "Did you mean?" suggestion is included when
    a close match exists.
    """

    code: ErrorCode | None = ErrorCode.UNKNOWN_TAG

    def __init__(
        self,
        tag_name: str,
        available: frozenset[str] | None = None,
        **kwargs,
    ):
        self.tag_name = tag_name
        self._available = available or frozenset()
        suggestion = None
        matches = get_close_matches(tag_name, sorted(self._available), n=1, cutoff=0.6)
        if matches:
            suggestion = f"Did you mean '{terminal.suggestion(matches[0])}'?"
        super().__init__(f"Unknown tag '{tag_name}'", suggestion=suggestion, **kwargs)


class TagEvaluationError(TemplateRuntimeError):
    """A tag handler failed during serialization.

    Attributes:
        tag_name: Name of the tag whose handler raised.
        cause: The original exception (also chained as ``__cause__``).
    """

    code: ErrorCode | None = ErrorCode.TAG_ERROR

    def __init__(self, tag_name: str, cause: BaseException, **kwargs):
        self.tag_name = tag_name
        self.cause = cause
        super().__init__(
            f"Tag '{tag_name}' failed: {type(cause).__name__}: {cause}",
            **kwargs,
        )


class TagContractError(TemplateRuntimeError):
    """A tag was invoked with the wrong parameter count or body shape."""

    code: ErrorCode | None = ErrorCode.TAG_CONTRACT
