"""Parser protocol and the bundled reference grammar.

The rendering pipeline only needs ``parse(scanner) -> Sequence[Node]``;
any object with that method can be handed to a Renderer. ``TemplateParser``
implements the reference grammar:

    Hello, {{ user.name }}!                 value output (the ``get`` tag)
    {% include "footer" %}                  inline tag
    {% #if user.admin %}...{% else %}...{% /if %}
                                            block tag with optional else
    {% #for items, "item" %}{{ item }}{% /for %}
    {{ uppercase(user.name) }}              nested tag call
    {# comment #}                           dropped
    {% #raw %}{{ not parsed }}{% /raw %}    verbatim body

Parameters are comma separated expressions: string literals with ``\\``
escapes, integers, floats, ``true`` / ``false`` / ``null``, identifier paths
(``a.b[0]["key"]``) and nested calls ``name(param, ...)``. A closing
delimiter inside a string literal does not end the tag, so
``{{ default(x, "}}") }}`` is one tag.

Thread-Safety:
    ``TemplateParser`` holds no state; each ``parse()`` call works on its own
    scanner and is safe to run concurrently.

"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from stencil.context import ContextValue
from stencil.exceptions import ErrorCode, TemplateSyntaxError
from stencil.nodes import Constant, Identifier, Node, Raw, Tag
from stencil.scanner import ByteScanner

_OPENERS = {ord("{"), ord("%"), ord("#")}
_CLOSERS = {b"{{": b"}}", b"{%": b"%}", b"{#": b"#}"}

_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(r"-?\d+(\.\d+)?([eE][-+]?\d+)?")
_DIGITS_RE = re.compile(r"\d+")
_INDEX_RE = re.compile(r"-?\d+")
_RAW_CLOSE_RE = re.compile(rb"\{%\s*/raw\s*%\}")
_QUOTES = {ord('"'), ord("'")}
_BACKSLASH = ord("\\")

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'"}
_KEYWORDS = {
    "true": ContextValue.boolean(True),
    "false": ContextValue.boolean(False),
    "null": ContextValue.null(),
}


class Parser(Protocol):
    """Anything that turns scanned template bytes into an AST."""

    def parse(self, scanner: ByteScanner) -> Sequence[Node]:
        """Parse the whole scanner into an ordered node sequence.

        Raises:
            TemplateSyntaxError: If the bytes are malformed
        """
        ...


class TemplateParser:
    """Parser for the reference grammar described in the module docstring."""

    __slots__ = ()

    def parse(self, scanner: ByteScanner) -> tuple[Node, ...]:
        return _ParseRun(scanner).run()

    def __repr__(self) -> str:
        return "<TemplateParser>"


def _closer_offset(data: bytes, start: int, closer: bytes) -> int:
    """Offset of the first ``closer`` at or after ``start`` outside string literals.

    Falls back to the first ``closer`` anywhere when a quote is left open,
    so the expression reader reports the unterminated literal itself.
    """
    quote: int | None = None
    i = start
    end = len(data)
    while i < end:
        byte = data[i]
        if quote is not None:
            if byte == _BACKSLASH:
                i += 2
                continue
            if byte == quote:
                quote = None
        elif byte in _QUOTES:
            quote = byte
        elif data.startswith(closer, i):
            return i
        i += 1
    return data.find(closer, start)


@dataclass(slots=True)
class _Frame:
    """An open block awaiting its ``{% /name %}``."""

    name: str
    params: tuple[Node, ...]
    lineno: int
    col_offset: int
    body: list[Node] = field(default_factory=list)
    orelse: list[Node] | None = None

    @property
    def target(self) -> list[Node]:
        return self.body if self.orelse is None else self.orelse


class _ParseRun:
    """State for one ``parse()`` call."""

    __slots__ = ("_root", "_scanner", "_stack")

    def __init__(self, scanner: ByteScanner):
        self._scanner = scanner
        self._root: list[Node] = []
        self._stack: list[_Frame] = []

    @property
    def _target(self) -> list[Node]:
        return self._stack[-1].target if self._stack else self._root

    def run(self) -> tuple[Node, ...]:
        scanner = self._scanner
        while not scanner.at_end:
            start = self._next_delimiter()
            if start > scanner.offset or start < 0:
                lineno, col = scanner.lineno, scanner.col_offset
                chunk = scanner.read_to_end() if start < 0 else scanner.advance(start - scanner.offset)
                self._target.append(Raw(lineno, col, self._decode(chunk, lineno, col)))
                continue
            self._delimited()

        if self._stack:
            frame = self._stack[-1]
            raise scanner.error(
                f"Block '{frame.name}' is never closed; expected {{% /{frame.name} %}}",
                code=ErrorCode.UNCLOSED_BLOCK,
                lineno=frame.lineno,
                col_offset=frame.col_offset,
            )
        return tuple(self._root)

    def _next_delimiter(self) -> int:
        """Offset of the next ``{{``, ``{%`` or ``{#``, or -1."""
        data = self._scanner.data
        index = self._scanner.offset
        while True:
            index = data.find(b"{", index)
            if index < 0 or index + 1 >= len(data):
                return -1
            if data[index + 1] in _OPENERS:
                return index
            index += 1

    def _decode(self, chunk: bytes, lineno: int, col: int) -> str:
        try:
            return chunk.decode("utf-8")
        except UnicodeDecodeError as e:
            raise self._scanner.error(
                f"Template is not valid UTF-8 ({e.reason})",
                code=ErrorCode.INVALID_ENCODING,
                lineno=lineno,
                col_offset=col,
            ) from e

    def _delimited(self) -> None:
        scanner = self._scanner
        lineno, col = scanner.lineno, scanner.col_offset
        opener = scanner.advance(2)
        closer = _CLOSERS[opener]
        if opener == b"{#":
            inner_bytes = scanner.read_until(closer)
        else:
            end = _closer_offset(scanner.data, scanner.offset, closer)
            inner_bytes = None if end < 0 else scanner.advance(end - scanner.offset)
        if inner_bytes is None:
            raise scanner.error(
                f"Unclosed '{opener.decode()}'; expected '{closer.decode()}'",
                code=ErrorCode.UNCLOSED_TAG,
                lineno=lineno,
                col_offset=col,
            )
        scanner.advance(2)
        if opener == b"{#":
            return

        inner = self._decode(inner_bytes, lineno, col + 2)
        reader = _ExpressionReader(inner, scanner, lineno, col + 2)
        if opener == b"{{":
            reader.skip_space()
            expr = reader.expression()
            reader.expect_end()
            self._target.append(Tag(lineno, col, "get", (expr,)))
        else:
            self._statement(reader, lineno, col)

    def _statement(self, reader: _ExpressionReader, lineno: int, col: int) -> None:
        scanner = self._scanner
        reader.skip_space()
        if reader.take("/"):
            name = reader.name()
            reader.expect_end()
            self._close(name, lineno, col)
            return

        is_block = reader.take("#")
        name = reader.name()
        if not is_block and name == "else":
            reader.expect_end()
            if not self._stack:
                raise scanner.error(
                    "'else' outside of a block",
                    code=ErrorCode.UNEXPECTED_TOKEN,
                    lineno=lineno,
                    col_offset=col,
                )
            frame = self._stack[-1]
            if frame.orelse is not None:
                raise scanner.error(
                    f"Block '{frame.name}' already has an 'else'",
                    code=ErrorCode.UNEXPECTED_TOKEN,
                    lineno=lineno,
                    col_offset=col,
                )
            frame.orelse = []
            return

        params = reader.tag_params()
        if not is_block:
            self._target.append(Tag(lineno, col, name, params))
        elif name == "raw":
            self._raw_block(params, lineno, col)
        else:
            self._stack.append(_Frame(name, params, lineno, col))

    def _close(self, name: str, lineno: int, col: int) -> None:
        if not self._stack:
            raise self._scanner.error(
                f"Closing '/{name}' without an open block",
                code=ErrorCode.UNEXPECTED_TOKEN,
                lineno=lineno,
                col_offset=col,
            )
        frame = self._stack[-1]
        if frame.name != name:
            raise self._scanner.error(
                f"Closing '/{name}' does not match open block '{frame.name}' "
                f"(line {frame.lineno})",
                code=ErrorCode.UNEXPECTED_TOKEN,
                lineno=lineno,
                col_offset=col,
            )
        self._stack.pop()
        orelse = tuple(frame.orelse) if frame.orelse is not None else None
        self._target.append(
            Tag(frame.lineno, frame.col_offset, frame.name, frame.params, tuple(frame.body), orelse)
        )

    def _raw_block(self, params: tuple[Node, ...], lineno: int, col: int) -> None:
        scanner = self._scanner
        match = _RAW_CLOSE_RE.search(scanner.data, scanner.offset)
        if match is None:
            raise scanner.error(
                "Block 'raw' is never closed; expected {% /raw %}",
                code=ErrorCode.UNCLOSED_BLOCK,
                lineno=lineno,
                col_offset=col,
            )
        body_line, body_col = scanner.lineno, scanner.col_offset
        chunk = scanner.advance(match.start() - scanner.offset)
        scanner.advance(match.end() - match.start())
        body = (Raw(body_line, body_col, self._decode(chunk, body_line, body_col)),) if chunk else ()
        self._target.append(Tag(lineno, col, "raw", params, body))


class _ExpressionReader:
    """Recursive-descent reader for the text between delimiters."""

    __slots__ = ("_col", "_lineno", "_pos", "_scanner", "_text")

    def __init__(self, text: str, scanner: ByteScanner, lineno: int, col: int):
        self._text = text
        self._scanner = scanner
        self._lineno = lineno
        self._col = col
        self._pos = 0

    # -- positions -------------------------------------------------------------

    def _position(self, index: int | None = None) -> tuple[int, int]:
        index = self._pos if index is None else index
        newline = self._text.rfind("\n", 0, index)
        if newline < 0:
            return self._lineno, self._col + index
        return self._lineno + self._text.count("\n", 0, index), index - newline - 1

    def _error(self, message: str, index: int | None = None) -> TemplateSyntaxError:
        lineno, col = self._position(index)
        return self._scanner.error(
            message, code=ErrorCode.INVALID_EXPRESSION, lineno=lineno, col_offset=col
        )

    # -- primitives ------------------------------------------------------------

    def skip_space(self) -> None:
        text = self._text
        while self._pos < len(text) and text[self._pos].isspace():
            self._pos += 1

    def _peek(self) -> str:
        return self._text[self._pos] if self._pos < len(self._text) else ""

    def take(self, char: str) -> bool:
        if self._peek() == char:
            self._pos += 1
            return True
        return False

    def at_end(self) -> bool:
        self.skip_space()
        return self._pos >= len(self._text)

    def expect_end(self) -> None:
        if not self.at_end():
            raise self._error(f"Unexpected '{self._text[self._pos:].strip()}'")

    def name(self) -> str:
        self.skip_space()
        match = _NAME_RE.match(self._text, self._pos)
        if match is None:
            found = self._peek() or "end of tag"
            raise self._error(f"Expected a tag name, found '{found}'")
        self._pos = match.end()
        return match.group()

    # -- grammar ---------------------------------------------------------------

    def tag_params(self) -> tuple[Node, ...]:
        """Parameters after a tag name: ``a, b`` or ``(a, b)``."""
        self.skip_space()
        if self.take("("):
            params = self._param_list(")")
            self.expect_end()
            return params
        if self.at_end():
            return ()
        params = [self.expression()]
        while not self.at_end():
            if not self.take(","):
                raise self._error(f"Expected ',' between parameters, found '{self._peek()}'")
            params.append(self.expression())
        return tuple(params)

    def _param_list(self, closer: str) -> tuple[Node, ...]:
        params: list[Node] = []
        self.skip_space()
        if self.take(closer):
            return ()
        while True:
            params.append(self.expression())
            self.skip_space()
            if self.take(closer):
                return tuple(params)
            if not self.take(","):
                found = self._peek() or "end of tag"
                raise self._error(f"Expected ',' or '{closer}', found '{found}'")

    def expression(self) -> Node:
        self.skip_space()
        start = self._pos
        lineno, col = self._position()
        char = self._peek()
        if not char:
            raise self._error("Expected an expression")
        if char in "\"'":
            return Constant(lineno, col, ContextValue.string(self._string()))
        number = _NUMBER_RE.match(self._text, self._pos)
        if number is not None:
            self._pos = number.end()
            literal = number.group()
            if number.group(1) or number.group(2):
                return Constant(lineno, col, ContextValue.number(float(literal)))
            return Constant(lineno, col, ContextValue.integer(int(literal)))
        match = _NAME_RE.match(self._text, self._pos)
        if match is None:
            raise self._error(f"Unexpected '{char}' in expression", start)
        self._pos = match.end()
        name = match.group()
        if self._peek() == "(":
            self._pos += 1
            return Tag(lineno, col, name, self._param_list(")"))
        if name in _KEYWORDS and self._peek() not in (".", "["):
            return Constant(lineno, col, _KEYWORDS[name])
        return Identifier(lineno, col, self._path(name))

    def _path(self, head: str) -> tuple[str | int, ...]:
        path: list[str | int] = [head]
        while True:
            if self.take("."):
                match = _NAME_RE.match(self._text, self._pos) or _DIGITS_RE.match(
                    self._text, self._pos
                )
                if match is None:
                    raise self._error("Expected a name after '.'")
                self._pos = match.end()
                step = match.group()
                path.append(int(step) if step.isdigit() else step)
            elif self.take("["):
                self.skip_space()
                if self._peek() in ("\"", "'"):
                    path.append(self._string())
                else:
                    number = _INDEX_RE.match(self._text, self._pos)
                    if number is None:
                        raise self._error("Expected an index or quoted key inside '[]'")
                    self._pos = number.end()
                    path.append(int(number.group()))
                self.skip_space()
                if not self.take("]"):
                    raise self._error("Expected ']'")
            else:
                return tuple(path)

    def _string(self) -> str:
        start = self._pos
        quote = self._text[self._pos]
        self._pos += 1
        out: list[str] = []
        text = self._text
        while self._pos < len(text):
            char = text[self._pos]
            self._pos += 1
            if char == quote:
                return "".join(out)
            if char == "\\" and self._pos < len(text):
                escaped = text[self._pos]
                self._pos += 1
                out.append(_ESCAPES.get(escaped, "\\" + escaped))
            else:
                out.append(char)
        raise self._error("Unterminated string literal", start)
