"""Sequential byte cursor handed to parsers.

The scanner owns the raw template bytes and the diagnostic label (``file``)
and keeps the 1-based line and 0-based column of its position so parsers
can raise positioned syntax errors without tracking offsets themselves.

"""

from __future__ import annotations

from stencil.exceptions import ErrorCode, TemplateSyntaxError

_WHITESPACE = frozenset(b" \t\r\n")


class ByteScanner:
    """Forward-only cursor over template bytes.

    Example:
        >>> scanner = ByteScanner(b"Hello {{ name }}", file="greeting.html")
        >>> scanner.read_until(b"{{")
        b'Hello '
        >>> scanner.consume(b"{{")
        True
    """

    __slots__ = ("_data", "_source", "col_offset", "file", "lineno", "offset")

    def __init__(self, data: bytes, file: str = "template"):
        self._data = data
        self._source: str | None = None
        self.file = file
        self.offset = 0
        self.lineno = 1
        self.col_offset = 0

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def source(self) -> str:
        """The template decoded for diagnostics (undecodable bytes replaced)."""
        if self._source is None:
            self._source = self._data.decode("utf-8", errors="replace")
        return self._source

    @property
    def at_end(self) -> bool:
        return self.offset >= len(self._data)

    def peek(self, n: int = 0) -> int | None:
        """Byte ``n`` positions ahead, or None past the end."""
        index = self.offset + n
        if index < len(self._data):
            return self._data[index]
        return None

    def pop(self) -> int | None:
        byte = self.peek()
        if byte is not None:
            self.advance(1)
        return byte

    def startswith(self, prefix: bytes) -> bool:
        return self._data.startswith(prefix, self.offset)

    def consume(self, prefix: bytes) -> bool:
        """Advance past ``prefix`` if the cursor is at it."""
        if self.startswith(prefix):
            self.advance(len(prefix))
            return True
        return False

    def advance(self, n: int) -> bytes:
        """Move ``n`` bytes forward, returning the bytes passed over."""
        end = min(self.offset + n, len(self._data))
        chunk = self._data[self.offset : end]
        newlines = chunk.count(b"\n")
        if newlines:
            self.lineno += newlines
            self.col_offset = len(chunk) - chunk.rfind(b"\n") - 1
        else:
            self.col_offset += len(chunk)
        self.offset = end
        return chunk

    def find(self, marker: bytes) -> int:
        """Offset of the next ``marker`` at or after the cursor, or -1."""
        return self._data.find(marker, self.offset)

    def read_until(self, marker: bytes) -> bytes | None:
        """Consume and return bytes up to (not including) ``marker``.

        Returns None without moving when ``marker`` does not occur.
        """
        index = self.find(marker)
        if index < 0:
            return None
        return self.advance(index - self.offset)

    def read_to_end(self) -> bytes:
        return self.advance(len(self._data) - self.offset)

    def skip_whitespace(self) -> None:
        while (byte := self.peek()) is not None and byte in _WHITESPACE:
            self.advance(1)

    def error(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        lineno: int | None = None,
        col_offset: int | None = None,
    ) -> TemplateSyntaxError:
        """Build a TemplateSyntaxError at the cursor (or the given position)."""
        return TemplateSyntaxError(
            message,
            lineno=self.lineno if lineno is None else lineno,
            filename=self.file,
            source=self.source,
            col_offset=self.col_offset if col_offset is None else col_offset,
            code=code,
        )

    def __repr__(self) -> str:
        return f"<ByteScanner {self.file}:{self.lineno}:{self.col_offset}>"
