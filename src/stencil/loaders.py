"""Template loaders.

A loader turns an absolute path (already resolved by the Renderer) into
template bytes. It implements one coroutine:

    async def load_bytes(self, path: str) -> bytes | None

returning None when nothing exists at ``path``; the renderer turns that
into ``TemplateNotFoundError``.

Built-in Loaders:
- `FileSystemLoader`: Read from disk in a worker thread
- `DictLoader`: Serve from an in-memory mapping (tests, embedded templates)
- `ChoiceLoader`: Try several loaders in order (theme fallback)
- `FunctionLoader`: Wrap a sync or async callable

Custom Loaders:
    ```python
    class DatabaseLoader:
        async def load_bytes(self, path: str) -> bytes | None:
            row = await db.fetchrow("SELECT body FROM templates WHERE path = $1", path)
            return row["body"] if row else None
    ```

Thread-Safety:
All built-in loaders are safe for concurrent ``load_bytes()`` calls.

Cancellation:
Cancelling the awaiting task abandons the pending read. A file read already
running in a worker thread finishes in the background and its result is
discarded.

"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class Loader(Protocol):
    """Source of template bytes."""

    async def load_bytes(self, path: str) -> bytes | None: ...


class FileSystemLoader:
    """Load template bytes from the filesystem.

    Paths arrive already absolute (the Renderer prefixes its relative
    directory), so this loader only reads. Missing files, directories and
    unreadable files all report None.

    Example:
        >>> loader = FileSystemLoader()
        >>> await loader.load_bytes("/srv/templates/home.html")
        b'<h1>{{ title }}</h1>'
    """

    __slots__ = ()

    async def load_bytes(self, path: str) -> bytes | None:
        return await asyncio.to_thread(self._read, path)

    @staticmethod
    def _read(path: str) -> bytes | None:
        try:
            return Path(path).read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None
        except PermissionError:
            logger.debug("Permission denied reading template %s", path)
            return None

    def __repr__(self) -> str:
        return "<FileSystemLoader>"


class DictLoader:
    """Serve templates from an in-memory mapping of path → source.

    String sources are encoded as UTF-8.

    Example:
        >>> loader = DictLoader({"/templates/home.html": "Hi {{ name }}"})
        >>> renderer = Renderer(loader=loader, relative_directory="/templates/")
        >>> (await renderer.render("home", {"name": "Ada"})).text
        'Hi Ada'
    """

    __slots__ = ("_mapping",)

    def __init__(self, mapping: Mapping[str, str | bytes]):
        self._mapping = {
            path: source.encode("utf-8") if isinstance(source, str) else bytes(source)
            for path, source in mapping.items()
        }

    async def load_bytes(self, path: str) -> bytes | None:
        return self._mapping.get(path)

    def list_templates(self) -> list[str]:
        return sorted(self._mapping)


class ChoiceLoader:
    """Try loaders in order; the first non-None result wins.

    Example:
        >>> loader = ChoiceLoader([DictLoader(overrides), FileSystemLoader()])
    """

    __slots__ = ("_loaders",)

    def __init__(self, loaders: Sequence[Loader]):
        self._loaders = tuple(loaders)

    async def load_bytes(self, path: str) -> bytes | None:
        for loader in self._loaders:
            data = await loader.load_bytes(path)
            if data is not None:
                return data
        return None


class FunctionLoader:
    """Wrap ``func(path)`` returning ``bytes``, ``str`` or None (sync or async).

    Example:
        >>> loader = FunctionLoader(lambda path: cms.lookup(path))
    """

    __slots__ = ("_load_func",)

    def __init__(
        self,
        load_func: Callable[[str], bytes | str | None | Awaitable[bytes | str | None]],
    ):
        self._load_func = load_func

    async def load_bytes(self, path: str) -> bytes | None:
        result = self._load_func(path)
        if inspect.isawaitable(result):
            result = await result
        if result is None:
            return None
        if isinstance(result, str):
            return result.encode("utf-8")
        return bytes(result)
