"""AST cache: memoizes parsed templates by content fingerprint.

The cache is an explicitly constructed component owned by a Renderer, not
module-level state. Keys are SHA-256 digests of the full template bytes, so
two templates only share an entry when their bytes are identical.

Concurrency:
    Reads and writes take a lock only for the duration of the dict
    operation; the lock is never held across an ``await``. Writing the same
    key twice is harmless: ASTs for identical bytes are identical, so the
    last write wins without divergence.

Eviction:
    ``maxsize=None`` (default) keeps every entry for the cache's lifetime.
    An integer ``maxsize`` evicts the least recently used entry.

Example:
    >>> cache = ASTCache()
    >>> key = fingerprint(b"Hello {{ name }}")
    >>> cache.get(key) is None
    True
    >>> cache.put(key, ast)
    >>> cache.get(key) is ast
    True

"""

from __future__ import annotations

import hashlib
import threading
from collections import OrderedDict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stencil.nodes import Node


def fingerprint(data: bytes) -> str:
    """SHA-256 hex digest of the full template bytes."""
    return hashlib.sha256(data).hexdigest()


class ASTCache:
    """Thread-safe fingerprint → AST memo with optional LRU bound.

    Attributes:
        maxsize: Maximum entries before LRU eviction, or None for unbounded
    """

    __slots__ = ("_entries", "_hits", "_lock", "_misses", "maxsize")

    def __init__(self, maxsize: int | None = None):
        if maxsize is not None and maxsize < 1:
            raise ValueError(f"maxsize must be a positive integer or None, got {maxsize}")
        self.maxsize = maxsize
        self._entries: OrderedDict[str, tuple[Node, ...]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> tuple[Node, ...] | None:
        """Return the cached AST for ``key``, or None on a miss."""
        with self._lock:
            ast = self._entries.get(key)
            if ast is None:
                self._misses += 1
                return None
            self._hits += 1
            if self.maxsize is not None:
                self._entries.move_to_end(key)
            return ast

    def put(self, key: str, ast: tuple[Node, ...]) -> None:
        """Store ``ast`` under ``key``, evicting the oldest entry if full."""
        ast = tuple(ast)
        with self._lock:
            self._entries[key] = ast
            if self.maxsize is not None:
                self._entries.move_to_end(key)
                while len(self._entries) > self.maxsize:
                    self._entries.popitem(last=False)

    def clear(self) -> None:
        """Drop every entry and reset statistics."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, int | None]:
        """Snapshot of hit/miss counters and current size."""
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._entries),
                "maxsize": self.maxsize,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __repr__(self) -> str:
        return f"<ASTCache size={len(self)} maxsize={self.maxsize}>"
