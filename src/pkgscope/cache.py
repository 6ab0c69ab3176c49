"""Memoization with three invalidation scopes.

Every expensive query in pkgscope is wrapped by one of three cache kinds:

``memoize_permanent``
    Cached for the life of the process (current platform detection).
``CacheRegistry.scoped``
    The first positional argument is a scope key (a package name). Entries can
    be purged for one key or for all keys.
``CacheRegistry.full``
    Only the whole cache can be dropped. Dropping swaps in a fresh table, so a
    concurrent reader sees either the old table or the new one.

``CacheRegistry.clear`` purges scoped entries (for one key or all keys) and
always rebuilds every full cache, since aggregates may depend on the purged
scope. Invalidation listeners are notified with the same scope.

Wrapped functions take positional arguments only and must return immutable
values (``frozenset``, ``tuple``, ``MappingProxyType``).

Examples
--------
>>> registry = CacheRegistry()
>>> calls = []
>>> @registry.scoped
... def modules(package):
...     calls.append(package)
...     return frozenset({package})
>>> modules("glue"), modules("glue")
(frozenset({'glue'}), frozenset({'glue'}))
>>> registry.clear("glue")
>>> modules("glue") and len(calls)
2
"""

from __future__ import annotations

import functools
import threading
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any, Generic, ParamSpec, TypeVar

from pkgscope.logging import get_logger

__all__ = [
    "DEFAULT_CACHE",
    "CacheRegistry",
    "CacheStats",
    "FullCache",
    "ScopedCache",
    "memoize_permanent",
]

logger = get_logger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

_MISSING = object()


def memoize_permanent(func: Callable[P, R]) -> Callable[P, R]:
    """Cache ``func`` forever per argument tuple; there is no invalidation hook."""
    return functools.cache(func)  # type: ignore[return-value]


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Hit/miss counters of one wrapped function.

    Attributes
    ----------
    name : str
        Qualified name of the wrapped function.
    kind : str
        ``"scoped"`` or ``"full"``.
    hits : int
        Calls answered from the cache.
    misses : int
        Calls that ran the wrapped function.
    size : int
        Entries currently resident.
    """

    name: str
    kind: str
    hits: int
    misses: int
    size: int


class _CacheBase(Generic[R]):
    kind = "base"

    def __init__(self, func: Callable[..., R]) -> None:
        self.func = func
        self.name = getattr(func, "__qualname__", repr(func))
        self.hits = 0
        self.misses = 0
        functools.update_wrapper(self, func)  # type: ignore[arg-type]

    def stats(self) -> CacheStats:
        return CacheStats(self.name, self.kind, self.hits, self.misses, self._size())

    def _size(self) -> int:
        raise NotImplementedError


class ScopedCache(_CacheBase[R]):
    """Cache whose entries are grouped by the first positional argument."""

    kind = "scoped"

    def __init__(self, func: Callable[..., R]) -> None:
        super().__init__(func)
        self._scopes: dict[Hashable, dict[tuple[Hashable, ...], R]] = {}

    def __call__(self, scope: Hashable, *args: Hashable) -> R:
        table = self._scopes.get(scope)
        if table is not None:
            value = table.get(args, _MISSING)
            if value is not _MISSING:
                self.hits += 1
                return value  # type: ignore[return-value]
        self.misses += 1
        value = self.func(scope, *args)
        self._scopes.setdefault(scope, {})[args] = value
        return value

    def clear_scope(self, scope: Hashable) -> None:
        """Drop every entry cached under ``scope``."""
        self._scopes.pop(scope, None)

    def clear_all(self) -> None:
        """Drop every entry."""
        self._scopes = {}

    def _size(self) -> int:
        return sum(len(table) for table in self._scopes.values())


class FullCache(_CacheBase[R]):
    """Cache that can only be dropped as a whole."""

    kind = "full"

    def __init__(self, func: Callable[..., R]) -> None:
        super().__init__(func)
        self._table: dict[tuple[Hashable, ...], R] = {}

    def __call__(self, *args: Hashable) -> R:
        table = self._table
        value = table.get(args, _MISSING)
        if value is not _MISSING:
            self.hits += 1
            return value  # type: ignore[return-value]
        self.misses += 1
        value = self.func(*args)
        table[args] = value
        return value

    def rebuild(self) -> None:
        """Swap in an empty table."""
        self._table = {}

    def _size(self) -> int:
        return len(self._table)


InvalidationListener = Callable[[str | None], None]


class CacheRegistry:
    """Owner of a set of scoped and full caches and their invalidation.

    Parameters
    ----------
    name : str, optional
        Label used in log records. Defaults to ``"default"``.
    """

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self._scoped: list[ScopedCache[Any]] = []
        self._full: list[FullCache[Any]] = []
        self._listeners: list[InvalidationListener] = []
        self._lock = threading.Lock()

    def scoped(self, func: Callable[..., R]) -> ScopedCache[R]:
        """Wrap ``func`` in a cache scoped by its first argument.

        Parameters
        ----------
        func : Callable[..., R]
            Function whose first positional argument is the scope key.

        Returns
        -------
        ScopedCache[R]
            Registered cache wrapper.
        """
        cache: ScopedCache[R] = ScopedCache(func)
        with self._lock:
            self._scoped.append(cache)
        return cache

    def full(self, func: Callable[..., R]) -> FullCache[R]:
        """Wrap ``func`` in a cache that is rebuilt on every invalidation.

        Parameters
        ----------
        func : Callable[..., R]
            Function to memoize.

        Returns
        -------
        FullCache[R]
            Registered cache wrapper.
        """
        cache: FullCache[R] = FullCache(func)
        with self._lock:
            self._full.append(cache)
        return cache

    def add_listener(self, listener: InvalidationListener) -> None:
        """Register ``listener`` to be called with the scope of every ``clear``."""
        with self._lock:
            self._listeners.append(listener)

    def clear(self, scope: str | None = None) -> None:
        """Purge ``scope`` (or everything) and rebuild every full cache.

        Parameters
        ----------
        scope : str | None, optional
            Package name to purge. None purges every scoped cache.
        """
        with self._lock:
            for cache in self._scoped:
                if scope is None:
                    cache.clear_all()
                else:
                    cache.clear_scope(scope)
            for full in self._full:
                full.rebuild()
            listeners = list(self._listeners)
        logger.debug(
            "Caches invalidated",
            extra={"operation": "clear_cache", "package": scope, "registry": self.name},
        )
        for listener in listeners:
            listener(scope)

    def stats(self) -> tuple[CacheStats, ...]:
        """Return hit/miss counters of every registered cache."""
        with self._lock:
            caches: list[_CacheBase[Any]] = [*self._scoped, *self._full]
        return tuple(cache.stats() for cache in caches)


DEFAULT_CACHE = CacheRegistry()
