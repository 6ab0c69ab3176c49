"""Tests for the scoped and full cache registry."""

from __future__ import annotations

from pkgscope.cache import CacheRegistry, memoize_permanent


class TestScopedCache:
    def test_hits_after_first_call(self) -> None:
        """A repeated call is answered from the cache."""
        registry = CacheRegistry()
        calls: list[str] = []

        @registry.scoped
        def modules(package: str) -> frozenset[str]:
            calls.append(package)
            return frozenset({package})

        assert modules("glue") == modules("glue") == frozenset({"glue"})
        assert calls == ["glue"]
        (stats,) = registry.stats()
        assert (stats.kind, stats.hits, stats.misses, stats.size) == ("scoped", 1, 1, 1)

    def test_clear_scope_keeps_other_scopes(self) -> None:
        """Clearing one package leaves the other packages cached."""
        registry = CacheRegistry()
        calls: list[str] = []

        @registry.scoped
        def modules(package: str) -> frozenset[str]:
            calls.append(package)
            return frozenset()

        modules("a")
        modules("b")
        registry.clear("a")
        modules("a")
        modules("b")
        assert calls == ["a", "b", "a"]

    def test_extra_arguments_are_part_of_key(self) -> None:
        registry = CacheRegistry()

        @registry.scoped
        def deps(package: str, platform: str | None = None) -> tuple[str, str | None]:
            return (package, platform)

        assert deps("a", "linux64") == ("a", "linux64")
        assert deps("a", "osx64") == ("a", "osx64")
        assert deps("a") == ("a", None)


class TestFullCache:
    def test_rebuilt_on_any_clear(self) -> None:
        """Aggregates are recomputed after a scoped clear."""
        registry = CacheRegistry()
        calls: list[int] = []

        @registry.full
        def everything() -> int:
            calls.append(1)
            return len(calls)

        assert everything() == 1
        assert everything() == 1
        registry.clear("anything")
        assert everything() == 2

    def test_listeners_receive_scope(self) -> None:
        registry = CacheRegistry()
        seen: list[str | None] = []
        registry.add_listener(seen.append)
        registry.clear("glue")
        registry.clear()
        assert seen == ["glue", None]


def test_memoize_permanent_caches_forever() -> None:
    calls: list[int] = []

    @memoize_permanent
    def answer() -> int:
        calls.append(1)
        return 42

    assert answer() == answer() == 42
    assert len(calls) == 1


def test_registries_are_independent() -> None:
    """Clearing one registry does not touch another."""
    first, second = CacheRegistry("first"), CacheRegistry("second")
    calls: list[str] = []

    @first.full
    def one() -> str:
        calls.append("one")
        return "one"

    @second.full
    def two() -> str:
        calls.append("two")
        return "two"

    one()
    two()
    second.clear()
    one()
    two()
    assert calls == ["one", "two", "two"]
