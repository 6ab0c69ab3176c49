"""Transitive dependency sets and display trees.

Both traversals are iterative and safe on cyclic graphs:

* :func:`closure_keys` returns the flat transitive set. Every node is expanded
  at most once per call and the seed itself is never part of the result, so
  the closure of ``A`` in ``A <-> B`` is ``{B}``.
* :func:`closure_tree` returns a first-discovery tree. A dependency that
  already appears on the path from the root is listed (``cycle=True``) but
  not expanded again.

Only the seed is expanded with its known package; indirect nodes are
expanded with ``package=None`` so the graph resolves their owner.
"""

from __future__ import annotations

from collections.abc import Callable, Collection

from pkgscope.cache import CacheRegistry
from pkgscope.catalog import PackageCatalog
from pkgscope.graph import DependencyGraph
from pkgscope.models import DependencyNode

__all__ = ["ClosureResolver", "DepsFunc", "closure_keys", "closure_tree"]

DepsFunc = Callable[[str, str | None, str | None], Collection[str]]
"""``deps(name, package, platform) -> direct dependency names``."""


def closure_keys(
    seed: str, package: str | None, platform: str | None, deps: DepsFunc
) -> frozenset[str]:
    """Return every name reachable from ``seed`` through ``deps``.

    Parameters
    ----------
    seed : str
        Starting node; excluded from the result.
    package : str | None
        Package of the seed.
    platform : str | None
        Target platform, passed through to ``deps``.
    deps : DepsFunc
        Direct dependency function.

    Returns
    -------
    frozenset[str]
        Transitive dependencies of ``seed``.

    Examples
    --------
    >>> graph = {"a": {"b"}, "b": {"a", "c"}, "c": set()}
    >>> sorted(closure_keys("a", None, None, lambda n, p, pl: graph[n]))
    ['b', 'c']
    """
    visited = {seed}
    found: set[str] = set()
    stack = sorted(deps(seed, package, platform), reverse=True)
    while stack:
        name = stack.pop()
        if name in visited:
            continue
        visited.add(name)
        found.add(name)
        stack.extend(dep for dep in deps(name, None, platform) if dep not in visited)
    return frozenset(found)


def closure_tree(
    seed: str, package: str | None, platform: str | None, deps: DepsFunc
) -> DependencyNode:
    """Return the dependency tree rooted at ``seed``.

    Children are sorted by name. Nodes are first collected in an arena where a
    child's index is always greater than its parent's, then frozen bottom-up.

    Parameters
    ----------
    seed : str
        Root node.
    package : str | None
        Package of the seed.
    platform : str | None
        Target platform, passed through to ``deps``.
    deps : DepsFunc
        Direct dependency function.

    Returns
    -------
    DependencyNode
        Root of the tree.
    """
    names = [seed]
    cycles = [False]
    children: list[list[int]] = [[]]
    pending: list[tuple[int, str | None, frozenset[str]]] = [(0, package, frozenset({seed}))]
    while pending:
        index, owner, ancestors = pending.pop()
        expand: list[tuple[int, str | None, frozenset[str]]] = []
        for dep in sorted(deps(names[index], owner, platform)):
            child = len(names)
            names.append(dep)
            cycles.append(dep in ancestors)
            children.append([])
            children[index].append(child)
            if dep not in ancestors:
                expand.append((child, None, ancestors | {dep}))
        pending.extend(reversed(expand))
    built: list[DependencyNode] = [DependencyNode(seed)] * len(names)
    for index in range(len(names) - 1, -1, -1):
        built[index] = DependencyNode(
            names[index], tuple(built[child] for child in children[index]), cycles[index]
        )
    return built[0]


class ClosureResolver:
    """Standard closures over the dependency graph.

    Parameters
    ----------
    graph : DependencyGraph
        Direct edges.
    catalog : PackageCatalog
        Package catalog, used for internal/external partitioning.
    registry : CacheRegistry
        Registry that owns the resolver's caches.
    """

    def __init__(
        self, graph: DependencyGraph, catalog: PackageCatalog, registry: CacheRegistry
    ) -> None:
        self.graph = graph
        self.catalog = catalog
        full = registry.full
        self.loadtime_all = full(self._loadtime_all)
        self.alltime_all = full(self._alltime_all)
        self.loadtime_tree = full(self._loadtime_tree)
        self.alltime_tree = full(self._alltime_tree)
        self.loadtime_internal = full(self._loadtime_internal)
        self.loadtime_external = full(self._loadtime_external)
        self.alltime_internal = full(self._alltime_internal)
        self.alltime_external = full(self._alltime_external)
        self.binary_closure = full(self._binary_closure)

    def _loadtime_all(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> frozenset[str]:
        return closure_keys(module, package, platform, self.graph.direct_load_deps)

    def _alltime_all(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> frozenset[str]:
        return closure_keys(module, package, platform, self.graph.direct_alltime_deps)

    def _loadtime_tree(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> DependencyNode:
        return closure_tree(module, package, platform, self.graph.direct_load_deps)

    def _alltime_tree(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> DependencyNode:
        return closure_tree(module, package, platform, self.graph.direct_alltime_deps)

    def _internal(
        self,
        module: str,
        package: str | None,
        platform: str | None,
        closure: Callable[[str, str | None, str | None], frozenset[str]],
    ) -> frozenset[str]:
        owner = self.graph.owner(module, package)
        if owner is None or owner not in self.catalog.installed_packages():
            return frozenset()
        internal = self.catalog.modules(owner)
        return frozenset(name for name in closure(module, owner, platform) if name in internal)

    def _external(
        self,
        module: str,
        package: str | None,
        platform: str | None,
        direct: DepsFunc,
        internal: Callable[[str, str | None, str | None], frozenset[str]],
    ) -> frozenset[str]:
        owner = self.graph.owner(module, package)
        if owner is None or owner not in self.catalog.installed_packages():
            return frozenset(direct(module, package, platform))
        deps = set(direct(module, owner, platform))
        for name in internal(module, owner, platform):
            deps.update(direct(name, owner, platform))
        modules = self.catalog.modules(owner)
        return frozenset(name for name in deps if name not in modules)

    def _loadtime_internal(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> frozenset[str]:
        return self._internal(module, package, platform, self.loadtime_all)

    def _loadtime_external(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> frozenset[str]:
        return self._external(
            module, package, platform, self.graph.direct_load_deps, self.loadtime_internal
        )

    def _alltime_internal(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> frozenset[str]:
        return self._internal(module, package, platform, self.alltime_all)

    def _alltime_external(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> frozenset[str]:
        return self._external(
            module, package, platform, self.graph.direct_alltime_deps, self.alltime_internal
        )

    def _binary_closure(self, package: str, platform: str | None = None) -> frozenset[str]:
        def bin_deps(name: str, _owner: str | None, target: str | None) -> frozenset[str]:
            return self.graph.direct_binary_deps(name, target)

        return closure_keys(package, None, platform, bin_deps)
