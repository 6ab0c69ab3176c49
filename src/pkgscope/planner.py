"""Build-order planner.

The planner admits the requested packages and, recursively, their binary
dependencies for the target platform. A package without a build script for
the platform is pruned (and so is the edge pointing at it); a package that is
known but not installed tracks no build script and is pruned as well. The
admitted packages are then scheduled in rounds: each round removes, in
lexicographic order, every package whose remaining dependency set is empty. A
round that removes nothing means the rest is cyclic.
"""

from __future__ import annotations

from collections.abc import Iterable

from pkgscope.cache import CacheRegistry
from pkgscope.catalog import PackageCatalog
from pkgscope.errors import CyclicDependencyError
from pkgscope.graph import DependencyGraph
from pkgscope.logging import get_logger

__all__ = ["BuildOrderPlanner"]

logger = get_logger(__name__)


class BuildOrderPlanner:
    """Topological ordering of packages by binary dependencies.

    Parameters
    ----------
    graph : DependencyGraph
        Source of binary dependency edges.
    catalog : PackageCatalog
        Package catalog used for validation and buildability.
    registry : CacheRegistry
        Registry that owns the plan cache.
    """

    def __init__(
        self, graph: DependencyGraph, catalog: PackageCatalog, registry: CacheRegistry
    ) -> None:
        self.graph = graph
        self.catalog = catalog
        self._plan = registry.full(self._compute)

    def build_order(
        self, packages: Iterable[str] | None = None, platform: str | None = None
    ) -> tuple[str, ...]:
        """Return an order in which ``packages`` can be built.

        Parameters
        ----------
        packages : Iterable[str] | None, optional
            Packages to build. Defaults to every installed package.
        platform : str | None, optional
            Target platform. Defaults to the current platform.

        Returns
        -------
        tuple[str, ...]
            Every admitted package, after all of its binary dependencies.

        Raises
        ------
        UnknownPackageError
            If a requested package or dependency is not known.
        CyclicDependencyError
            If the admitted packages cannot be ordered.
        """
        platform = self.catalog.check_platform(platform)
        key = None if packages is None else tuple(sorted(set(packages)))
        return self._plan(key, platform)

    def _dependency_map(self, packages: Iterable[str], platform: str) -> dict[str, set[str]]:
        admitted: dict[str, set[str] | None] = {}
        # frames: (package, its admitted deps, deps still to visit)
        stack: list[tuple[str, set[str], list[str]]] = []

        def enter(package: str) -> bool:
            if package in admitted:
                return admitted[package] is not None
            self.catalog.check_known_package(package)
            if platform not in self.catalog.build_platforms(package):
                admitted[package] = None
                return False
            deps: set[str] = set()
            admitted[package] = deps
            remaining = sorted(self.graph.direct_binary_deps(package, platform), reverse=True)
            stack.append((package, deps, remaining))
            return True

        for root in sorted(set(packages)):
            enter(root)
            while stack:
                _, deps, remaining = stack[-1]
                if not remaining:
                    stack.pop()
                    continue
                dep = remaining.pop()
                if enter(dep):
                    deps.add(dep)
        return {package: deps for package, deps in admitted.items() if deps is not None}

    def _compute(self, packages: tuple[str, ...] | None, platform: str) -> tuple[str, ...]:
        requested = self.catalog.installed_packages() if packages is None else packages
        pending = self._dependency_map(requested, platform)
        order: list[str] = []
        while pending:
            ready = sorted(package for package, deps in pending.items() if not deps)
            if not ready:
                logger.error(
                    "Cyclic build dependencies",
                    extra={
                        "operation": "build_order",
                        "platform": platform,
                        "residual": sorted(pending),
                    },
                )
                raise CyclicDependencyError(pending, platform)
            order.extend(ready)
            for package in ready:
                del pending[package]
            for deps in pending.values():
                deps.difference_update(ready)
        return tuple(order)
