"""Reverse dependency queries ("who depends on X").

No reverse adjacency is stored. Every query scans the forward graph of the
installed packages, so the answer is consistent with the forward queries by
construction: ``m`` is reported for ``x`` exactly when ``x`` is in
``deps(m)``.
"""

from __future__ import annotations

from collections.abc import Callable, Collection
from typing import NamedTuple

from pkgscope.cache import CacheRegistry
from pkgscope.catalog import PackageCatalog
from pkgscope.closure import ClosureResolver, DepsFunc
from pkgscope.graph import DependencyGraph

__all__ = ["Dependents", "ReverseIndex"]

PackageDepsFunc = Callable[[str, str | None], Collection[str]]


class Dependents(NamedTuple):
    """Modules depending on a module, and the packages that own them."""

    modules: frozenset[str]
    packages: frozenset[str]


class ReverseIndex:
    """Reverse queries over modules and packages.

    Parameters
    ----------
    graph : DependencyGraph
        Direct edges.
    closures : ClosureResolver
        Transitive edges, for the ``_all`` variants.
    catalog : PackageCatalog
        Package catalog.
    registry : CacheRegistry
        Registry that owns this index's caches.
    """

    def __init__(
        self,
        graph: DependencyGraph,
        closures: ClosureResolver,
        catalog: PackageCatalog,
        registry: CacheRegistry,
    ) -> None:
        self.graph = graph
        self.closures = closures
        self.catalog = catalog
        full = registry.full
        self.required_loadtime = full(self._required_loadtime)
        self.required_alltime = full(self._required_alltime)
        self.required_loadtime_all = full(self._required_loadtime_all)
        self.required_alltime_all = full(self._required_alltime_all)
        self.rev_bin_deps = full(self._rev_bin_deps)
        self.rev_bin_deps_all = full(self._rev_bin_deps_all)

    def dependents(
        self,
        module: str,
        exclude_package: str | None,
        platform: str | None,
        deps: DepsFunc,
    ) -> Dependents:
        """Return installed modules whose ``deps`` contain ``module``.

        Parameters
        ----------
        module : str
            Module being depended on.
        exclude_package : str | None
            Package whose modules are skipped. None skips the owner of
            ``module``.
        platform : str | None
            Target platform.
        deps : DepsFunc
            Forward dependency function.

        Returns
        -------
        Dependents
            Dependent modules and their packages.
        """
        exclude = exclude_package
        if exclude is None:
            exclude = self.catalog.module_package(module)
        modules: set[str] = set()
        packages: set[str] = set()
        for package in sorted(self.catalog.installed_packages()):
            if package == exclude:
                continue
            for name in sorted(self.catalog.modules(package)):
                if module in deps(name, package, platform):
                    modules.add(name)
                    packages.add(package)
        return Dependents(frozenset(modules), frozenset(packages))

    def package_dependents(
        self, package: str, platform: str | None, deps: PackageDepsFunc
    ) -> frozenset[str]:
        """Return installed packages other than ``package`` whose ``deps`` contain it.

        Raises
        ------
        UnknownPackageError
            If ``package`` is not known.
        """
        self.catalog.check_known_package(package)
        return frozenset(
            other
            for other in sorted(self.catalog.installed_packages())
            if other != package and package in deps(other, platform)
        )

    def _required_loadtime(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> Dependents:
        return self.dependents(module, package, platform, self.graph.direct_load_deps)

    def _required_alltime(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> Dependents:
        return self.dependents(module, package, platform, self.graph.direct_alltime_deps)

    def _required_loadtime_all(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> Dependents:
        return self.dependents(module, package, platform, self.closures.loadtime_all)

    def _required_alltime_all(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> Dependents:
        return self.dependents(module, package, platform, self.closures.alltime_all)

    def _rev_bin_deps(self, package: str, platform: str | None = None) -> frozenset[str]:
        return self.package_dependents(package, platform, self.graph.direct_binary_deps)

    def _rev_bin_deps_all(self, package: str, platform: str | None = None) -> frozenset[str]:
        return self.package_dependents(package, platform, self.closures.binary_closure)
