"""Engine facade wiring the catalog, tracking store, graph and planners.

A :class:`Reflector` owns a private :class:`~pkgscope.cache.CacheRegistry`, so
two engines over different installations never share cached answers. The
tracking store listens on that registry: ``clear_cache(package)`` purges the
package's scoped entries, rebuilds every aggregate and evicts the package's
tracking records so the next query acquires them again.

Examples
--------
>>> from pkgscope.engine import Reflector
>>> from pkgscope.settings import load_settings
>>> reflector = Reflector.from_settings(load_settings(root_dir="/opt/tree"))
>>> reflector.build_order(["zlib", "png"], "linux64")  # doctest: +SKIP
('zlib', 'png')
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

import msgspec

from pkgscope.cache import CacheRegistry
from pkgscope.catalog import PackageCatalog
from pkgscope.closure import ClosureResolver
from pkgscope.collaborators import (
    MetadataReader,
    PackageSource,
    RemoteExecutor,
    SnapshotStore,
    SourceScanner,
    Tracer,
)
from pkgscope.errors import CollaboratorUnavailableError, PkgScopeError
from pkgscope.graph import DependencyGraph
from pkgscope.logging import get_logger
from pkgscope.metadata import FileMetadataReader
from pkgscope.models import AcquisitionReport, DependencyNode, EdgeKind, ModuleKind
from pkgscope.planner import BuildOrderPlanner
from pkgscope.remote import HttpRemoteExecutor
from pkgscope.reverse import Dependents, ReverseIndex
from pkgscope.scanner import AstImportScanner
from pkgscope.settings import ReflectSettings, load_settings
from pkgscope.snapshot import JsonSnapshotStore
from pkgscope.sources import MultiGitSource
from pkgscope.tracer import SubprocessTracer
from pkgscope.tracking import TRACKING_ROUTINE, TrackingStore

__all__ = ["Reflector"]

logger = get_logger(__name__)

CTYPES_MODULE = "ctypes"


class Reflector:
    """Dependency reflection over one installation.

    Parameters
    ----------
    settings : ReflectSettings
        Installation settings.
    source : PackageSource
        Package and tracked-file enumeration.
    metadata : MetadataReader
        Declared package metadata.
    tracer : Tracer
        Local module tracer.
    scanner : SourceScanner
        Static import scanner.
    snapshots : SnapshotStore
        Tracking snapshot persistence.
    remote : RemoteExecutor | None, optional
        Executor for platforms with a configured server. Defaults to None.
    registry : CacheRegistry | None, optional
        Cache registry. Defaults to a new private registry.

    Attributes
    ----------
    catalog : PackageCatalog
        Packages, files, modules and platforms.
    store : TrackingStore
        Tracking records and their acquisition.
    graph : DependencyGraph
        Direct edges.
    closures : ClosureResolver
        Transitive edges and trees.
    reverse : ReverseIndex
        Reverse queries.
    planner : BuildOrderPlanner
        Build ordering.
    """

    def __init__(
        self,
        settings: ReflectSettings,
        *,
        source: PackageSource,
        metadata: MetadataReader,
        tracer: Tracer,
        scanner: SourceScanner,
        snapshots: SnapshotStore,
        remote: RemoteExecutor | None = None,
        registry: CacheRegistry | None = None,
    ) -> None:
        self.settings = settings
        self.remote = remote
        self.cache = registry if registry is not None else CacheRegistry(str(settings.root_dir))
        self.catalog = PackageCatalog(settings, source, metadata, self.cache)
        self.store = TrackingStore(settings, self.catalog, tracer, snapshots, remote)
        self.graph = DependencyGraph(settings, self.catalog, self.store, scanner, self.cache)
        self.closures = ClosureResolver(self.graph, self.catalog, self.cache)
        self.reverse = ReverseIndex(self.graph, self.closures, self.catalog, self.cache)
        self.planner = BuildOrderPlanner(self.graph, self.catalog, self.cache)
        self.package_type = self.cache.scoped(self._package_type)
        self.cache.add_listener(self.store.evict)

    @classmethod
    def from_settings(cls, settings: ReflectSettings | None = None) -> Reflector:
        """Build an engine with the default collaborators.

        Parameters
        ----------
        settings : ReflectSettings | None, optional
            Installation settings. Defaults to :func:`load_settings`.

        Returns
        -------
        Reflector
            Engine over ``settings.root_dir``.
        """
        settings = settings if settings is not None else load_settings()
        return cls(
            settings,
            source=MultiGitSource(settings),
            metadata=FileMetadataReader(settings),
            tracer=SubprocessTracer(settings),
            scanner=AstImportScanner(),
            snapshots=JsonSnapshotStore(settings.snapshot_path),
            remote=HttpRemoteExecutor(settings) if settings.servers else None,
        )

    # build order and caches

    def build_order(
        self, packages: Iterable[str] | None = None, platform: str | None = None
    ) -> tuple[str, ...]:
        """Return an order in which ``packages`` and their binary deps can be built."""
        return self.planner.build_order(packages, platform)

    def clear_cache(self, package: str | None = None) -> None:
        """Invalidate cached answers for ``package`` (or everything).

        Parameters
        ----------
        package : str | None, optional
            Package to invalidate. None invalidates every package.
        """
        for stats in self.cache.stats():
            if stats.hits or stats.misses:
                logger.debug(
                    "Cache statistics",
                    extra={
                        "operation": "clear_cache",
                        "cache": stats.name,
                        "hits": stats.hits,
                        "misses": stats.misses,
                        "size": stats.size,
                    },
                )
        self.cache.clear(package)

    # remote servers

    def server_status(self, platform: str | None = None) -> dict[str, dict[str, object]]:
        """Query the status of the configured servers.

        Parameters
        ----------
        platform : str | None, optional
            Only query the server of this platform. Defaults to every server.

        Returns
        -------
        dict[str, dict[str, object]]
            Platform -> the server's status document, or ``{"error": message}``
            when it is unreachable or targets another platform.
        """
        platforms = sorted(self.settings.servers) if platform is None else [platform]
        statuses: dict[str, dict[str, object]] = {}
        for name in platforms:
            if self.remote is None or name not in self.settings.servers:
                statuses[name] = {"error": f"no server configured for {name}"}
                continue
            try:
                status = dict(self.remote.status(name))
            except CollaboratorUnavailableError as exc:
                logger.warning(
                    "Server unavailable",
                    extra={"operation": "server_status", "platform": name, "status": "error"},
                )
                statuses[name] = {"error": exc.message}
                continue
            if status.get("platform") != name:
                status = {"error": f"server targets {status.get('platform')}, not {name}"}
            statuses[name] = status
        return statuses

    # tracking records

    def update_db(
        self, package: str | None = None, platform: str | None = None
    ) -> AcquisitionReport:
        """Acquire tracking records; see :meth:`TrackingStore.update`."""
        return self.store.update(package, platform)

    def save_db(self) -> None:
        """Persist the working copy of tracking records."""
        self.store.save()

    def run_routine(self, routine: str, args: Sequence[object]) -> object:
        """Run an acquisition routine on behalf of a remote caller.

        Parameters
        ----------
        routine : str
            Routine name. Only ``"tracking_data"`` is served.
        args : Sequence[object]
            Positional arguments (an optional package name).

        Returns
        -------
        object
            JSON-compatible result.

        Raises
        ------
        PkgScopeError
            If the routine or its arguments are not supported.
        """
        if routine != TRACKING_ROUTINE:
            msg = f"unsupported routine {routine!r}"
            raise PkgScopeError(msg, context={"routine": routine})
        if len(args) > 1 or (args and not isinstance(args[0], str)):
            msg = f"{routine} takes at most one package name"
            raise PkgScopeError(msg, context={"routine": routine, "args": list(args)})
        package = args[0] if args else None
        return msgspec.to_builtins(self.store.tracking_data(package))

    # dependency queries

    def dependencies(
        self,
        module: str,
        package: str | None = None,
        platform: str | None = None,
        *,
        alltime: bool = False,
        transitive: bool = False,
    ) -> frozenset[str]:
        """Modules ``module`` depends on.

        Parameters
        ----------
        module : str
            Module name.
        package : str | None, optional
            Owning package. Defaults to the resolved owner.
        platform : str | None, optional
            Target platform. Defaults to the current platform.
        alltime : bool, optional
            Include run-time and auto-loaded edges. Defaults to False.
        transitive : bool, optional
            Return the transitive closure. Defaults to False.

        Returns
        -------
        frozenset[str]
            Dependency names.
        """
        if transitive:
            closure = self.closures.alltime_all if alltime else self.closures.loadtime_all
            return closure(module, package, platform)
        if alltime:
            return self.graph.direct_alltime_deps(module, package, platform)
        return self.graph.direct_load_deps(module, package, platform)

    def dependency_kinds(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> Mapping[str, EdgeKind]:
        """Direct all-time dependencies of ``module`` with the kind of each edge."""
        return self.graph.qualified_deps(module, package, platform)

    def package_edges(
        self, package: str, platform: str | None = None
    ) -> Mapping[str, EdgeKind]:
        """Packages ``package`` requires, each with the strongest kind of edge."""
        return self.graph.package_edges(package, platform)

    def native_deps(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> Mapping[str, bool]:
        """Native libraries loaded by ``module`` mapped to their load success."""
        return self.graph.native_deps(module, package, platform)

    def dependency_tree(
        self,
        module: str,
        package: str | None = None,
        platform: str | None = None,
        *,
        alltime: bool = False,
    ) -> DependencyNode:
        """Dependency tree of ``module``."""
        tree = self.closures.alltime_tree if alltime else self.closures.loadtime_tree
        return tree(module, package, platform)

    def dependents(
        self,
        module: str,
        package: str | None = None,
        platform: str | None = None,
        *,
        alltime: bool = False,
        transitive: bool = False,
    ) -> Dependents:
        """Modules (and their packages) that depend on ``module``."""
        if transitive:
            query = (
                self.reverse.required_alltime_all if alltime else self.reverse.required_loadtime_all
            )
        else:
            query = self.reverse.required_alltime if alltime else self.reverse.required_loadtime
        return query(module, package, platform)

    def bin_deps(
        self, package: str, platform: str | None = None, *, transitive: bool = False
    ) -> frozenset[str]:
        """Binary dependencies of ``package``."""
        if transitive:
            return self.closures.binary_closure(package, platform)
        return self.graph.direct_binary_deps(package, platform)

    def rev_bin_deps(
        self, package: str, platform: str | None = None, *, transitive: bool = False
    ) -> frozenset[str]:
        """Installed packages that binary-depend on ``package``."""
        if transitive:
            return self.reverse.rev_bin_deps_all(package, platform)
        return self.reverse.rev_bin_deps(package, platform)

    def load_errors(self, package: str, platform: str | None = None) -> Mapping[str, str]:
        """Genuine load errors of the modules of ``package``."""
        return self.graph.load_errors(package, platform)

    # package analytics

    def license(self, package: str) -> str:
        """License of ``package``, falling back to the configured default."""
        return self.catalog.license(package)

    def _package_type(self, package: str) -> str:
        modules = self.catalog.modules(package)
        compiled: str | None = None
        uses_ctypes: str | None = None
        for module in sorted(modules):
            if self.catalog.module_kind(package, module) == ModuleKind.COMPILED:
                compiled = compiled or module
            if uses_ctypes is None:
                for platform in sorted(self.graph.module_platforms(module, package)):
                    if CTYPES_MODULE in self.closures.loadtime_all(module, package, platform):
                        uses_ctypes = module
                        break
        if compiled and uses_ctypes:
            if compiled == package:
                uses_ctypes = None
            elif uses_ctypes == package:
                compiled = None
        if uses_ctypes:
            return "Python+ctypes"
        if modules:
            return "Python/C" if compiled else "Python"
        if self.catalog.has_build_dir(package):
            return "C"
        return "other"

    # version control

    def version(self, package: str) -> str | None:
        """Describe-style version of ``package``."""
        return self.catalog.version(package)

    def tags(self, package: str) -> tuple[str, ...]:
        """Release tags of ``package``, oldest first."""
        return self.catalog.tags(package)

    def current_tag(self, package: str) -> str | None:
        """Most recent tag of ``package``."""
        return self.catalog.current_tag(package)

    def origin_url(self, package: str) -> str | None:
        """URL ``package`` was cloned from."""
        return self.catalog.origin_url(package)

    # consistency checks

    def module_tree(self, package: str) -> DependencyNode:
        """Modules of ``package`` arranged by their naming-convention parent."""
        return self.catalog.module_tree(package)

    def undocumented_packages(self) -> frozenset[str]:
        """Installed packages without a document named after the package."""
        return self.catalog.undocumented_packages()

    def duplicate_docs(self) -> Mapping[str, tuple[str, ...]]:
        """Document name -> packages, for documents shipped by more than one package."""
        return self.catalog.duplicate_docs()
