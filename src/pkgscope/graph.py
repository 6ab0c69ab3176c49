"""Direct dependency edges derived from tracking records.

Edges are never stored: every query reads the tracking record of the module
and, for run-time edges, the static import scan of its source. A module whose
record carries a load error contributes no load-time or run-time edges.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from pkgscope.cache import CacheRegistry
from pkgscope.catalog import PackageCatalog
from pkgscope.collaborators import SourceScanner
from pkgscope.models import BUILTIN_PATH, EMPTY_RECORD, EdgeKind, TrackingRecord
from pkgscope.settings import ReflectSettings
from pkgscope.tracking import TrackingStore

__all__ = ["DependencyGraph", "is_platform_unsupported"]

_UNSUPPORTED_SIGNALS = ("platform not ", "arch not ")

_NO_DEPS: frozenset[str] = frozenset()

# Weakest first; a name reached several ways keeps the strongest kind.
_KIND_PRECEDENCE = (EdgeKind.RUNTIME, EdgeKind.AUTOLOAD, EdgeKind.LOADTIME, EdgeKind.BINARY)


def is_platform_unsupported(error: str | None) -> bool:
    """Return True when a load error only says the platform is unsupported.

    Examples
    --------
    >>> is_platform_unsupported("RuntimeError: platform not supported")
    True
    >>> is_platform_unsupported("ImportError: No module named 'zlib'")
    False
    """
    return error is not None and any(signal in error for signal in _UNSUPPORTED_SIGNALS)


class DependencyGraph:
    """Module and package edges for one installation.

    Parameters
    ----------
    settings : ReflectSettings
        Installation settings.
    catalog : PackageCatalog
        Package catalog.
    store : TrackingStore
        Source of tracking records.
    scanner : SourceScanner
        Static import scanner for run-time edges.
    registry : CacheRegistry
        Registry that owns this graph's caches.
    """

    def __init__(
        self,
        settings: ReflectSettings,
        catalog: PackageCatalog,
        store: TrackingStore,
        scanner: SourceScanner,
        registry: CacheRegistry,
    ) -> None:
        self.settings = settings
        self.catalog = catalog
        self.store = store
        self._scanner = scanner
        self.autoloaded = registry.full(self._autoloaded)
        self.direct_runtime_deps = registry.full(self._direct_runtime_deps)
        self.direct_alltime_deps = registry.full(self._direct_alltime_deps)
        self._module_platforms = registry.scoped(self._compute_module_platforms)
        self.load_errors = registry.scoped(self._load_errors)

    def _is_runtime_module(self, module: str) -> bool:
        return module in self.settings.builtin_modules or module in self.settings.runtime_modules

    def owner(self, module: str, package: str | None) -> str | None:
        """Return ``package`` or, when None, the resolved owner of ``module``."""
        return package if package is not None else self.catalog.module_package(module)

    def record(self, module: str, package: str | None, platform: str | None) -> TrackingRecord:
        """Return the tracking record of ``module``.

        Runtime and built-in modules, and modules without an owner, have the
        empty record.
        """
        if self._is_runtime_module(module):
            return EMPTY_RECORD
        return self.store.get_record(module, self.owner(module, package), platform)

    def direct_load_deps(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> frozenset[str]:
        """Modules imported while ``module`` loads; empty when it fails to load."""
        record = self.record(module, package, platform)
        if record.load_error is not None:
            return _NO_DEPS
        return record.load_deps

    def load_error(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> str | None:
        """Error raised while loading ``module``, if any."""
        return self.record(module, package, platform).load_error

    def native_deps(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> Mapping[str, bool]:
        """Native libraries loaded by ``module`` mapped to their load success."""
        return MappingProxyType(self.record(module, package, platform).native_deps)

    def autoloads(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> Mapping[str, str]:
        """Attribute name -> module imported lazily when the attribute is accessed."""
        return MappingProxyType(self.record(module, package, platform).autoloads)

    def _autoloaded(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> frozenset[str]:
        return frozenset(self.autoloads(module, package, platform).values())

    def _direct_runtime_deps(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> frozenset[str]:
        record = self.record(module, package, platform)
        if record.load_error is not None or self._is_runtime_module(module):
            return _NO_DEPS
        owner = self.owner(module, package)
        if owner is None:
            return _NO_DEPS
        path = self.catalog.modules(owner).get(module)
        if path is None or path == BUILTIN_PATH:
            return _NO_DEPS
        scanned = self._scanner.scan(module, self.settings.root_dir / path)
        return frozenset(scanned) - record.load_deps - {module}

    def _direct_alltime_deps(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> frozenset[str]:
        return (
            self.direct_load_deps(module, package, platform)
            | self.autoloaded(module, package, platform)
            | self.direct_runtime_deps(module, package, platform)
        )

    def qualified_deps(
        self, module: str, package: str | None = None, platform: str | None = None
    ) -> Mapping[str, EdgeKind]:
        """Direct all-time dependencies of ``module`` with the kind of each edge.

        A name reached several ways keeps the strongest kind: load-time, then
        auto-load, then run-time.
        """
        kinds: dict[str, EdgeKind] = {}
        for kind, names in (
            (EdgeKind.RUNTIME, self.direct_runtime_deps(module, package, platform)),
            (EdgeKind.AUTOLOAD, self.autoloaded(module, package, platform)),
            (EdgeKind.LOADTIME, self.direct_load_deps(module, package, platform)),
        ):
            kinds.update(dict.fromkeys(names, kind))
        return MappingProxyType(dict(sorted(kinds.items())))

    def package_edges(self, package: str, platform: str | None = None) -> Mapping[str, EdgeKind]:
        """Packages ``package`` requires, each with the strongest kind of edge.

        Module edges are lifted to the packages owning their targets; declared
        binary dependencies are ``binary`` edges and outrank module edges.
        """
        kinds: dict[str, EdgeKind] = {}
        for module in sorted(self.catalog.modules(package)):
            for name, kind in self.qualified_deps(module, package, platform).items():
                owner = self.catalog.module_package(name)
                if owner is None or owner == package:
                    continue
                rank = _KIND_PRECEDENCE.index(kind)
                if owner not in kinds or rank > _KIND_PRECEDENCE.index(kinds[owner]):
                    kinds[owner] = kind
        kinds.update(dict.fromkeys(self.direct_binary_deps(package, platform), EdgeKind.BINARY))
        return MappingProxyType(dict(sorted(kinds.items())))

    def direct_binary_deps(self, package: str, platform: str | None = None) -> frozenset[str]:
        """Packages that must be built before ``package`` on ``platform``."""
        return self.catalog.bin_deps(package, platform)

    def module_platforms(self, module: str, package: str | None = None) -> frozenset[str]:
        """Platforms ``module`` supports.

        Starts from the package's platforms (every configured platform when
        the package declares none) and drops those where loading the module
        failed with a platform-unsupported error.

        Parameters
        ----------
        module : str
            Module name.
        package : str | None, optional
            Owning package. Defaults to the resolved owner.

        Returns
        -------
        frozenset[str]
            Supported platforms.
        """
        return self._module_platforms(self.owner(module, package), module)

    def _compute_module_platforms(self, package: str | None, module: str) -> frozenset[str]:
        configured = frozenset(self.settings.platforms)
        candidates = configured
        if package is not None:
            candidates = (self.catalog.platforms(package) & configured) or configured
        return frozenset(
            platform
            for platform in candidates
            if not is_platform_unsupported(self.load_error(module, package, platform))
        )

    def _load_errors(self, package: str, platform: str | None = None) -> Mapping[str, str]:
        errors: dict[str, str] = {}
        for module in sorted(self.catalog.modules(package)):
            error = self.load_error(module, package, platform)
            if error is not None and not is_platform_unsupported(error):
                errors[module] = error
        return MappingProxyType(errors)
