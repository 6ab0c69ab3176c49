"""Package catalog: packages, tracked files, modules and platforms.

Everything here is derived from the :class:`~pkgscope.collaborators.PackageSource`
and :class:`~pkgscope.collaborators.MetadataReader` collaborators and cached in
the engine's :class:`~pkgscope.cache.CacheRegistry`. Per-package queries are
scoped caches keyed by the package name; whole-installation aggregates are
full caches.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import PurePosixPath
from types import MappingProxyType

from pkgscope import layout
from pkgscope.cache import CacheRegistry
from pkgscope.collaborators import MetadataReader, PackageSource
from pkgscope.errors import PackageNotInstalledError, UnknownPackageError
from pkgscope.models import BUILTIN_PATH, DependencyNode, ModuleKind, PackageMeta
from pkgscope.platforms import check_platform, current_platform, platform_family
from pkgscope.settings import ReflectSettings

__all__ = ["PackageCatalog"]


class PackageCatalog:
    """Cached views over the packages of one installation.

    Parameters
    ----------
    settings : ReflectSettings
        Installation settings.
    source : PackageSource
        Package and tracked-file enumeration.
    metadata : MetadataReader
        Declared package metadata.
    registry : CacheRegistry
        Registry that owns this catalog's caches.
    """

    def __init__(
        self,
        settings: ReflectSettings,
        source: PackageSource,
        metadata: MetadataReader,
        registry: CacheRegistry,
    ) -> None:
        self.settings = settings
        self._source = source
        self._metadata = metadata
        full, scoped = registry.full, registry.scoped

        self.known_packages = full(self._known_packages)
        self.installed_packages = full(self._installed_packages)
        self.not_installed_packages = full(self._not_installed_packages)
        self.tracked_files = scoped(self._tracked_files)
        self.all_tracked_files = full(self._all_tracked_files)
        self.modules = scoped(self._modules)
        self.scripts = scoped(self._scripts)
        self.all_modules = full(self._all_modules)
        self.all_scripts = full(self._all_scripts)
        self.file_types = scoped(self._file_types)
        self.module_kind = scoped(self._module_kind)
        self.module_tags = scoped(self._module_tags)
        self.module_package = full(self._module_package)
        self.native_library_package = full(self._native_library_package)
        self.has_compiled_modules = scoped(self._has_compiled_modules)
        self.has_build_dir = scoped(self._has_build_dir)
        self.metadata = scoped(self._read_metadata)
        self.bin_deps = scoped(self._bin_deps)
        self.build_platforms = scoped(self._build_platforms)
        self.bin_platforms = scoped(self._bin_platforms)
        self.declared_platforms = scoped(self._declared_platforms)
        self.platforms = scoped(self._platforms)
        self.license = scoped(self._license)
        self.version = scoped(self._version)
        self.tags = scoped(self._tags)
        self.current_tag = scoped(self._current_tag)
        self.origin_url = scoped(self._origin_url)
        self.docs = scoped(self._docs)
        self.undocumented_package = scoped(self._undocumented_package)
        self.undocumented_packages = full(self._undocumented_packages)
        self.duplicate_docs = full(self._duplicate_docs)
        self.module_parent = scoped(self._module_parent)
        self.module_tree = scoped(self._module_tree)

    # packages

    def _known_packages(self) -> frozenset[str]:
        return frozenset(self._source.known_packages()) | self.installed_packages()

    def _installed_packages(self) -> frozenset[str]:
        return frozenset(self._source.installed_packages())

    def _not_installed_packages(self) -> frozenset[str]:
        return self.known_packages() - self.installed_packages()

    def check_package(self, package: str) -> str:
        """Validate that ``package`` is known and installed.

        Parameters
        ----------
        package : str
            Package name.

        Returns
        -------
        str
            The package name.

        Raises
        ------
        UnknownPackageError
            If the package is not known.
        PackageNotInstalledError
            If the package is known but not installed.
        """
        if package not in self.known_packages():
            raise UnknownPackageError(package)
        if package not in self.installed_packages():
            raise PackageNotInstalledError(package)
        return package

    def check_known_package(self, package: str) -> str:
        """Validate that ``package`` is known, installed or not.

        Raises
        ------
        UnknownPackageError
            If the package is not known.
        """
        if package not in self.known_packages():
            raise UnknownPackageError(package)
        return package

    def check_platform(self, platform: str | None) -> str:
        """Validate ``platform`` against the configured set (None -> current)."""
        return check_platform(platform, self.settings.platforms)

    # files and modules

    def _tracked_files(self, package: str) -> frozenset[str]:
        self.check_package(package)
        return frozenset(self._source.tracked_files(package))

    def _all_tracked_files(self) -> Mapping[str, str]:
        owners: dict[str, str] = {}
        for package in sorted(self.installed_packages()):
            for path in self.tracked_files(package):
                owners.setdefault(path, package)
        return MappingProxyType(owners)

    def _collect(self, package: str, *, scripts: bool) -> Mapping[str, str]:
        found: dict[str, str] = {}
        platform = current_platform()
        for path in sorted(self.tracked_files(package)):
            if not layout.is_module_path(path, platform):
                continue
            name = layout.module_name(path)
            if name is not None and layout.is_script_name(name) == scripts:
                found.setdefault(name, path)
        if not scripts and package == self.settings.runtime_package:
            for name in self.settings.builtin_modules | self.settings.runtime_modules:
                found.setdefault(name, BUILTIN_PATH)
        return MappingProxyType(found)

    def _modules(self, package: str) -> Mapping[str, str]:
        return self._collect(package, scripts=False)

    def _scripts(self, package: str) -> Mapping[str, str]:
        return self._collect(package, scripts=True)

    def _all_modules(self) -> Mapping[str, str]:
        merged: dict[str, str] = {}
        for package in sorted(self.installed_packages()):
            for name, path in self.modules(package).items():
                merged.setdefault(name, path)
        return MappingProxyType(merged)

    def _all_scripts(self) -> Mapping[str, str]:
        merged: dict[str, str] = {}
        for package in sorted(self.installed_packages()):
            for name, path in self.scripts(package).items():
                merged.setdefault(name, path)
        return MappingProxyType(merged)

    def _file_types(self, package: str) -> Mapping[str, str]:
        types: dict[str, str] = {}
        for path in self.tracked_files(package):
            if not layout.is_module_path(path):
                continue
            name = layout.module_name(path)
            if name is not None:
                types[path] = "script" if layout.is_script_name(name) else "module"
            elif layout.is_doc_path(path):
                types[path] = "doc"
            else:
                types[path] = "unknown"
        return MappingProxyType(types)

    def _module_kind(self, package: str, module: str) -> ModuleKind | None:
        path = self.modules(package).get(module) or self.scripts(package).get(module)
        if path is None:
            return None
        if path == BUILTIN_PATH:
            return ModuleKind.BUILTIN
        if layout.is_script_name(module):
            return ModuleKind.SCRIPT
        if layout.compiled_module_name(path) is not None:
            return ModuleKind.COMPILED
        return ModuleKind.SOURCE

    def _module_tags(self, package: str, module: str) -> Mapping[str, str | None]:
        scripts = self.scripts(package)
        kind = self.module_kind(package, module)
        return MappingProxyType(
            {
                "kind": str(kind) if kind is not None else None,
                "demo_module": f"{module}_demo" if f"{module}_demo" in scripts else None,
                "test_module": f"{module}_test" if f"{module}_test" in scripts else None,
            }
        )

    def parent_module_name(self, module: str) -> str | None:
        """Return the naming-convention parent of ``module``."""
        return layout.parent_module_name(module)

    def _module_parent(self, package: str, module: str) -> str | None:
        modules = self.modules(package)
        parent = layout.parent_module_name(module)
        while parent is not None and parent not in modules:
            parent = layout.parent_module_name(parent)
        return parent

    def _module_tree(self, package: str) -> DependencyNode:
        children: dict[str | None, list[str]] = {}
        for module in sorted(self.modules(package)):
            children.setdefault(self.module_parent(package, module), []).append(module)
        built: dict[str, DependencyNode] = {}
        stack = [(name, False) for name in reversed(children.get(None, []))]
        while stack:
            name, expanded = stack.pop()
            if expanded:
                built[name] = DependencyNode(
                    name, tuple(built[child] for child in children.get(name, ()))
                )
                continue
            stack.append((name, True))
            stack.extend((child, False) for child in children.get(name, ()))
        return DependencyNode(package, tuple(built[name] for name in children.get(None, ())))

    # reverse lookups

    def _module_package(self, module: str) -> str | None:
        if module in self.settings.builtin_modules:
            return None
        if module in self.settings.runtime_modules:
            return self.settings.runtime_package
        installed = self.installed_packages()
        candidate: str | None = module
        while candidate is not None:
            if candidate in installed and module in self.modules(candidate):
                return candidate
            candidate = layout.parent_module_name(candidate)
        path = self.all_modules().get(module)
        if path is None:
            return None
        return self.all_tracked_files().get(path)

    def _native_library_package(
        self, library: str, package: str | None = None, platform: str | None = None
    ) -> str | None:
        platform = self.check_platform(platform)
        path = layout.native_library_path(library, platform)
        installed = self.installed_packages()
        if package is not None and package in installed and path in self.tracked_files(package):
            return package
        if library in installed and path in self.tracked_files(library):
            return library
        for candidate in sorted(installed):
            if path in self.tracked_files(candidate):
                return candidate
        return None

    def _has_compiled_modules(self, package: str) -> bool:
        return any(
            layout.compiled_module_name(path) is not None for path in self.tracked_files(package)
        )

    def _has_build_dir(self, package: str) -> bool:
        return self._source.has_build_dir(package)

    # metadata and platforms

    def _read_metadata(self, package: str) -> PackageMeta:
        return self._metadata.read(package)

    def _bin_deps(self, package: str, platform: str | None = None) -> frozenset[str]:
        self.check_known_package(package)
        platform = self.check_platform(platform)
        deps = set(self.metadata(package).binary_deps.get(platform, ()))
        runtime = self.settings.runtime_package
        if (
            platform_family(platform) in self.settings.dynamic_link_families
            and package != runtime
            and package in self.installed_packages()
            and self.has_compiled_modules(package)
        ):
            deps.add(runtime)
        return frozenset(deps)

    def _build_platforms(self, package: str) -> frozenset[str]:
        if package not in self.installed_packages():
            return frozenset()
        configured = set(self.settings.platforms)
        found = set()
        for path in self.tracked_files(package):
            platform = layout.build_script_platform(path, package)
            if platform in configured:
                found.add(platform)
        return frozenset(found)

    def _bin_platforms(self, package: str) -> frozenset[str]:
        if package not in self.installed_packages():
            return frozenset()
        configured = set(self.settings.platforms)
        return frozenset(
            platform
            for path in self.tracked_files(package)
            if (platform := layout.bin_platform(path)) in configured
        )

    def _declared_platforms(self, package: str) -> frozenset[str]:
        return self.metadata(package).platforms

    def _platforms(self, package: str) -> frozenset[str]:
        return (
            self.build_platforms(package)
            | self.bin_platforms(package)
            | self.declared_platforms(package)
        )

    def _license(self, package: str) -> str:
        return self.metadata(package).license or self.settings.default_license

    # version control

    def _version(self, package: str) -> str | None:
        self.check_package(package)
        return self._source.version(package)

    def _tags(self, package: str) -> tuple[str, ...]:
        self.check_package(package)
        return tuple(self._source.tags(package))

    def _current_tag(self, package: str) -> str | None:
        self.check_package(package)
        return self._source.current_tag(package)

    def _origin_url(self, package: str) -> str | None:
        self.check_package(package)
        return self._source.origin_url(package)

    # documentation checks

    def _docs(self, package: str) -> Mapping[str, str]:
        found: dict[str, str] = {}
        for path in sorted(self.tracked_files(package)):
            if layout.is_doc_path(path):
                found.setdefault(PurePosixPath(path).stem, path)
        return MappingProxyType(found)

    def _undocumented_package(self, package: str) -> bool:
        return package not in self.docs(package)

    def _undocumented_packages(self) -> frozenset[str]:
        return frozenset(
            package
            for package in self.installed_packages()
            if self.undocumented_package(package)
        )

    def _duplicate_docs(self) -> Mapping[str, tuple[str, ...]]:
        owners: dict[str, list[str]] = {}
        for package in sorted(self.installed_packages()):
            for name in self.docs(package):
                owners.setdefault(name, []).append(package)
        return MappingProxyType(
            {name: tuple(found) for name, found in sorted(owners.items()) if len(found) > 1}
        )
