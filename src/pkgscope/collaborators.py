"""Interfaces of the services the engine consumes.

The engine only talks to these protocols. Default implementations live in
:mod:`pkgscope.sources`, :mod:`pkgscope.metadata`, :mod:`pkgscope.scanner`,
:mod:`pkgscope.tracer`, :mod:`pkgscope.remote` and :mod:`pkgscope.snapshot`;
tests substitute in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from pkgscope.models import PackageMeta, Snapshot, TrackingRecord

__all__ = [
    "MetadataReader",
    "PackageSource",
    "RemoteExecutor",
    "SnapshotStore",
    "SourceScanner",
    "Tracer",
]


@runtime_checkable
class Tracer(Protocol):
    """Loads a module in isolation and reports what it pulled in."""

    def trace(self, module: str, package: str) -> TrackingRecord:
        """Return the tracking record of ``module`` on the current platform.

        Load failures are reported in ``TrackingRecord.load_error``; an
        exception means the tracer itself could not run.
        """
        ...


@runtime_checkable
class SourceScanner(Protocol):
    """Extracts statically visible import hints from source text."""

    def scan(self, module: str, path: Path) -> frozenset[str]:
        """Return module names referenced by the source at ``path``."""
        ...


@runtime_checkable
class MetadataReader(Protocol):
    """Reads declared package metadata."""

    def read(self, package: str) -> PackageMeta:
        """Return the metadata of ``package`` (empty when nothing is declared)."""
        ...


@runtime_checkable
class PackageSource(Protocol):
    """Enumerates packages, the files each one tracks and their history."""

    def known_packages(self) -> Iterable[str]:
        """Return every package the installation knows about."""
        ...

    def installed_packages(self) -> Iterable[str]:
        """Return the packages actually present in the installation."""
        ...

    def tracked_files(self, package: str) -> Iterable[str]:
        """Return paths, relative to the root, tracked by ``package``."""
        ...

    def has_build_dir(self, package: str) -> bool:
        """Return True when the package ships native sources to build."""
        ...

    def version(self, package: str) -> str | None:
        """Return a describe-style version string of the package history."""
        ...

    def tags(self, package: str) -> Sequence[str]:
        """Return the release tags of the package, oldest first."""
        ...

    def current_tag(self, package: str) -> str | None:
        """Return the most recent tag, or None when the package is untagged."""
        ...

    def origin_url(self, package: str) -> str | None:
        """Return the URL the package was cloned from, or None when unknown."""
        ...


@runtime_checkable
class RemoteExecutor(Protocol):
    """Runs an engine routine on an instance targeting another platform."""

    def run_on_platform(self, platform: str, routine: str, args: list[object]) -> object:
        """Run ``routine(*args)`` remotely and return its JSON-compatible result."""
        ...

    def status(self, platform: str) -> Mapping[str, object]:
        """Return the status document of the server targeting ``platform``."""
        ...


@runtime_checkable
class SnapshotStore(Protocol):
    """Persists tracking records between sessions."""

    def load(self) -> Snapshot:
        """Return the stored snapshot, or an empty one when none exists."""
        ...

    def save(self, snapshot: Snapshot) -> None:
        """Replace the stored snapshot atomically."""
        ...
