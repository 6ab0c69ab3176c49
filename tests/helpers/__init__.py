"""In-memory collaborators and constants shared by the pkgscope tests."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from pkgscope.engine import Reflector
from pkgscope.errors import CollaboratorUnavailableError
from pkgscope.models import PackageMeta, Snapshot, TrackingRecord
from pkgscope.platforms import current_platform

__all__ = [
    "CURRENT",
    "OTHER",
    "CountingTracer",
    "FakeMetadata",
    "FakeRemote",
    "FakeScanner",
    "FakeSource",
    "Harness",
    "HarnessFactory",
    "MemorySnapshots",
    "build_script",
]

CURRENT = current_platform()
OTHER = next(
    name for name in ("linux64", "osx64", "mingw64", "linux32") if name != CURRENT
)


@dataclass
class FakeSource:
    """Package source over a dict of ``package -> tracked files``."""

    files: dict[str, list[str]]
    known: set[str] = field(default_factory=set)
    build_dirs: set[str] = field(default_factory=set)
    tag_history: dict[str, list[str]] = field(default_factory=dict)
    origins: dict[str, str] = field(default_factory=dict)
    listed: list[str] = field(default_factory=list)

    def known_packages(self) -> Iterable[str]:
        return set(self.files) | self.known

    def installed_packages(self) -> Iterable[str]:
        return set(self.files)

    def tracked_files(self, package: str) -> Iterable[str]:
        self.listed.append(package)
        return list(self.files[package])

    def has_build_dir(self, package: str) -> bool:
        return package in self.build_dirs

    def version(self, package: str) -> str | None:
        tags = self.tag_history.get(package)
        return f"{tags[-1]}-0-g1234567" if tags else None

    def tags(self, package: str) -> list[str]:
        return list(self.tag_history.get(package, []))

    def current_tag(self, package: str) -> str | None:
        tags = self.tag_history.get(package)
        return tags[-1] if tags else None

    def origin_url(self, package: str) -> str | None:
        return self.origins.get(package)


@dataclass
class FakeMetadata:
    metas: dict[str, PackageMeta] = field(default_factory=dict)

    def read(self, package: str) -> PackageMeta:
        return self.metas.get(package, PackageMeta())


@dataclass
class CountingTracer:
    """Tracer answering from a table and counting calls per module."""

    records: dict[str, TrackingRecord] = field(default_factory=dict)
    broken: set[str] = field(default_factory=set)
    calls: list[str] = field(default_factory=list)

    def trace(self, module: str, package: str) -> TrackingRecord:
        self.calls.append(module)
        if module in self.broken:
            msg = f"tracer crashed on {module}"
            raise CollaboratorUnavailableError(msg, collaborator="tracer")
        return self.records.get(module, TrackingRecord())


@dataclass
class FakeScanner:
    hints: dict[str, frozenset[str]] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    def scan(self, module: str, path: Path) -> frozenset[str]:
        self.calls.append(module)
        return self.hints.get(module, frozenset())


@dataclass
class MemorySnapshots:
    initial: Snapshot = field(default_factory=dict)
    saved: list[Snapshot] = field(default_factory=list)

    def load(self) -> Snapshot:
        return {
            platform: {package: dict(mods) for package, mods in packages.items()}
            for platform, packages in self.initial.items()
        }

    def save(self, snapshot: Snapshot) -> None:
        self.saved.append(snapshot)


@dataclass
class FakeRemote:
    """Remote executor answering per platform, or raising."""

    results: dict[str, object] = field(default_factory=dict)
    errors: dict[str, Exception] = field(default_factory=dict)
    statuses: dict[str, dict[str, object]] = field(default_factory=dict)
    calls: list[tuple[str, str, list[object]]] = field(default_factory=list)

    def run_on_platform(self, platform: str, routine: str, args: list[object]) -> object:
        self.calls.append((platform, routine, list(args)))
        if platform in self.errors:
            raise self.errors[platform]
        return self.results.get(platform, {})

    def status(self, platform: str) -> dict[str, object]:
        if platform in self.errors:
            raise self.errors[platform]
        return self.statuses.get(platform, {"status": "ok", "platform": platform})


@dataclass
class Harness:
    reflector: Reflector
    source: FakeSource
    metadata: FakeMetadata
    tracer: CountingTracer
    scanner: FakeScanner
    snapshots: MemorySnapshots
    remote: FakeRemote | None


def build_script(package: str, platform: str = CURRENT) -> str:
    """Tracked path of the build script of ``package`` for ``platform``."""
    return f"csrc/{package}/build-{platform}.sh"


HarnessFactory = Callable[..., Harness]
