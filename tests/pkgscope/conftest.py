"""Shared fixtures: settings and an engine factory over in-memory collaborators."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

import pytest

from pkgscope.engine import Reflector
from pkgscope.models import PackageMeta, Snapshot, TrackingRecord
from pkgscope.settings import ReflectSettings, load_settings
from tests.helpers import (
    CountingTracer,
    FakeMetadata,
    FakeRemote,
    FakeScanner,
    FakeSource,
    Harness,
    HarnessFactory,
    MemorySnapshots,
)


@pytest.fixture
def settings_factory(tmp_path: Path) -> Callable[..., ReflectSettings]:
    def _make(**overrides: object) -> ReflectSettings:
        values: dict[str, object] = {
            "root_dir": tmp_path,
            "builtin_modules": frozenset({"sys", "builtins"}),
            "runtime_modules": frozenset({"os", "json", "ctypes"}),
        }
        values.update(overrides)
        return load_settings(**values)

    return _make


@pytest.fixture
def make_harness(settings_factory: Callable[..., ReflectSettings]) -> HarnessFactory:
    """Return a factory building an engine over in-memory collaborators."""

    def _make(
        files: Mapping[str, list[str]],
        *,
        records: Mapping[str, TrackingRecord] | None = None,
        metas: Mapping[str, PackageMeta] | None = None,
        hints: Mapping[str, frozenset[str]] | None = None,
        known: Iterable[str] = (),
        build_dirs: Iterable[str] = (),
        tags: Mapping[str, list[str]] | None = None,
        origins: Mapping[str, str] | None = None,
        broken: Iterable[str] = (),
        snapshot: Snapshot | None = None,
        remote: FakeRemote | None = None,
        **overrides: object,
    ) -> Harness:
        source = FakeSource(
            dict(files), set(known), set(build_dirs), dict(tags or {}), dict(origins or {})
        )
        metadata = FakeMetadata(dict(metas or {}))
        tracer = CountingTracer(dict(records or {}), set(broken))
        scanner = FakeScanner(dict(hints or {}))
        snapshots = MemorySnapshots(dict(snapshot or {}))
        reflector = Reflector(
            settings_factory(**overrides),
            source=source,
            metadata=metadata,
            tracer=tracer,
            scanner=scanner,
            snapshots=snapshots,
            remote=remote,
        )
        return Harness(reflector, source, metadata, tracer, scanner, snapshots, remote)

    return _make
