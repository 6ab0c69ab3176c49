"""Tracking store: per-platform module records and their acquisition.

The store keeps a working copy of the snapshot (``platform -> package ->
module -> record``). Records for the current platform are produced by the
:class:`~pkgscope.collaborators.Tracer`; records for other platforms come from
a :class:`~pkgscope.collaborators.RemoteExecutor` that runs
:meth:`TrackingStore.tracking_data` on a server targeting that platform.

Acquisition runs one task per platform on a thread pool. Each platform
partition has its own lock, so merges into one partition are serialized while
different platforms proceed independently. A failing platform is logged and
reported; it never cancels the others.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from functools import partial

import msgspec

from pkgscope.catalog import PackageCatalog
from pkgscope.collaborators import RemoteExecutor, SnapshotStore, Tracer
from pkgscope.errors import CollaboratorUnavailableError, PkgScopeError
from pkgscope.logging import get_logger, with_fields
from pkgscope.models import (
    BUILTIN_PATH,
    EMPTY_RECORD,
    AcquisitionReport,
    Snapshot,
    TrackingRecord,
)
from pkgscope.platforms import current_platform
from pkgscope.settings import ReflectSettings

__all__ = ["TrackingStore"]

logger = get_logger(__name__)

PackageRecords = dict[str, dict[str, TrackingRecord]]
"""``package -> module -> record`` for one platform."""

TRACKING_ROUTINE = "tracking_data"


class TrackingStore:
    """Owner of the working copy of tracking records.

    Parameters
    ----------
    settings : ReflectSettings
        Installation settings.
    catalog : PackageCatalog
        Package catalog used to enumerate modules.
    tracer : Tracer
        Local module tracer.
    snapshots : SnapshotStore
        Persistent snapshot storage.
    remote : RemoteExecutor | None, optional
        Executor for platforms with a configured server. Defaults to None.
    """

    def __init__(
        self,
        settings: ReflectSettings,
        catalog: PackageCatalog,
        tracer: Tracer,
        snapshots: SnapshotStore,
        remote: RemoteExecutor | None = None,
    ) -> None:
        self.settings = settings
        self._catalog = catalog
        self._tracer = tracer
        self._snapshots = snapshots
        self._remote = remote
        self._db: Snapshot | None = None
        self._load_lock = threading.Lock()
        self._partition_locks: dict[str, threading.Lock] = {}
        self._attempted: set[tuple[str, str]] = set()

    # working copy

    def _snapshot(self) -> Snapshot:
        with self._load_lock:
            if self._db is None:
                self._db = self._snapshots.load()
            return self._db

    def _partition_lock(self, platform: str) -> threading.Lock:
        with self._load_lock:
            return self._partition_locks.setdefault(platform, threading.Lock())

    def _lookup(self, platform: str, package: str, module: str) -> TrackingRecord | None:
        return self._snapshot().get(platform, {}).get(package, {}).get(module)

    def get_record(self, module: str, package: str | None, platform: str | None) -> TrackingRecord:
        """Return the record of ``module`` in ``package`` on ``platform``.

        A missing record triggers one acquisition pass for the package on that
        platform when ``auto_update_db`` is set. Whatever is still missing
        afterwards is reported as the empty record.

        Parameters
        ----------
        module : str
            Module name.
        package : str | None
            Owning package; None yields the empty record.
        platform : str | None
            Target platform; None selects the current platform.

        Returns
        -------
        TrackingRecord
            The resident record or :data:`~pkgscope.models.EMPTY_RECORD`.

        Raises
        ------
        UnknownPackageError
            If ``package`` is given but not known.
        """
        platform = self._catalog.check_platform(platform)
        if package is None:
            return EMPTY_RECORD
        self._catalog.check_known_package(package)
        record = self._lookup(platform, package, module)
        if record is None and self.settings.auto_update_db:
            key = (platform, package)
            if key not in self._attempted:
                self._attempted.add(key)
                self.update(package, platform)
                record = self._lookup(platform, package, module)
        return EMPTY_RECORD if record is None else record

    def merge_records(
        self, platform: str, data: Mapping[str, Mapping[str, TrackingRecord]]
    ) -> None:
        """Replace the records of every package in ``data`` on ``platform``.

        Parameters
        ----------
        platform : str
            Target partition.
        data : Mapping[str, Mapping[str, TrackingRecord]]
            ``package -> module -> record``.
        """
        snapshot = self._snapshot()
        with self._partition_lock(platform):
            partition = snapshot.setdefault(platform, {})
            for package, records in data.items():
                partition[package] = dict(records)

    def records(self, platform: str) -> Mapping[str, Mapping[str, TrackingRecord]]:
        """Return a read-only copy of one platform partition."""
        snapshot = self._snapshot()
        with self._partition_lock(platform):
            return {package: dict(mods) for package, mods in snapshot.get(platform, {}).items()}

    # acquisition

    def tracking_data(self, package: str | None = None) -> PackageRecords:
        """Trace modules on the current platform.

        Packages whose declared platforms exclude the current platform get an
        empty partition.

        Parameters
        ----------
        package : str | None, optional
            Package to trace. None traces every installed package.

        Returns
        -------
        PackageRecords
            ``package -> module -> record``.
        """
        platform = current_platform()
        packages = (
            [self._catalog.check_package(package)]
            if package is not None
            else sorted(self._catalog.installed_packages())
        )
        data: PackageRecords = {}
        for name in packages:
            records: dict[str, TrackingRecord] = {}
            data[name] = records
            supported = self._catalog.platforms(name)
            if supported and platform not in supported:
                logger.debug(
                    "Package does not support this platform",
                    extra={"operation": "tracking_data", "package": name, "platform": platform},
                )
                continue
            for module, path in sorted(self._catalog.modules(name).items()):
                if path == BUILTIN_PATH:
                    records[module] = EMPTY_RECORD
                    continue
                try:
                    records[module] = self._tracer.trace(module, name)
                except CollaboratorUnavailableError as exc:
                    logger.warning(
                        "Module could not be traced: %s",
                        exc,
                        extra={
                            "operation": "tracking_data",
                            "package": name,
                            "module_name": module,
                        },
                    )
        return data

    def _acquire_remote(self, platform: str, package: str | None) -> PackageRecords:
        if self._remote is None:
            msg = f"no remote executor for {platform}"
            raise CollaboratorUnavailableError(msg, collaborator="remote")
        args: list[object] = [] if package is None else [package]
        result = self._remote.run_on_platform(platform, TRACKING_ROUTINE, args)
        try:
            return msgspec.convert(result, PackageRecords)
        except msgspec.ValidationError as exc:
            msg = f"malformed tracking data from {platform}: {exc}"
            raise CollaboratorUnavailableError(
                msg, collaborator="remote", cause=exc, context={"platform": platform}
            ) from exc

    def _plan(
        self, package: str | None, platforms: list[str]
    ) -> tuple[dict[str, Callable[[], PackageRecords]], list[str]]:
        local = current_platform()
        jobs: dict[str, Callable[[], PackageRecords]] = {}
        skipped: list[str] = []
        for platform in platforms:
            if (
                platform == local
                and platform not in self.settings.servers
                and self.settings.allow_update_db_locally
            ):
                jobs[platform] = partial(self.tracking_data, package)
            elif platform in self.settings.servers and self._remote is not None:
                jobs[platform] = partial(self._acquire_remote, platform, package)
            else:
                skipped.append(platform)
        return jobs, skipped

    def update(self, package: str | None = None, platform: str | None = None) -> AcquisitionReport:
        """Acquire records for ``package`` (or all) on ``platform`` (or all).

        Parameters
        ----------
        package : str | None, optional
            Package filter. Defaults to every installed package.
        platform : str | None, optional
            Platform filter. Defaults to every configured platform.

        Returns
        -------
        AcquisitionReport
            Merged, failed and skipped platforms.
        """
        if package is not None:
            self._catalog.check_package(package)
        platforms = (
            [self._catalog.check_platform(platform)]
            if platform is not None
            else list(self.settings.platforms)
        )
        jobs, skipped = self._plan(package, platforms)
        report = AcquisitionReport(skipped=tuple(skipped))
        for name in skipped:
            logger.warning(
                "No way to acquire records for platform",
                extra={"operation": "update_db", "platform": name, "package": package},
            )
        if not jobs:
            return report
        with ThreadPoolExecutor(
            max_workers=len(jobs), thread_name_prefix="pkgscope-acquire"
        ) as pool:
            futures = {pool.submit(job): name for name, job in jobs.items()}
            for future in as_completed(futures):
                name = futures[future]
                with with_fields(logger, operation="update_db", platform=name) as log:
                    try:
                        data = future.result()
                    except (PkgScopeError, OSError) as exc:
                        report.failed[name] = str(exc)
                        log.warning("Acquisition failed: %s", exc, extra={"package": package})
                        continue
                    self.merge_records(name, data)
                    report.merged[name] = tuple(sorted(data))
                    log.info(
                        "Records merged",
                        extra={"package": package, "packages": len(data)},
                    )
        return report

    # persistence and invalidation

    def save(self) -> None:
        """Write the working copy through the snapshot store."""
        snapshot = self._snapshot()
        copy: Snapshot = {}
        for platform in list(snapshot):
            with self._partition_lock(platform):
                copy[platform] = dict(snapshot[platform])
        self._snapshots.save(copy)

    def _reacquirable(self) -> set[str]:
        local = current_platform()
        platforms = set(self.settings.servers) if self._remote is not None else set()
        if self.settings.allow_update_db_locally and local in self.settings.platforms:
            platforms.add(local)
        return platforms

    def evict(self, package: str | None = None) -> None:
        """Drop resident records so the next query acquires them again.

        Only partitions that can be re-acquired (the local platform when local
        tracing is allowed, platforms with a server) are dropped, and only when
        ``auto_update_db`` is set.

        Parameters
        ----------
        package : str | None, optional
            Package to evict. None evicts every package.
        """
        if package is None:
            self._attempted.clear()
        else:
            self._attempted = {key for key in self._attempted if key[1] != package}
        if self._db is None or not self.settings.auto_update_db:
            return
        snapshot = self._snapshot()
        for platform in sorted(self._reacquirable()):
            with self._partition_lock(platform):
                partition = snapshot.get(platform)
                if partition is None:
                    continue
                if package is None:
                    partition.clear()
                else:
                    partition.pop(package, None)
        logger.debug(
            "Tracking records evicted",
            extra={"operation": "clear_cache", "package": package},
        )
