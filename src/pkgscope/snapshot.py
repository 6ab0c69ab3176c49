"""JSON snapshot store for tracking records.

The snapshot is one msgspec-encoded JSON document laid out as
``platform -> package -> module -> record``. Saves go through
:func:`pkgscope.fs.atomic_write`, so a crash leaves either the previous
snapshot or the new one on disk.
"""

from __future__ import annotations

from pathlib import Path

import msgspec

from pkgscope.errors import SnapshotError
from pkgscope.fs import atomic_write
from pkgscope.logging import get_logger
from pkgscope.models import Snapshot

__all__ = ["JsonSnapshotStore"]

logger = get_logger(__name__)

_DECODER = msgspec.json.Decoder(Snapshot)


class JsonSnapshotStore:
    """Snapshot store backed by a single JSON file.

    Parameters
    ----------
    path : Path
        Location of the snapshot file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Snapshot:
        """Read the snapshot; a missing file yields an empty snapshot.

        Returns
        -------
        Snapshot
            Decoded records.

        Raises
        ------
        SnapshotError
            If the file cannot be read or decoded.
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            logger.debug(
                "No snapshot found; starting empty",
                extra={"operation": "load_db", "path": str(self.path)},
            )
            return {}
        except OSError as exc:
            msg = f"cannot read snapshot {self.path}"
            raise SnapshotError(msg, cause=exc, context={"path": str(self.path)}) from exc
        try:
            snapshot = _DECODER.decode(raw)
        except (msgspec.DecodeError, msgspec.ValidationError) as exc:
            msg = f"invalid snapshot {self.path}: {exc}"
            raise SnapshotError(msg, cause=exc, context={"path": str(self.path)}) from exc
        logger.info(
            "Snapshot loaded",
            extra={"operation": "load_db", "path": str(self.path), "platforms": len(snapshot)},
        )
        return snapshot

    def save(self, snapshot: Snapshot) -> None:
        """Replace the snapshot file atomically.

        Parameters
        ----------
        snapshot : Snapshot
            Records to persist.

        Raises
        ------
        SnapshotError
            If the file cannot be written.
        """
        data = msgspec.json.encode(snapshot, order="deterministic")
        try:
            atomic_write(self.path, data, mode="binary")
        except OSError as exc:
            msg = f"cannot write snapshot {self.path}"
            raise SnapshotError(msg, cause=exc, context={"path": str(self.path)}) from exc
        logger.info(
            "Snapshot saved",
            extra={"operation": "save_db", "path": str(self.path), "bytes": len(data)},
        )
