"""Atomic file replacement for the tracking snapshot.

Examples
--------
>>> from pathlib import Path
>>> from pkgscope.fs import atomic_write
>>> atomic_write(Path("/tmp/pkgscope/db.json"), b"{}", mode="binary")
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Literal

__all__ = ["atomic_write"]


def atomic_write(
    path: Path,
    data: str | bytes,
    mode: Literal["text", "binary"] = "text",
) -> None:
    """Replace ``path`` with ``data`` in one rename.

    The staging file is created next to ``path`` so the rename stays on one
    filesystem; readers observe the old content or the new content, never a
    partial file. Missing parent directories are created.

    Parameters
    ----------
    path : Path
        Destination file.
    data : str | bytes
        ``str`` for text mode (written as UTF-8), ``bytes`` for binary mode.
    mode : Literal['text', 'binary'], optional
        How ``data`` is written. Defaults to "text".

    Raises
    ------
    ValueError
        If the type of ``data`` does not fit ``mode``.
    OSError
        If staging or renaming fails. The staging file is removed.
    """
    expected = str if mode == "text" else bytes
    if not isinstance(data, expected):
        msg = f"{mode} mode requires {expected.__name__} data"
        raise ValueError(msg)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, staging = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data.encode("utf-8") if isinstance(data, str) else data)
        os.replace(staging, path)
    except BaseException:
        Path(staging).unlink(missing_ok=True)
        raise
