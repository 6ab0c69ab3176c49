"""Path conventions of an installation tree.

All packages share one root. Paths are POSIX-style and relative to the root:

* ``a/b.py`` is module ``a.b`` and ``a/__init__.py`` is module ``a``;
* ``bin/<platform>/py/a.py`` is a platform-specific source module ``a``;
* ``bin/<platform>/ext/a/b.so`` (or ``.pyd``) is compiled module ``a.b``;
* ``bin/<platform>/<lib>`` holds native libraries;
* ``csrc/<package>/`` holds native sources and ``build-<platform>.sh|.cmd``.

Nothing under ``bin/`` outside the two module folders, nor under ``csrc/``,
``media/`` or ``.mgit/``, is a module.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from pkgscope.platforms import COMPILED_SUFFIXES, library_filename

__all__ = [
    "bin_platform",
    "build_script_platform",
    "compiled_module_name",
    "is_doc_path",
    "is_module_path",
    "is_script_name",
    "module_name",
    "native_library_path",
    "parent_module_name",
    "source_module_name",
]

_SCRIPT_RE = re.compile(r"(_test|_demo|_demo_.*|_benchmark|_app)$")
_PARENT_RE = re.compile(r"^(.*)[_.][^_.]+$")
_PLATFORM_PY_RE = re.compile(r"^bin/[^/]+/py/")
_COMPILED_RE = re.compile(r"^bin/[^/]+/ext/(.+)$")
_BIN_PLATFORM_RE = re.compile(r"^bin/([^/]+)/.")
_RESERVED_PREFIXES = ("csrc/", "media/", ".mgit/")


def is_module_path(path: str, platform: str | None = None) -> bool:
    """Return True when ``path`` may hold a module.

    Parameters
    ----------
    path : str
        Tracked path relative to the root.
    platform : str | None, optional
        Only accept platform-specific module folders of this platform. None
        accepts every platform.

    Returns
    -------
    bool
        Whether the path lies in a module location.
    """
    if path.startswith(_RESERVED_PREFIXES):
        return False
    if not path.startswith("bin/"):
        return True
    parts = path.split("/")
    if len(parts) < 4 or parts[2] not in {"py", "ext"}:
        return False
    return platform is None or parts[1] == platform


def is_doc_path(path: str) -> bool:
    """Return True for markdown documents outside the binary and source folders."""
    return path.endswith(".md") and not path.startswith(("bin/", "csrc/", "media/"))


def _dotted(parts: list[str]) -> str | None:
    if not parts or not all(part.isidentifier() for part in parts):
        return None
    return ".".join(parts)


def source_module_name(path: str) -> str | None:
    """Map a ``.py`` path to its module name.

    Examples
    --------
    >>> source_module_name("glue/tree.py")
    'glue.tree'
    >>> source_module_name("glue/__init__.py")
    'glue'
    >>> source_module_name("bin/linux64/py/fastpath.py")
    'fastpath'
    """
    if not path.endswith(".py"):
        return None
    if path.startswith("bin/"):
        if not _PLATFORM_PY_RE.match(path):
            return None
        path = _PLATFORM_PY_RE.sub("", path, count=1)
    parts = list(PurePosixPath(path[: -len(".py")]).parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    return _dotted(parts)


def compiled_module_name(path: str) -> str | None:
    """Map a compiled extension path to its module name.

    The file name is cut at its first dot, so ABI-tagged names such as
    ``speedups.cpython-312-x86_64-linux-gnu.so`` map to ``speedups``.

    Examples
    --------
    >>> compiled_module_name("bin/linux64/ext/zlib/_core.so")
    'zlib._core'
    """
    match = _COMPILED_RE.match(path)
    if match is None or not path.endswith(COMPILED_SUFFIXES):
        return None
    parts = match.group(1).split("/")
    parts[-1] = parts[-1].split(".", 1)[0]
    return _dotted(parts)


def module_name(path: str) -> str | None:
    """Return the module name of ``path`` or None when it is not a module file."""
    return source_module_name(path) or compiled_module_name(path)


def is_script_name(module: str) -> bool:
    """Return True for tests, demos, benchmarks and apps."""
    return _SCRIPT_RE.search(module) is not None


def parent_module_name(module: str) -> str | None:
    """Return the naming-convention parent of ``module``.

    Both ``a.b`` and ``a_b`` have parent ``a``.

    Examples
    --------
    >>> parent_module_name("bitmap_rgbaf")
    'bitmap'
    >>> parent_module_name("glue") is None
    True
    """
    match = _PARENT_RE.match(module)
    if match is None or not match.group(1):
        return None
    return match.group(1)


def build_script_platform(path: str, package: str) -> str | None:
    """Return the platform of a ``csrc/<package>/build-<platform>`` script."""
    match = re.match(rf"^csrc/{re.escape(package)}/build-(.+)\.(?:sh|cmd)$", path)
    return match.group(1) if match else None


def bin_platform(path: str) -> str | None:
    """Return ``<platform>`` of a file under ``bin/<platform>/``."""
    match = _BIN_PLATFORM_RE.match(path)
    return match.group(1) if match else None


def native_library_path(name: str, platform: str) -> str:
    """Return where library ``name`` lives for ``platform``."""
    return f"bin/{platform}/{library_filename(name, platform)}"
