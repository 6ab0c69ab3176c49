"""Data model shared by the engine and its collaborators.

Tracking records are ``msgspec`` structs so they can be stored in the JSON
snapshot and returned by remote routines without a separate schema.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TypeAlias

import msgspec

__all__ = [
    "BUILTIN_PATH",
    "EMPTY_RECORD",
    "AcquisitionReport",
    "DependencyNode",
    "EdgeKind",
    "ModuleKind",
    "PackageMeta",
    "Snapshot",
    "TrackingRecord",
]

BUILTIN_PATH = "<built-in>"
"""Path sentinel of modules that ship inside the interpreter runtime."""


class ModuleKind(StrEnum):
    """What a tracked module name refers to."""

    SOURCE = "source"
    COMPILED = "compiled"
    BUILTIN = "built-in"
    SCRIPT = "script"


class EdgeKind(StrEnum):
    """Qualifier of a derived dependency edge."""

    LOADTIME = "loadtime"
    RUNTIME = "runtime"
    AUTOLOAD = "autoload"
    BINARY = "binary"


class TrackingRecord(msgspec.Struct, frozen=True, omit_defaults=True):
    """Facts observed while loading one module on one platform.

    Attributes
    ----------
    load_deps : frozenset[str]
        Modules imported while the module was loading.
    native_deps : dict[str, bool]
        Native library name -> whether loading it succeeded.
    autoloads : dict[str, str]
        Attribute name -> module imported lazily on first access.
    load_error : str | None
        First line of the error raised while loading, if any.
    """

    load_deps: frozenset[str] = msgspec.field(default_factory=frozenset)
    native_deps: dict[str, bool] = msgspec.field(default_factory=dict)
    autoloads: dict[str, str] = msgspec.field(default_factory=dict)
    load_error: str | None = None


EMPTY_RECORD = TrackingRecord()

Snapshot: TypeAlias = dict[str, dict[str, dict[str, TrackingRecord]]]
"""``platform -> package -> module -> record``."""


class PackageMeta(msgspec.Struct, frozen=True, omit_defaults=True):
    """Package metadata read from the package's description files.

    Attributes
    ----------
    binary_deps : dict[str, frozenset[str]]
        Platform -> packages that must be built before this one.
    platforms : frozenset[str]
        Platforms declared by the package documentation, already expanded
        from OS family names.
    license : str | None
        Declared license.
    version : str | None
        Upstream version of bundled sources.
    url : str | None
        Upstream origin URL.
    realname : str | None
        Upstream project name.
    """

    binary_deps: dict[str, frozenset[str]] = msgspec.field(default_factory=dict)
    platforms: frozenset[str] = msgspec.field(default_factory=frozenset)
    license: str | None = None
    version: str | None = None
    url: str | None = None
    realname: str | None = None


@dataclass(frozen=True, slots=True)
class DependencyNode:
    """Node of a dependency display tree.

    Attributes
    ----------
    name : str
        Module (or package) name.
    children : tuple[DependencyNode, ...]
        Dependencies in display order.
    cycle : bool
        True when ``name`` already appears on the path from the root and was
        therefore not expanded.
    """

    name: str
    children: tuple[DependencyNode, ...] = ()
    cycle: bool = False

    def walk(self) -> Iterator[tuple[DependencyNode, int]]:
        """Yield ``(node, depth)`` for every descendant in depth-first order."""
        stack: list[tuple[DependencyNode, int]] = [
            (child, 0) for child in reversed(self.children)
        ]
        while stack:
            node, depth = stack.pop()
            yield node, depth
            stack.extend((child, depth + 1) for child in reversed(node.children))

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-friendly nested mapping."""
        payload: dict[str, object] = {"name": self.name}
        if self.cycle:
            payload["cycle"] = True
        if self.children:
            payload["children"] = [child.to_dict() for child in self.children]
        return payload


@dataclass(slots=True)
class AcquisitionReport:
    """Outcome of one acquisition pass over the target platforms.

    Attributes
    ----------
    merged : dict[str, tuple[str, ...]]
        Platform -> packages whose records were merged.
    failed : dict[str, str]
        Platform -> error message.
    skipped : tuple[str, ...]
        Platforms with neither local tracing nor a configured server.
    """

    merged: dict[str, tuple[str, ...]] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        """True when no platform failed."""
        return not self.failed
