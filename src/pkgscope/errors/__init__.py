"""Exception hierarchy for pkgscope.

Examples
--------
>>> from pkgscope.errors import ErrorCode, PkgScopeError
>>> error = PkgScopeError("Operation failed", code=ErrorCode.RUNTIME_ERROR)
>>> error.to_dict()["code"]
'runtime-error'
"""

from __future__ import annotations

from pkgscope.errors.codes import ErrorCode
from pkgscope.errors.exceptions import (
    CollaboratorUnavailableError,
    CyclicDependencyError,
    MetadataError,
    PackageNotInstalledError,
    PkgScopeError,
    SettingsError,
    SnapshotError,
    UnknownPackageError,
    UnknownPlatformError,
)

__all__ = [
    "CollaboratorUnavailableError",
    "CyclicDependencyError",
    "ErrorCode",
    "MetadataError",
    "PackageNotInstalledError",
    "PkgScopeError",
    "SettingsError",
    "SnapshotError",
    "UnknownPackageError",
    "UnknownPlatformError",
]
