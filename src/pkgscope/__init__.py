"""Dependency reflection and build ordering for multi-package installations.

:class:`~pkgscope.engine.Reflector` answers "what does this module load",
"who depends on this package" and "in which order must these packages be
built" for every configured platform, from tracking records acquired by
loading each module in isolation.
"""

from __future__ import annotations

from pkgscope.engine import Reflector
from pkgscope.errors import (
    CollaboratorUnavailableError,
    CyclicDependencyError,
    ErrorCode,
    PackageNotInstalledError,
    PkgScopeError,
    UnknownPackageError,
    UnknownPlatformError,
)
from pkgscope.models import DependencyNode, PackageMeta, TrackingRecord
from pkgscope.settings import ReflectSettings, load_settings

__all__ = [
    "CollaboratorUnavailableError",
    "CyclicDependencyError",
    "DependencyNode",
    "ErrorCode",
    "PackageMeta",
    "PackageNotInstalledError",
    "PkgScopeError",
    "ReflectSettings",
    "Reflector",
    "TrackingRecord",
    "UnknownPackageError",
    "UnknownPlatformError",
    "__version__",
    "load_settings",
]

__version__ = "0.1.0"
