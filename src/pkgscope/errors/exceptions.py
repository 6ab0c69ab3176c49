"""Typed exception hierarchy for pkgscope.

All caller-visible failures inherit from :class:`PkgScopeError`, which carries
a stable :class:`~pkgscope.errors.codes.ErrorCode`, a log level and a context
mapping with enough detail (package, platform, residual set) to diagnose the
failure without re-running the query.

Module load failures are *not* exceptions: they are recorded in
:class:`~pkgscope.models.TrackingRecord` and flow through the graph as data.

Examples
--------
>>> from pkgscope.errors import ErrorCode, UnknownPackageError
>>> try:
...     raise UnknownPackageError("nosuch")
... except UnknownPackageError as e:
...     assert e.code == ErrorCode.UNKNOWN_PACKAGE
...     assert e.context["package"] == "nosuch"
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from pkgscope.errors.codes import ErrorCode

__all__ = [
    "CollaboratorUnavailableError",
    "CyclicDependencyError",
    "MetadataError",
    "PackageNotInstalledError",
    "PkgScopeError",
    "SettingsError",
    "SnapshotError",
    "UnknownPackageError",
    "UnknownPlatformError",
]


class PkgScopeError(Exception):
    """Base exception for all pkgscope errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    code : ErrorCode, optional
        Stable error code. Defaults to ``ErrorCode.RUNTIME_ERROR``.
    log_level : int, optional
        Level used when the error is logged. Defaults to ``logging.ERROR``.
    cause : Exception | None, optional
        Underlying exception. Prefer ``raise ... from exc``; this is kept for
        callers that build the error before raising it. Defaults to None.
    context : Mapping[str, object] | None, optional
        Structured details about the failure. Defaults to None.

    Attributes
    ----------
    message : str
        Human-readable error message.
    code : ErrorCode
        Error code enum value.
    log_level : int
        Logging level for error logging.
    context : dict[str, object]
        Additional context dictionary for error details.
    """

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode = ErrorCode.RUNTIME_ERROR,
        log_level: int = logging.ERROR,
        cause: Exception | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.log_level = log_level
        self.context: dict[str, object] = dict(context) if context else {}
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-friendly representation of the error.

        Returns
        -------
        dict[str, object]
            Mapping with ``code``, ``title``, ``detail`` and, when present,
            ``context``.
        """
        payload: dict[str, object] = {
            "code": self.code.value,
            "title": self.__class__.__name__,
            "detail": self.message,
        }
        if self.context:
            payload["context"] = dict(self.context)
        return payload

    def __str__(self) -> str:
        """Return formatted error string.

        Returns
        -------
        str
            Formatted error string (e.g.,
            "UnknownPackageError[unknown-package]: unknown package 'foo'").
        """
        base = f"{self.__class__.__name__}[{self.code.value}]: {self.message}"
        if self.__cause__:
            base += f" (caused by: {type(self.__cause__).__name__})"
        return base


class UnknownPackageError(PkgScopeError):
    """Raised when a query names a package that is not in the known set.

    Parameters
    ----------
    package : str
        The offending package name.
    """

    def __init__(self, package: str) -> None:
        super().__init__(
            f"unknown package {package!r}",
            code=ErrorCode.UNKNOWN_PACKAGE,
            context={"package": package},
        )
        self.package = package


class PackageNotInstalledError(PkgScopeError):
    """Raised when a known package is queried but is not installed.

    Parameters
    ----------
    package : str
        The package that is known but missing from the installation.
    """

    def __init__(self, package: str) -> None:
        super().__init__(
            f"package not installed {package!r}",
            code=ErrorCode.PACKAGE_NOT_INSTALLED,
            context={"package": package},
        )
        self.package = package


class UnknownPlatformError(PkgScopeError):
    """Raised when a query names a platform outside the configured set.

    Parameters
    ----------
    platform : str
        The offending platform name.
    supported : Iterable[str], optional
        The configured platform set, reported in the context.
    """

    def __init__(self, platform: str, supported: Iterable[str] = ()) -> None:
        super().__init__(
            f"unknown platform {platform!r}",
            code=ErrorCode.UNKNOWN_PLATFORM,
            context={"platform": platform, "supported": sorted(supported)},
        )
        self.platform = platform


class CyclicDependencyError(PkgScopeError):
    """Raised when a build order cannot be produced because of a cycle.

    The residual mapping holds every package that could not be scheduled
    together with the dependencies it was still waiting for.

    Parameters
    ----------
    residual : Mapping[str, Iterable[str]]
        Unscheduled packages mapped to their remaining binary dependencies.
    platform : str
        Target platform of the failed plan.
    """

    def __init__(self, residual: Mapping[str, Iterable[str]], platform: str) -> None:
        frozen = {package: tuple(sorted(deps)) for package, deps in sorted(residual.items())}
        super().__init__(
            f"cyclic dependency among packages: {', '.join(frozen)}",
            code=ErrorCode.CYCLIC_DEPENDENCY,
            context={
                "platform": platform,
                "residual": {package: list(deps) for package, deps in frozen.items()},
            },
        )
        self.residual = frozen
        self.platform = platform


class CollaboratorUnavailableError(PkgScopeError):
    """Raised when a tracer, remote executor or package source cannot be used.

    Parameters
    ----------
    message : str
        Human-readable error message.
    collaborator : str
        Short name of the failing collaborator (``"tracer"``, ``"remote"``...).
    cause : Exception | None, optional
        Underlying exception. Defaults to None.
    context : Mapping[str, object] | None, optional
        Additional context. Defaults to None.
    """

    def __init__(
        self,
        message: str,
        *,
        collaborator: str,
        cause: Exception | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.COLLABORATOR_UNAVAILABLE,
            log_level=logging.WARNING,
            cause=cause,
            context={"collaborator": collaborator, **(context or {})},
        )
        self.collaborator = collaborator


class SnapshotError(PkgScopeError):
    """Raised when the tracking snapshot cannot be read or written."""

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.SNAPSHOT_ERROR, cause=cause, context=context)


class MetadataError(PkgScopeError):
    """Raised when a package metadata file is malformed."""

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.METADATA_ERROR, cause=cause, context=context)


class SettingsError(PkgScopeError):
    """Raised when settings validation fails."""

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.CONFIGURATION_ERROR, cause=cause, context=context
        )
