"""Stable error codes for pkgscope exceptions.

Codes are kebab-case strings so they can be embedded in CLI output and in
structured log records without translation.

Examples
--------
>>> from pkgscope.errors.codes import ErrorCode
>>> str(ErrorCode.CYCLIC_DEPENDENCY)
'cyclic-dependency'
"""

from __future__ import annotations

from enum import StrEnum

__all__ = ["ErrorCode"]


class ErrorCode(StrEnum):
    """Stable error codes for pkgscope exceptions.

    Codes are grouped by category:

    - Entity lookups: ``UNKNOWN_PACKAGE``, ``UNKNOWN_PLATFORM``,
      ``PACKAGE_NOT_INSTALLED``
    - Planning: ``CYCLIC_DEPENDENCY``
    - Collaborators and persistence: ``COLLABORATOR_UNAVAILABLE``,
      ``SNAPSHOT_ERROR``, ``METADATA_ERROR``
    - Configuration and runtime: ``CONFIGURATION_ERROR``, ``RUNTIME_ERROR``
    """

    # Entity lookups
    UNKNOWN_PACKAGE = "unknown-package"
    UNKNOWN_PLATFORM = "unknown-platform"
    PACKAGE_NOT_INSTALLED = "package-not-installed"

    # Planning
    CYCLIC_DEPENDENCY = "cyclic-dependency"

    # Collaborators & persistence
    COLLABORATOR_UNAVAILABLE = "collaborator-unavailable"
    SNAPSHOT_ERROR = "snapshot-error"
    METADATA_ERROR = "metadata-error"

    # Configuration & runtime
    CONFIGURATION_ERROR = "configuration-error"
    RUNTIME_ERROR = "runtime-error"

    def __str__(self) -> str:
        """Return the code value as a string.

        Returns
        -------
        str
            The error code value (e.g., "unknown-package").
        """
        return self.value
