"""Tests for the exception hierarchy."""

from __future__ import annotations

import logging

import pytest

from pkgscope.errors import (
    CollaboratorUnavailableError,
    CyclicDependencyError,
    ErrorCode,
    MetadataError,
    PackageNotInstalledError,
    PkgScopeError,
    SettingsError,
    SnapshotError,
    UnknownPackageError,
    UnknownPlatformError,
)


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (UnknownPackageError("zlib"), ErrorCode.UNKNOWN_PACKAGE),
        (PackageNotInstalledError("zlib"), ErrorCode.PACKAGE_NOT_INSTALLED),
        (UnknownPlatformError("amiga68k"), ErrorCode.UNKNOWN_PLATFORM),
        (CyclicDependencyError({"a": ["b"]}, "linux64"), ErrorCode.CYCLIC_DEPENDENCY),
        (
            CollaboratorUnavailableError("down", collaborator="remote"),
            ErrorCode.COLLABORATOR_UNAVAILABLE,
        ),
        (SnapshotError("bad"), ErrorCode.SNAPSHOT_ERROR),
        (MetadataError("bad"), ErrorCode.METADATA_ERROR),
        (SettingsError("bad"), ErrorCode.CONFIGURATION_ERROR),
        (PkgScopeError("bad"), ErrorCode.RUNTIME_ERROR),
    ],
)
def test_codes(error: PkgScopeError, code: ErrorCode) -> None:
    assert isinstance(error, PkgScopeError)
    assert error.code is code
    assert error.to_dict()["code"] == str(code)


def test_cycle_residual_is_sorted_and_frozen() -> None:
    error = CyclicDependencyError({"b": {"a"}, "a": ["c", "b"]}, "linux64")
    assert error.residual == {"a": ("b", "c"), "b": ("a",)}
    assert error.context == {"platform": "linux64", "residual": {"a": ["b", "c"], "b": ["a"]}}
    assert error.message == "cyclic dependency among packages: a, b"


def test_unknown_platform_lists_supported() -> None:
    error = UnknownPlatformError("amiga68k", ["osx64", "linux64"])
    assert error.context["supported"] == ["linux64", "osx64"]


def test_collaborator_errors_log_as_warnings() -> None:
    error = CollaboratorUnavailableError(
        "down", collaborator="tracer", context={"module_name": "x"}
    )
    assert error.log_level == logging.WARNING
    assert error.context == {"collaborator": "tracer", "module_name": "x"}


def test_cause_and_string_form() -> None:
    cause = OSError("disk full")
    error = SnapshotError("cannot write snapshot", cause=cause)
    assert error.__cause__ is cause
    assert str(error) == "SnapshotError[snapshot-error]: cannot write snapshot (caused by: OSError)"


def test_to_dict_omits_empty_context() -> None:
    assert PkgScopeError("boom").to_dict() == {
        "code": "runtime-error",
        "title": "PkgScopeError",
        "detail": "boom",
    }
