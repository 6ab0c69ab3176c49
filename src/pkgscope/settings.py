"""Runtime settings with typed configuration and fail-fast validation.

:class:`ReflectSettings` is a ``pydantic_settings.BaseSettings`` model read
from ``PKGSCOPE_*`` environment variables (nested fields use ``__``). Invalid
values raise :class:`~pkgscope.errors.SettingsError` instead of a raw pydantic
``ValidationError``.

Examples
--------
>>> from pkgscope.settings import load_settings
>>> settings = load_settings(root_dir="/opt/tree", auto_update_db=False)
>>> settings.platforms[0]
'mingw32'
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Self

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pkgscope.errors import SettingsError
from pkgscope.logging import get_logger

__all__ = ["DEFAULT_OS_PLATFORMS", "DEFAULT_PLATFORMS", "ReflectSettings", "load_settings"]

logger = get_logger(__name__)

DEFAULT_PLATFORMS: tuple[str, ...] = (
    "mingw32",
    "mingw64",
    "linux32",
    "linux64",
    "osx32",
    "osx64",
)

DEFAULT_OS_PLATFORMS: dict[str, tuple[str, ...]] = {
    "mingw": ("mingw32", "mingw64"),
    "linux": ("linux32", "linux64"),
    "osx": ("osx32", "osx64"),
}


def _default_runtime_modules() -> frozenset[str]:
    return frozenset(sys.stdlib_module_names) - frozenset(sys.builtin_module_names)


class ReflectSettings(BaseSettings):
    """Configuration of one installation tree (``PKGSCOPE_*`` namespace)."""

    model_config = SettingsConfigDict(
        env_prefix="PKGSCOPE_",
        env_nested_delimiter="__",
        extra="forbid",
        case_sensitive=False,
    )

    root_dir: Path = Field(
        default_factory=Path.cwd, description="Installation root shared by all packages"
    )
    mgit_dir: str = Field(
        default=".mgit", description="Directory holding package git dirs, relative to root"
    )
    platforms: tuple[str, ...] = Field(
        default=DEFAULT_PLATFORMS, description="Supported platform names"
    )
    os_platforms: dict[str, tuple[str, ...]] = Field(
        default_factory=lambda: dict(DEFAULT_OS_PLATFORMS),
        description="OS family name -> platforms, used to expand declared platforms",
    )
    servers: dict[str, tuple[str, int]] = Field(
        default_factory=dict,
        description="Platform -> (host, port) of the server that acquires its records",
    )
    auto_update_db: bool = Field(
        default=True, description="Acquire missing tracking records on demand"
    )
    allow_update_db_locally: bool = Field(
        default=True, description="Trace modules in-process for the current platform"
    )
    default_license: str = Field(default="PD", description="License of undeclared packages")
    snapshot_name: str = Field(
        default="pkgscope_db.json", description="Snapshot file name, relative to root"
    )
    runtime_package: str = Field(
        default="python", description="Package that provides the interpreter runtime"
    )
    builtin_modules: frozenset[str] = Field(
        default_factory=lambda: frozenset(sys.builtin_module_names),
        description="Modules compiled into the interpreter; owned by no package",
    )
    runtime_modules: frozenset[str] = Field(
        default_factory=_default_runtime_modules,
        description="Modules shipped with the runtime package",
    )
    dynamic_link_families: frozenset[str] = Field(
        default=frozenset({"mingw"}),
        description="OS families where compiled modules link against the runtime package",
    )
    tracer_timeout_s: float = Field(default=30.0, gt=0, description="Per-module trace timeout")
    remote_timeout_s: float = Field(default=600.0, gt=0, description="Remote routine timeout")
    remote_retries: int = Field(default=3, ge=1, description="Attempts per remote call")
    log_level: str = Field(
        default="WARNING", description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    @field_validator("platforms")
    @classmethod
    def _non_empty_platforms(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            msg = "at least one platform is required"
            raise ValueError(msg)
        return value

    @model_validator(mode="after")
    def _servers_for_known_platforms(self) -> Self:
        unknown = sorted(set(self.servers) - set(self.platforms))
        if unknown:
            msg = f"servers configured for unknown platforms: {', '.join(unknown)}"
            raise ValueError(msg)
        return self

    def __init__(self, **overrides: object) -> None:
        """Initialise settings with fail-fast validation."""
        try:
            super().__init__(**overrides)  # type: ignore[arg-type]
        except ValidationError as exc:
            msg = f"Configuration validation failed: {exc}"
            logger.exception(
                "Settings validation failed",
                extra={"operation": "settings", "error_type": type(exc).__name__},
            )
            raise SettingsError(
                msg, cause=exc, context={"validation_error": str(exc)}
            ) from exc

    @property
    def mgit_path(self) -> Path:
        """Absolute path of the directory holding package git dirs."""
        return self.root_dir / self.mgit_dir

    @property
    def snapshot_path(self) -> Path:
        """Absolute path of the tracking snapshot."""
        return self.root_dir / self.snapshot_name


def load_settings(**overrides: object) -> ReflectSettings:
    """Load :class:`ReflectSettings` with optional overrides.

    Parameters
    ----------
    **overrides : object
        Field values that take precedence over the environment.

    Returns
    -------
    ReflectSettings
        Validated settings.
    """
    return ReflectSettings(**overrides)
