"""Platform names, detection and validation.

A platform is an OS family joined with a word size (``linux64``,
``mingw32``...). The configured set lives in
:attr:`pkgscope.settings.ReflectSettings.platforms`.
"""

from __future__ import annotations

import platform as _platform
import sys
from collections.abc import Collection

from pkgscope.cache import memoize_permanent
from pkgscope.errors import UnknownPlatformError

__all__ = [
    "COMPILED_SUFFIXES",
    "LIBRARY_FORMATS",
    "check_platform",
    "current_platform",
    "library_filename",
    "platform_family",
]

_SYSTEM_FAMILIES = {"Windows": "mingw", "Linux": "linux", "Darwin": "osx"}

LIBRARY_FORMATS = {
    "mingw": "{}.dll",
    "linux": "lib{}.so",
    "osx": "lib{}.dylib",
}

COMPILED_SUFFIXES = (".so", ".pyd")


@memoize_permanent
def current_platform() -> str:
    """Return the platform this interpreter runs on.

    Returns
    -------
    str
        OS family followed by ``32`` or ``64``.
    """
    family = _SYSTEM_FAMILIES.get(_platform.system(), _platform.system().lower())
    bits = "64" if sys.maxsize > 2**32 else "32"
    return f"{family}{bits}"


def check_platform(platform: str | None, platforms: Collection[str]) -> str:
    """Validate ``platform`` or default it to the current platform.

    Parameters
    ----------
    platform : str | None
        Platform to validate. None selects :func:`current_platform`.
    platforms : Collection[str]
        Configured platform set.

    Returns
    -------
    str
        The validated platform name.

    Raises
    ------
    UnknownPlatformError
        If ``platform`` is given and is not in ``platforms``.
    """
    if platform is None:
        return current_platform()
    if platform not in platforms:
        raise UnknownPlatformError(platform, platforms)
    return platform


def platform_family(platform: str) -> str:
    """Strip the word size: ``"mingw64"`` -> ``"mingw"``."""
    return platform.rstrip("0123456789")


def library_filename(name: str, platform: str) -> str:
    """Return the native library file name of ``name`` on ``platform``.

    Examples
    --------
    >>> library_filename("z", "linux64")
    'libz.so'
    >>> library_filename("z", "mingw32")
    'z.dll'
    """
    fmt = LIBRARY_FORMATS.get(platform_family(platform), "lib{}.so")
    return fmt.format(name)
