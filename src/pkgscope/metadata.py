"""Declared package metadata.

Two files describe a package:

* ``csrc/<package>/WHAT`` describes bundled native sources. Its first line is
  ``<realname> <version> from <url> (<license>)``; its optional second line
  is ``requires: <pkg>, <pkg> (<platform> <platform>), ...`` and lists binary
  dependencies, optionally restricted to some platforms.
* ``<package>.md`` may start with a YAML front matter block. Its ``platforms``
  key (a list or a comma-separated string, OS family names allowed) declares
  supported platforms and its ``license`` key overrides the WHAT license.

Examples
--------
>>> meta = parse_what_text("zlib 1.2.11 from http://zlib.net (ZLIB license)", ("linux64",))
>>> meta.realname, meta.version, meta.license
('zlib', '1.2.11', 'ZLIB')
"""

from __future__ import annotations

import re
from collections.abc import Collection, Iterable, Mapping
from pathlib import Path

import yaml

from pkgscope.errors import MetadataError
from pkgscope.logging import get_logger
from pkgscope.models import PackageMeta
from pkgscope.settings import ReflectSettings

__all__ = ["FileMetadataReader", "expand_platforms", "parse_front_matter", "parse_what_text"]

logger = get_logger(__name__)

_WHAT_HEADER_RE = re.compile(r"^\s*(.+?)\s+(\S+)\s+from\s+(\S+)\s+\((.*)\)")
_LICENSE_SUFFIX_RE = re.compile(r"^(.*?)\s+license$", re.IGNORECASE)
_PUBLIC_DOMAIN_RE = re.compile(r"^public domain$", re.IGNORECASE)
_RESTRICTED_DEP_RE = re.compile(r"^([^(]+?)\s*\(\s*([^)]+?)\s*\)$")


def _normalize_license(text: str) -> str:
    text = text.strip()
    match = _LICENSE_SUFFIX_RE.match(text)
    if match:
        text = match.group(1)
    return "PD" if _PUBLIC_DOMAIN_RE.match(text) else text


def parse_what_text(text: str, platforms: Collection[str]) -> PackageMeta:
    """Parse the contents of a WHAT file.

    Parameters
    ----------
    text : str
        File contents.
    platforms : Collection[str]
        Configured platforms; an unrestricted dependency applies to all.

    Returns
    -------
    PackageMeta
        Upstream identity, license and binary dependencies.

    Raises
    ------
    MetadataError
        If the first line does not have the expected shape.
    """
    lines = text.splitlines()
    match = _WHAT_HEADER_RE.match(lines[0]) if lines else None
    if match is None:
        msg = "invalid WHAT header"
        raise MetadataError(msg, context={"line": lines[0] if lines else ""})
    realname, version, url, license_text = match.groups()

    deps: dict[str, set[str]] = {}
    if len(lines) > 1 and ":" in lines[1]:
        for item in lines[1].split(":", 1)[1].split(","):
            item = item.strip()
            if not item:
                continue
            restricted = _RESTRICTED_DEP_RE.match(item)
            if restricted:
                name = restricted.group(1).strip()
                targets: Iterable[str] = restricted.group(2).split()
            else:
                name, targets = item, platforms
            for platform in targets:
                deps.setdefault(platform, set()).add(name)

    return PackageMeta(
        binary_deps={platform: frozenset(names) for platform, names in deps.items()},
        license=_normalize_license(license_text),
        version=version,
        url=url,
        realname=realname,
    )


def parse_front_matter(text: str) -> dict[str, object]:
    """Return the YAML front matter of a markdown document (empty if absent).

    Raises
    ------
    MetadataError
        If the front matter is not a YAML mapping.
    """
    lines = text.splitlines()
    if not lines or not lines[0].startswith("---"):
        return {}
    body: list[str] = []
    for line in lines[1:]:
        if line.startswith("---"):
            break
        body.append(line)
    try:
        data = yaml.safe_load("\n".join(body))
    except yaml.YAMLError as exc:
        msg = f"invalid front matter: {exc}"
        raise MetadataError(msg, cause=exc) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = "front matter is not a mapping"
        raise MetadataError(msg, context={"type": type(data).__name__})
    return {str(key): value for key, value in data.items()}


def expand_platforms(
    value: object, platforms: Collection[str], os_platforms: Mapping[str, Iterable[str]]
) -> frozenset[str]:
    """Expand a declared ``platforms`` value into configured platform names.

    Examples
    --------
    >>> sorted(expand_platforms("linux, osx64", ["linux64", "osx64"], {"linux": ["linux64"]}))
    ['linux64', 'osx64']
    """
    if isinstance(value, str):
        names = [name.strip() for name in value.split(",")]
    elif isinstance(value, list | tuple):
        names = [str(name).strip() for name in value]
    else:
        return frozenset()
    found: set[str] = set()
    for name in names:
        if name in os_platforms:
            found.update(p for p in os_platforms[name] if p in platforms)
        elif name in platforms:
            found.add(name)
        elif name:
            logger.debug(
                "Ignoring undeclared platform name",
                extra={"operation": "metadata", "platform": name},
            )
    return frozenset(found)


class FileMetadataReader:
    """Reads WHAT files and markdown front matter under the installation root.

    Parameters
    ----------
    settings : ReflectSettings
        Installation settings.
    """

    def __init__(self, settings: ReflectSettings) -> None:
        self.settings = settings

    def _read_text(self, path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            msg = f"cannot read {path}: {exc}"
            raise MetadataError(msg, cause=exc, context={"path": str(path)}) from exc

    def read(self, package: str) -> PackageMeta:
        """Return the metadata of ``package``.

        Parameters
        ----------
        package : str
            Package name.

        Returns
        -------
        PackageMeta
            Declared metadata; empty when neither file exists.

        Raises
        ------
        MetadataError
            If a file exists but is malformed.
        """
        root = self.settings.root_dir
        meta = PackageMeta()
        what = self._read_text(root / "csrc" / package / "WHAT")
        if what is not None:
            try:
                meta = parse_what_text(what, self.settings.platforms)
            except MetadataError as exc:
                exc.context["package"] = package
                raise

        doc = self._read_text(root / f"{package}.md")
        if doc is None:
            return meta
        try:
            tags = parse_front_matter(doc)
        except MetadataError as exc:
            exc.context["package"] = package
            raise
        declared = expand_platforms(
            tags.get("platforms"), self.settings.platforms, self.settings.os_platforms
        )
        license_tag = tags.get("license")
        return PackageMeta(
            binary_deps=meta.binary_deps,
            platforms=declared,
            license=str(license_tag) if license_tag else meta.license,
            version=meta.version,
            url=meta.url,
            realname=meta.realname,
        )
