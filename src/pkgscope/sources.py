"""Package enumeration and history queries for a multi-git installation.

Every package is a git repository whose git dir lives in
``<root>/.mgit/<package>/.git`` while its work tree is the shared root. A
package is *known* when ``.mgit/<package>.origin`` exists and *installed*
when its git dir exists. Tracked files come from ``git ls-files``; versions,
tags and the origin URL come from ``git describe``, ``git log`` and
``git config``.
"""

from __future__ import annotations

import re

import git
import git.exc

from pkgscope.errors import CollaboratorUnavailableError
from pkgscope.logging import get_logger
from pkgscope.settings import ReflectSettings

__all__ = ["MultiGitSource"]

logger = get_logger(__name__)

_ORIGIN_SUFFIX = ".origin"
_TAG_DECORATION = re.compile(r"tag: ([^),]+)")
# ``git config --get`` exits with 1 when the key is not set.
_CONFIG_KEY_MISSING = 1


class MultiGitSource:
    """Reads packages, tracked files and history through GitPython.

    Parameters
    ----------
    settings : ReflectSettings
        Installation settings.
    """

    def __init__(self, settings: ReflectSettings) -> None:
        self.settings = settings
        self._git = git.Git(str(settings.root_dir))

    def known_packages(self) -> list[str]:
        """Return packages with an origin file."""
        mgit = self.settings.mgit_path
        if not mgit.is_dir():
            return []
        return sorted(
            path.name[: -len(_ORIGIN_SUFFIX)]
            for path in mgit.iterdir()
            if path.name.endswith(_ORIGIN_SUFFIX) and path.is_file()
        )

    def installed_packages(self) -> list[str]:
        """Return packages whose git dir is present."""
        mgit = self.settings.mgit_path
        if not mgit.is_dir():
            return []
        return sorted(path.name for path in mgit.iterdir() if (path / ".git").is_dir())

    def _run(self, package: str, *args: str) -> str:
        git_dir = self.settings.mgit_path / package / ".git"
        command = ["git", f"--git-dir={git_dir}", f"--work-tree={self.settings.root_dir}"]
        return str(self._git.execute([*command, *args]))

    @staticmethod
    def _unavailable(
        package: str, operation: str, action: str, exc: git.exc.CommandError
    ) -> CollaboratorUnavailableError:
        logger.warning(
            "git command failed",
            extra={"operation": operation, "package": package, "status": "error"},
        )
        detail = exc.stderr.strip() if exc.stderr else exc
        return CollaboratorUnavailableError(
            f"cannot {action} of {package!r}: {detail}",
            collaborator="git",
            cause=exc,
            context={"package": package},
        )

    def tracked_files(self, package: str) -> list[str]:
        """Return the files tracked by ``package``.

        Parameters
        ----------
        package : str
            Installed package name.

        Returns
        -------
        list[str]
            POSIX paths relative to the root.

        Raises
        ------
        CollaboratorUnavailableError
            If git cannot list the files.
        """
        try:
            output = self._run(package, "ls-files")
        except git.exc.CommandError as exc:
            raise self._unavailable(package, "tracked_files", "list files", exc) from exc
        return [line for line in output.splitlines() if line]

    def has_build_dir(self, package: str) -> bool:
        """Return True when ``csrc/<package>`` exists."""
        return (self.settings.root_dir / "csrc" / package).is_dir()

    def version(self, package: str) -> str:
        """Return ``git describe --tags --long --always`` of ``package``.

        Raises
        ------
        CollaboratorUnavailableError
            If git cannot describe the package (e.g. it has no commits).
        """
        try:
            return self._run(package, "describe", "--tags", "--long", "--always")
        except git.exc.CommandError as exc:
            raise self._unavailable(package, "version", "describe the version", exc) from exc

    def tags(self, package: str) -> list[str]:
        """Return the tags of ``package``, oldest first.

        Raises
        ------
        CollaboratorUnavailableError
            If git cannot read the history.
        """
        try:
            output = self._run(
                package, "log", "--tags", "--simplify-by-decoration", "--pretty=%d"
            )
        except git.exc.CommandError as exc:
            raise self._unavailable(package, "tags", "list the tags", exc) from exc
        tags = [tag for line in output.splitlines() for tag in _TAG_DECORATION.findall(line)]
        tags.reverse()
        return tags

    def current_tag(self, package: str) -> str | None:
        """Return the most recent tag reachable from HEAD, or None when untagged.

        Raises
        ------
        CollaboratorUnavailableError
            If git cannot read the history.
        """
        if not self.tags(package):
            return None
        try:
            return self._run(package, "describe", "--tags", "--abbrev=0")
        except git.exc.CommandError as exc:
            raise self._unavailable(package, "current_tag", "describe the tag", exc) from exc

    def origin_url(self, package: str) -> str | None:
        """Return the ``origin`` remote URL of ``package``, or None when unset.

        Raises
        ------
        CollaboratorUnavailableError
            If git fails for another reason than the key being unset.
        """
        try:
            return self._run(package, "config", "--get", "remote.origin.url")
        except git.exc.GitCommandError as exc:
            if exc.status == _CONFIG_KEY_MISSING:
                return None
            raise self._unavailable(package, "origin_url", "read the origin", exc) from exc
        except git.exc.CommandError as exc:
            raise self._unavailable(package, "origin_url", "read the origin", exc) from exc
