"""Module tracer that loads each module in a fresh interpreter.

The child interpreter runs a small bootstrap that wraps ``builtins.__import__``
and ``ctypes.CDLL`` before importing the target module:

* an import statement executed by the target module itself is a load-time
  dependency (imports made by its dependencies belong to them);
* every native library opened while the module loads is a native dependency,
  together with whether opening it succeeded;
* a module-level ``__autoload__`` mapping (attribute name -> module name)
  declares lazily imported modules.

The child prints a marker line followed by the JSON record, so output written
by the traced module cannot be mistaken for the result.
"""

from __future__ import annotations

import os
import subprocess
import sys
import uuid

import msgspec

from pkgscope.errors import CollaboratorUnavailableError
from pkgscope.logging import get_logger
from pkgscope.models import TrackingRecord
from pkgscope.platforms import current_platform, platform_family
from pkgscope.settings import ReflectSettings

__all__ = ["BOOTSTRAP", "SubprocessTracer"]

logger = get_logger(__name__)

BOOTSTRAP = r"""
import builtins
import ctypes
import importlib
import json
import os
import re
import sys

target, marker = sys.argv[1], sys.argv[2]
skip = set(sys.builtin_module_names) | {target}
load_deps = set()
native_deps = {}
_import = builtins.__import__


def _record(name, fromlist):
    if name not in skip:
        load_deps.add(name)
    for item in fromlist or ():
        sub = name + "." + item
        if item != "*" and sub in sys.modules and sub not in skip:
            load_deps.add(sub)


def tracking_import(name, globals=None, locals=None, fromlist=(), level=0):
    module = _import(name, globals, locals, fromlist, level)
    importer = (globals or {}).get("__name__")
    if importer == target:
        if level:
            anchor = (globals or {}).get("__package__") or ""
            base = anchor.rsplit(".", level - 1)[0] if level > 1 else anchor
            name = base + "." + name if name else base
        _record(name, fromlist)
    return module


_cdll_init = ctypes.CDLL.__init__


def tracking_cdll_init(self, name, *args, **kwargs):
    library = re.sub(r"^lib", "", os.path.basename(str(name)))
    library = re.split(r"\.(?:so|dll|dylib)", library)[0]
    try:
        _cdll_init(self, name, *args, **kwargs)
    except OSError:
        native_deps[library] = False
        raise
    native_deps[library] = True


builtins.__import__ = tracking_import
ctypes.CDLL.__init__ = tracking_cdll_init
error = None
autoloads = {}
try:
    loaded = importlib.import_module(target)
except (Exception, SystemExit) as exc:
    text = (type(exc).__name__ + ": " + str(exc)).strip()
    error = text.splitlines()[0] if text else type(exc).__name__
else:
    declared = getattr(loaded, "__autoload__", None)
    if isinstance(declared, dict):
        autoloads = {str(k): str(v) for k, v in declared.items()}
finally:
    builtins.__import__ = _import
    ctypes.CDLL.__init__ = _cdll_init

sys.stdout.write("\n" + marker + "\n")
sys.stdout.write(json.dumps({
    "load_deps": sorted(load_deps),
    "native_deps": native_deps,
    "autoloads": autoloads,
    "load_error": error,
}))
sys.stdout.flush()
"""

_LIBRARY_PATH_VARS = {"mingw": "PATH", "osx": "DYLD_LIBRARY_PATH"}

_decoder = msgspec.json.Decoder(TrackingRecord)


class SubprocessTracer:
    """Traces modules of the current platform in child interpreters.

    Parameters
    ----------
    settings : ReflectSettings
        Installation settings (root directory and trace timeout).
    executable : str | None, optional
        Interpreter to run. Defaults to ``sys.executable``.
    """

    def __init__(self, settings: ReflectSettings, executable: str | None = None) -> None:
        self.settings = settings
        self.executable = executable or sys.executable

    def _environment(self) -> dict[str, str]:
        root = self.settings.root_dir
        platform = current_platform()
        bin_dir = root / "bin" / platform
        env = dict(os.environ)
        paths = [str(root), str(bin_dir / "py"), str(bin_dir / "ext")]
        if env.get("PYTHONPATH"):
            paths.append(env["PYTHONPATH"])
        env["PYTHONPATH"] = os.pathsep.join(paths)
        var = _LIBRARY_PATH_VARS.get(platform_family(platform), "LD_LIBRARY_PATH")
        env[var] = os.pathsep.join(filter(None, [str(bin_dir), env.get(var)]))
        return env

    def trace(self, module: str, package: str) -> TrackingRecord:
        """Load ``module`` in a child interpreter and return what it pulled in.

        Parameters
        ----------
        module : str
            Module to load.
        package : str
            Owning package, reported in logs and errors.

        Returns
        -------
        TrackingRecord
            Observed dependencies, or the first line of the load error.

        Raises
        ------
        CollaboratorUnavailableError
            If the child interpreter cannot run, times out, crashes or prints
            no result.
        """
        marker = f"--pkgscope-{uuid.uuid4().hex}--"
        context = {"module_name": module, "package": package}
        try:
            completed = subprocess.run(  # noqa: S603
                [self.executable, "-c", BOOTSTRAP, module, marker],
                capture_output=True,
                text=True,
                check=False,
                cwd=self.settings.root_dir,
                env=self._environment(),
                timeout=self.settings.tracer_timeout_s,
            )
        except subprocess.TimeoutExpired as exc:
            msg = f"tracing {module!r} timed out after {self.settings.tracer_timeout_s}s"
            raise CollaboratorUnavailableError(
                msg, collaborator="tracer", cause=exc, context=context
            ) from exc
        except OSError as exc:
            msg = f"cannot start tracer for {module!r}: {exc}"
            raise CollaboratorUnavailableError(
                msg, collaborator="tracer", cause=exc, context=context
            ) from exc

        _, found, payload = completed.stdout.rpartition(marker + "\n")
        if completed.returncode != 0 or not found:
            stderr = completed.stderr.strip().splitlines()
            msg = f"tracer exited with status {completed.returncode} for {module!r}"
            raise CollaboratorUnavailableError(
                msg,
                collaborator="tracer",
                context={**context, "stderr": stderr[-1] if stderr else ""},
            )
        try:
            record = _decoder.decode(payload)
        except msgspec.DecodeError as exc:
            msg = f"malformed tracer output for {module!r}"
            raise CollaboratorUnavailableError(
                msg, collaborator="tracer", cause=exc, context=context
            ) from exc
        logger.debug(
            "Module traced",
            extra={
                "operation": "trace",
                "package": package,
                "module_name": module,
                "load_deps": len(record.load_deps),
            },
        )
        return record
