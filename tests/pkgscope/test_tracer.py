"""Tests for the subprocess tracer, run against real modules in a temp root."""

from __future__ import annotations

import sys
import textwrap
from pathlib import Path

import pytest

from pkgscope.errors import CollaboratorUnavailableError
from pkgscope.settings import load_settings
from pkgscope.tracer import SubprocessTracer


@pytest.fixture
def tracer(tmp_path: Path) -> SubprocessTracer:
    return SubprocessTracer(load_settings(root_dir=tmp_path, tracer_timeout_s=60))


def _write(root: Path, relpath: str, source: str) -> None:
    path = root / relpath
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(source), encoding="utf-8")


def test_records_direct_imports_only(tracer: SubprocessTracer, tmp_path: Path) -> None:
    _write(tmp_path, "leaf.py", "import textwrap\n")
    _write(tmp_path, "middle.py", "import leaf\nimport json\nimport sys\n")
    record = tracer.trace("middle", "pkg")
    assert "leaf" in record.load_deps
    assert "json" in record.load_deps
    assert "textwrap" not in record.load_deps
    assert "sys" not in record.load_deps
    assert record.load_error is None


def test_relative_and_from_imports(tracer: SubprocessTracer, tmp_path: Path) -> None:
    _write(tmp_path, "glue/__init__.py", "from . import util\n")
    _write(tmp_path, "glue/util.py", "")
    _write(tmp_path, "glue/tree.py", "from .util import *\nfrom glue import util\n")
    assert tracer.trace("glue", "glue").load_deps == {"glue.util"}
    assert tracer.trace("glue.tree", "glue").load_deps == {"glue", "glue.util"}


def test_autoloads_are_read(tracer: SubprocessTracer, tmp_path: Path) -> None:
    _write(tmp_path, "lazy.py", "__autoload__ = {'fast': 'lazy_fast'}\n")
    assert tracer.trace("lazy", "lazy").autoloads == {"fast": "lazy_fast"}


def test_load_error_is_first_line(tracer: SubprocessTracer, tmp_path: Path) -> None:
    _write(
        tmp_path,
        "broken.py",
        "import json\nraise RuntimeError('platform not supported\\nmore')\n",
    )
    record = tracer.trace("broken", "broken")
    assert record.load_error == "RuntimeError: platform not supported"


def test_missing_module_is_a_load_error(tracer: SubprocessTracer) -> None:
    record = tracer.trace("no_such_module_here", "pkg")
    assert record.load_error is not None
    assert record.load_error.startswith("ModuleNotFoundError")


def test_module_output_does_not_confuse_result(tracer: SubprocessTracer, tmp_path: Path) -> None:
    _write(tmp_path, "chatty.py", "print('{\"load_deps\": [\"fake\"]}')\nimport json\n")
    assert tracer.trace("chatty", "chatty").load_deps == {"json"}


def test_failed_native_library_is_recorded(tracer: SubprocessTracer, tmp_path: Path) -> None:
    _write(
        tmp_path,
        "native.py",
        """
        import ctypes
        try:
            ctypes.CDLL("libpkgscope_missing.so")
        except OSError:
            pass
        """,
    )
    assert tracer.trace("native", "native").native_deps == {"pkgscope_missing": False}


def test_hard_exit_is_collaborator_failure(tracer: SubprocessTracer, tmp_path: Path) -> None:
    _write(tmp_path, "killer.py", "import os\nos._exit(3)\n")
    with pytest.raises(CollaboratorUnavailableError) as excinfo:
        tracer.trace("killer", "killer")
    assert excinfo.value.context["collaborator"] == "tracer"


def test_missing_interpreter_is_collaborator_failure(tmp_path: Path) -> None:
    tracer = SubprocessTracer(
        load_settings(root_dir=tmp_path), executable=str(tmp_path / "no-python")
    )
    with pytest.raises(CollaboratorUnavailableError):
        tracer.trace("json", "python")


def test_uses_current_interpreter_by_default(tracer: SubprocessTracer) -> None:
    assert tracer.executable == sys.executable
