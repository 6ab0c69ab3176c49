"""Static import scanner used for run-time dependency edges.

The scanner reports every module name a source file refers to, whether the
import runs at load time or later (inside a function, behind a flag). Names
imported only under ``if __name__ == "__main__":`` belong to the module's
self-test and are ignored. Literal ``importlib.import_module("x")`` and
``__import__("x")`` calls are reported too.

Examples
--------
>>> import ast
>>> collector = ImportCollector("pkg.mod", is_package=False)
>>> collector.visit(ast.parse("from . import sibling\\nimport json"))
>>> sorted(collector.names)
['json', 'pkg.sibling']
"""

from __future__ import annotations

import ast
import tokenize
from importlib import util as importlib_util
from pathlib import Path

from pkgscope.logging import get_logger

__all__ = ["AstImportScanner", "ImportCollector"]

logger = get_logger(__name__)

_DYNAMIC_IMPORTERS = frozenset({"import_module", "__import__"})


def _is_main_guard(test: ast.expr) -> bool:
    if not isinstance(test, ast.Compare) or len(test.comparators) != 1:
        return False
    operands = [test.left, test.comparators[0]]
    has_name = any(isinstance(node, ast.Name) and node.id == "__name__" for node in operands)
    has_main = any(
        isinstance(node, ast.Constant) and node.value == "__main__" for node in operands
    )
    return has_name and has_main and isinstance(test.ops[0], ast.Eq)


class ImportCollector(ast.NodeVisitor):
    """Collects imported module names from one module's syntax tree.

    Parameters
    ----------
    module : str
        Dotted name of the scanned module, used to resolve relative imports.
    is_package : bool
        True when the module is a package ``__init__``.
    """

    def __init__(self, module: str, *, is_package: bool) -> None:
        self.module = module
        self.anchor = module if is_package else module.rpartition(".")[0]
        self.names: set[str] = set()

    def _resolve(self, name: str) -> str | None:
        try:
            return importlib_util.resolve_name(name, self.anchor)
        except (ImportError, ValueError):
            return None

    def visit_If(self, node: ast.If) -> None:
        if _is_main_guard(node.test):
            for child in node.orelse:
                self.visit(child)
            return
        self.generic_visit(node)

    def visit_Import(self, node: ast.Import) -> None:
        self.names.update(alias.name for alias in node.names)

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        level = node.level or 0
        if level == 0:
            if node.module:
                self.names.add(node.module)
            return
        base = "." * level + (node.module or "")
        if node.module:
            resolved = self._resolve(base)
            if resolved:
                self.names.add(resolved)
            return
        for alias in node.names:
            if alias.name == "*":
                continue
            resolved = self._resolve(base + alias.name)
            if resolved:
                self.names.add(resolved)

    def visit_Call(self, node: ast.Call) -> None:
        func = node.func
        name = func.attr if isinstance(func, ast.Attribute) else getattr(func, "id", None)
        if (
            name in _DYNAMIC_IMPORTERS
            and node.args
            and isinstance(node.args[0], ast.Constant)
            and isinstance(node.args[0].value, str)
        ):
            target = node.args[0].value
            resolved = self._resolve(target) if target.startswith(".") else target
            if resolved:
                self.names.add(resolved)
        self.generic_visit(node)


class AstImportScanner:
    """Scans Python source files with :mod:`ast`.

    Compiled modules and unreadable or unparsable files yield no names.
    """

    def scan(self, module: str, path: Path) -> frozenset[str]:
        """Return module names referenced by the source at ``path``.

        Parameters
        ----------
        module : str
            Dotted name of the module.
        path : Path
            Absolute path of its source file.

        Returns
        -------
        frozenset[str]
            Referenced module names, without ``module`` itself.
        """
        if path.suffix != ".py":
            return frozenset()
        try:
            with tokenize.open(path) as handle:
                source = handle.read()
            tree = ast.parse(source, filename=str(path))
        except (OSError, SyntaxError, UnicodeDecodeError) as exc:
            logger.info(
                "Source not scanned: %s",
                exc,
                extra={"operation": "scan", "module_name": module, "path": str(path)},
            )
            return frozenset()
        collector = ImportCollector(module, is_package=path.stem == "__init__")
        collector.visit(tree)
        collector.names.discard(module)
        return frozenset(collector.names)
