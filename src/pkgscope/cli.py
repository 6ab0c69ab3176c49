"""Command-line interface over :class:`~pkgscope.engine.Reflector`.

Every command builds a fresh engine from ``PKGSCOPE_*`` settings (``--root``
overrides the installation root). Errors are printed as
``error[<code>]: <message>`` and exit with status 1.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, NoReturn

import typer
import uvicorn

from pkgscope.engine import Reflector
from pkgscope.errors import PkgScopeError
from pkgscope.logging import setup_logging
from pkgscope.models import DependencyNode
from pkgscope.server import create_app
from pkgscope.settings import ReflectSettings, load_settings

__all__ = ["app"]

app = typer.Typer(
    help="Dependency reflection and build ordering for a package installation.",
    no_args_is_help=True,
    add_completion=False,
)

_build_reflector: Callable[[ReflectSettings], Reflector] = Reflector.from_settings

_PlatformOption = Annotated[
    str | None, typer.Option("--platform", "-p", help="Target platform (default: current)")
]
_PackageOption = Annotated[
    str | None, typer.Option("--package", help="Owning package (default: resolved)")
]
_AlltimeOption = Annotated[
    bool, typer.Option("--alltime", help="Include run-time and auto-loaded edges")
]
_AllOption = Annotated[bool, typer.Option("--all", help="Transitive closure")]


@app.callback()
def main(
    ctx: typer.Context,
    root: Annotated[
        Path | None, typer.Option("--root", help="Installation root (default: PKGSCOPE_ROOT_DIR)")
    ] = None,
) -> None:
    """Configure settings and logging for the invoked command."""
    overrides: dict[str, object] = {} if root is None else {"root_dir": root}
    try:
        settings = load_settings(**overrides)
    except PkgScopeError as exc:
        _fail(exc)
    setup_logging(settings.log_level)
    ctx.obj = settings


def _fail(error: PkgScopeError) -> NoReturn:
    typer.echo(f"error[{error.code.value}]: {error.message}", err=True)
    if error.context:
        typer.echo(json.dumps(error.context, sort_keys=True, default=str), err=True)
    raise typer.Exit(code=1) from error


@contextmanager
def _engine(ctx: typer.Context) -> Iterator[Reflector]:
    try:
        yield _build_reflector(ctx.obj)
    except PkgScopeError as exc:
        _fail(exc)


def _echo_names(names: Iterable[str]) -> None:
    for name in sorted(names):
        typer.echo(name)


def _echo_tree(root: DependencyNode) -> None:
    typer.echo(root.name)
    for node, depth in root.walk():
        suffix = " (cycle)" if node.cycle else ""
        typer.echo(f"{'  ' * (depth + 1)}{node.name}{suffix}")


@app.command("build-order")
def build_order(
    ctx: typer.Context,
    packages: Annotated[
        list[str] | None, typer.Argument(help="Packages to build (default: all installed)")
    ] = None,
    platform: _PlatformOption = None,
) -> None:
    """Print packages in an order where binary dependencies come first."""
    with _engine(ctx) as reflector:
        for package in reflector.build_order(packages or None, platform):
            typer.echo(package)


@app.command("deps")
def deps(
    ctx: typer.Context,
    module: Annotated[str, typer.Argument(help="Module name")],
    package: _PackageOption = None,
    platform: _PlatformOption = None,
    alltime: _AlltimeOption = False,
    transitive: _AllOption = False,
    tree: Annotated[bool, typer.Option("--tree", help="Print the dependency tree")] = False,
    kinds: Annotated[
        bool, typer.Option("--kinds", help="Print direct all-time deps with their edge kind")
    ] = False,
    native: Annotated[
        bool, typer.Option("--native", help="Print the native libraries MODULE loads")
    ] = False,
) -> None:
    """Print the modules MODULE depends on."""
    with _engine(ctx) as reflector:
        if native:
            for library, loaded in sorted(
                reflector.native_deps(module, package, platform).items()
            ):
                owner = reflector.catalog.native_library_package(
                    library, reflector.graph.owner(module, package), platform
                )
                state = "loaded" if loaded else "failed"
                typer.echo(f"{library}\t{state}\t{owner or ''}")
            return
        if kinds:
            for name, kind in reflector.dependency_kinds(module, package, platform).items():
                typer.echo(f"{name}\t{kind}")
            return
        if tree:
            _echo_tree(reflector.dependency_tree(module, package, platform, alltime=alltime))
            return
        _echo_names(
            reflector.dependencies(
                module, package, platform, alltime=alltime, transitive=transitive
            )
        )


@app.command("rdeps")
def rdeps(
    ctx: typer.Context,
    module: Annotated[str, typer.Argument(help="Module name")],
    package: Annotated[
        str | None, typer.Option("--exclude", help="Package to skip (default: owner)")
    ] = None,
    platform: _PlatformOption = None,
    alltime: _AlltimeOption = False,
    transitive: _AllOption = False,
) -> None:
    """Print the installed modules that depend on MODULE, with their packages."""
    with _engine(ctx) as reflector:
        found = reflector.dependents(
            module, package, platform, alltime=alltime, transitive=transitive
        )
        owners = {
            name: reflector.catalog.module_package(name) or "" for name in found.modules
        }
        for name in sorted(found.modules):
            typer.echo(f"{name}\t{owners[name]}")


@app.command("bin-deps")
def bin_deps(
    ctx: typer.Context,
    package: Annotated[str, typer.Argument(help="Package name")],
    platform: _PlatformOption = None,
    transitive: _AllOption = False,
    reverse: Annotated[
        bool, typer.Option("--reverse", help="Packages that depend on PACKAGE instead")
    ] = False,
) -> None:
    """Print the binary dependencies of PACKAGE."""
    with _engine(ctx) as reflector:
        query = reflector.rev_bin_deps if reverse else reflector.bin_deps
        _echo_names(query(package, platform, transitive=transitive))


@app.command("load-errors")
def load_errors(
    ctx: typer.Context,
    package: Annotated[str, typer.Argument(help="Package name")],
    platform: _PlatformOption = None,
) -> None:
    """Print modules of PACKAGE that fail to load, with the error."""
    with _engine(ctx) as reflector:
        for module, error in sorted(reflector.load_errors(package, platform).items()):
            typer.echo(f"{module}\t{error}")


@app.command("info")
def info(
    ctx: typer.Context,
    package: Annotated[str, typer.Argument(help="Package name")],
) -> None:
    """Print the type, license, platforms and history of PACKAGE as JSON."""
    with _engine(ctx) as reflector:
        reflector.catalog.check_package(package)
        meta = reflector.catalog.metadata(package)
        payload = {
            "package": package,
            "type": reflector.package_type(package),
            "license": reflector.license(package),
            "platforms": sorted(reflector.catalog.platforms(package)),
            "build_platforms": sorted(reflector.catalog.build_platforms(package)),
            "modules": sorted(reflector.catalog.modules(package)),
            "requires": dict(reflector.package_edges(package)),
            "version": reflector.version(package),
            "tag": reflector.current_tag(package),
            "tags": list(reflector.tags(package)),
            "origin_url": reflector.origin_url(package),
            "upstream": {"name": meta.realname, "version": meta.version, "url": meta.url},
        }
        typer.echo(json.dumps(payload, indent=2))


@app.command("modules")
def modules(
    ctx: typer.Context,
    package: Annotated[str, typer.Argument(help="Package name")],
) -> None:
    """Print the modules of PACKAGE as a tree of naming-convention parents."""
    with _engine(ctx) as reflector:
        _echo_tree(reflector.module_tree(package))


@app.command("check")
def check(ctx: typer.Context) -> None:
    """Report packages without their own document and documents shipped twice."""
    with _engine(ctx) as reflector:
        undocumented = reflector.undocumented_packages()
        duplicates = reflector.duplicate_docs()
        for package in sorted(undocumented):
            typer.echo(f"undocumented: {package}")
        for name, packages in duplicates.items():
            typer.echo(f"duplicate doc: {name}: {', '.join(packages)}")
    if undocumented or duplicates:
        raise typer.Exit(code=1)


@app.command("status")
def status(
    ctx: typer.Context,
    platform: Annotated[
        str | None, typer.Option("--platform", "-p", help="Only this platform's server")
    ] = None,
) -> None:
    """Print the status of the configured servers as JSON."""
    with _engine(ctx) as reflector:
        statuses = reflector.server_status(platform)
    typer.echo(json.dumps(statuses, indent=2, sort_keys=True))
    if any("error" in entry for entry in statuses.values()):
        raise typer.Exit(code=1)


@app.command("update-db")
def update_db(
    ctx: typer.Context,
    package: Annotated[str | None, typer.Argument(help="Package (default: all)")] = None,
    platform: _PlatformOption = None,
) -> None:
    """Acquire tracking records and save the snapshot."""
    with _engine(ctx) as reflector:
        report = reflector.update_db(package, platform)
        reflector.save_db()
        for name, packages in sorted(report.merged.items()):
            typer.echo(f"{name}: merged {len(packages)} package(s)")
        for name in report.skipped:
            typer.echo(f"{name}: skipped")
        for name, error in sorted(report.failed.items()):
            typer.echo(f"{name}: failed: {error}", err=True)
    if not report.ok:
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    ctx: typer.Context,
    host: Annotated[str, typer.Option(help="Interface to bind")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port to bind")] = 8087,
) -> None:
    """Serve engine routines over HTTP for remote callers."""
    with _engine(ctx) as reflector:
        typer.echo(f"Serving {reflector.settings.root_dir} on {host}:{port}")
        uvicorn.run(create_app(reflector), host=host, port=port)
