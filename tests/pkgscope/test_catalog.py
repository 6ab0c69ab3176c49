"""Tests for the package catalog."""

from __future__ import annotations

import pytest

from pkgscope.errors import PackageNotInstalledError, UnknownPackageError, UnknownPlatformError
from pkgscope.models import BUILTIN_PATH, ModuleKind, PackageMeta
from pkgscope.platforms import library_filename
from tests.helpers import CURRENT, OTHER, HarnessFactory, build_script


@pytest.fixture
def harness(make_harness: HarnessFactory):
    return make_harness(
        {
            "glue": ["glue.py", "glue_test.py", "glue.md"],
            "bitmap": [
                "bitmap.py",
                "bitmap_rgbaf.py",
                "bitmap_demo.py",
                f"bin/{CURRENT}/ext/bitmap_fast.so",
                f"bin/{OTHER}/py/bitmap_simd.py",
            ],
            "zlib": [
                "zlib.py",
                build_script("zlib"),
                build_script("zlib", OTHER),
                f"bin/{CURRENT}/{library_filename('z', CURRENT)}",
                "csrc/zlib/WHAT",
            ],
        },
        known={"ghost"},
        build_dirs={"zlib"},
        metas={
            "zlib": PackageMeta(
                binary_deps={CURRENT: frozenset({"glue"})},
                platforms=frozenset({"mingw32"}),
                license="ZLIB",
            )
        },
    )


class TestPackages:
    def test_known_includes_installed(self, harness) -> None:
        catalog = harness.reflector.catalog
        assert catalog.installed_packages() == {"glue", "bitmap", "zlib"}
        assert catalog.known_packages() == {"glue", "bitmap", "zlib", "ghost"}
        assert catalog.not_installed_packages() == {"ghost"}

    def test_check_package(self, harness) -> None:
        catalog = harness.reflector.catalog
        assert catalog.check_package("glue") == "glue"
        with pytest.raises(UnknownPackageError):
            catalog.check_package("nosuch")
        with pytest.raises(PackageNotInstalledError):
            catalog.check_package("ghost")

    def test_tracked_files_validates_package(self, harness) -> None:
        with pytest.raises(PackageNotInstalledError):
            harness.reflector.catalog.tracked_files("ghost")

    def test_check_platform(self, harness) -> None:
        catalog = harness.reflector.catalog
        assert catalog.check_platform(None) == CURRENT
        with pytest.raises(UnknownPlatformError) as excinfo:
            catalog.check_platform("amiga68k")
        assert excinfo.value.context["platform"] == "amiga68k"


class TestModules:
    def test_modules_and_scripts_are_split(self, harness) -> None:
        catalog = harness.reflector.catalog
        assert set(catalog.modules("glue")) == {"glue"}
        assert set(catalog.scripts("glue")) == {"glue_test"}
        assert set(catalog.modules("bitmap")) == {"bitmap", "bitmap_rgbaf", "bitmap_fast"}
        assert set(catalog.scripts("bitmap")) == {"bitmap_demo"}

    def test_other_platform_modules_are_hidden(self, harness) -> None:
        assert "bitmap_simd" not in harness.reflector.catalog.modules("bitmap")

    def test_module_package_fast_and_slow_paths(self, harness) -> None:
        catalog = harness.reflector.catalog
        assert catalog.module_package("glue") == "glue"
        assert catalog.module_package("bitmap_rgbaf") == "bitmap"
        assert catalog.module_package("bitmap_fast") == "bitmap"
        assert catalog.module_package("nosuch") is None

    def test_module_package_runtime_and_builtin(self, harness) -> None:
        catalog = harness.reflector.catalog
        assert catalog.module_package("json") == "python"
        assert catalog.module_package("sys") is None

    def test_module_kind_and_tags(self, harness) -> None:
        catalog = harness.reflector.catalog
        assert catalog.module_kind("bitmap", "bitmap_fast") == ModuleKind.COMPILED
        assert catalog.module_kind("bitmap", "bitmap") == ModuleKind.SOURCE
        assert catalog.module_kind("bitmap", "bitmap_demo") == ModuleKind.SCRIPT
        assert catalog.module_kind("bitmap", "nosuch") is None
        tags = catalog.module_tags("bitmap", "bitmap")
        assert tags["demo_module"] == "bitmap_demo"
        assert tags["test_module"] is None

    def test_file_types(self, harness) -> None:
        types = harness.reflector.catalog.file_types("glue")
        assert types == {"glue.py": "module", "glue_test.py": "script", "glue.md": "doc"}

    def test_runtime_package_lists_builtin_modules(self, make_harness: HarnessFactory) -> None:
        harness = make_harness({"python": ["python_extras.py"]})
        modules = harness.reflector.catalog.modules("python")
        assert modules["json"] == BUILTIN_PATH
        assert modules["sys"] == BUILTIN_PATH
        assert modules["python_extras"] == "python_extras.py"
        assert harness.reflector.catalog.module_kind("python", "os") == ModuleKind.BUILTIN

    def test_native_library_package(self, harness) -> None:
        catalog = harness.reflector.catalog
        assert catalog.native_library_package("z") == "zlib"
        assert catalog.native_library_package("png") is None


class TestPlatformsAndMetadata:
    def test_build_platforms_from_scripts(self, harness) -> None:
        assert harness.reflector.catalog.build_platforms("zlib") == {CURRENT, OTHER}
        assert harness.reflector.catalog.build_platforms("glue") == frozenset()

    def test_platforms_union(self, harness) -> None:
        catalog = harness.reflector.catalog
        assert catalog.bin_platforms("bitmap") == {CURRENT, OTHER}
        assert catalog.platforms("zlib") == {CURRENT, OTHER, "mingw32"}

    def test_bin_deps_from_metadata(self, harness) -> None:
        catalog = harness.reflector.catalog
        assert catalog.bin_deps("zlib") == {"glue"}
        assert catalog.bin_deps("zlib", OTHER) == frozenset()

    def test_implicit_runtime_dependency_on_dynamic_link_family(
        self, make_harness: HarnessFactory
    ) -> None:
        harness = make_harness(
            {"bitmap": ["bin/mingw64/ext/bitmap_fast.pyd"], "glue": ["glue.py"]}
        )
        catalog = harness.reflector.catalog
        assert catalog.bin_deps("bitmap", "mingw64") == {"python"}
        assert catalog.bin_deps("bitmap", "linux64") == frozenset()
        assert catalog.bin_deps("glue", "mingw64") == frozenset()

    def test_license_falls_back_to_default(self, harness) -> None:
        assert harness.reflector.license("zlib") == "ZLIB"
        assert harness.reflector.license("glue") == "PD"

    def test_has_build_dir(self, harness) -> None:
        assert harness.reflector.catalog.has_build_dir("zlib")
        assert not harness.reflector.catalog.has_build_dir("glue")


def test_tracked_files_listed_once_until_cleared(make_harness: HarnessFactory) -> None:
    """Catalog queries are memoized until the package scope is cleared."""
    harness = make_harness({"glue": ["glue.py"], "bitmap": ["bitmap.py"]})
    catalog = harness.reflector.catalog
    catalog.modules("glue")
    catalog.modules("glue")
    catalog.modules("bitmap")
    assert harness.source.listed.count("glue") == 1
    harness.reflector.clear_cache("glue")
    catalog.modules("glue")
    catalog.modules("bitmap")
    assert harness.source.listed.count("glue") == 2
    assert harness.source.listed.count("bitmap") == 1


def test_module_tree_follows_nearest_existing_parent(make_harness: HarnessFactory) -> None:
    harness = make_harness(
        {
            "ui": [
                "ui.py",
                "ui_button.py",
                "ui_button_round.py",
                "ui/layout/grid.py",
                "ui_theme_dark.py",
                "uikit.py",
            ]
        }
    )
    catalog = harness.reflector.catalog
    assert catalog.module_parent("ui", "ui.layout.grid") == "ui"
    assert catalog.module_parent("ui", "ui_button_round") == "ui_button"
    assert catalog.module_parent("ui", "uikit") is None
    assert harness.reflector.module_tree("ui").to_dict() == {
        "name": "ui",
        "children": [
            {
                "name": "ui",
                "children": [
                    {"name": "ui.layout.grid"},
                    {"name": "ui_button", "children": [{"name": "ui_button_round"}]},
                    {"name": "ui_theme_dark"},
                ],
            },
            {"name": "uikit"},
        ],
    }


class TestDocs:
    @pytest.fixture
    def harness(self, make_harness: HarnessFactory):
        return make_harness(
            {
                "a": ["a.py", "a.md", "notes.md"],
                "b": ["b.py", "b.md", "docs/notes.md"],
                "c": ["c.py", "csrc/c/c.md"],
            }
        )

    def test_docs_by_name(self, harness) -> None:
        catalog = harness.reflector.catalog
        assert catalog.docs("b") == {"b": "b.md", "notes": "docs/notes.md"}
        assert catalog.docs("c") == {}

    def test_undocumented_packages(self, harness) -> None:
        assert not harness.reflector.catalog.undocumented_package("a")
        assert harness.reflector.undocumented_packages() == {"c"}

    def test_duplicate_docs(self, harness) -> None:
        assert harness.reflector.duplicate_docs() == {"notes": ("a", "b")}


class TestVersionControl:
    @pytest.fixture
    def harness(self, make_harness: HarnessFactory):
        return make_harness(
            {"glue": ["glue.py"], "bitmap": ["bitmap.py"]},
            known={"ghost"},
            tags={"glue": ["v1.0", "v1.1"]},
            origins={"glue": "https://example.org/glue.git"},
        )

    def test_tagged_package(self, harness) -> None:
        reflector = harness.reflector
        assert reflector.version("glue") == "v1.1-0-g1234567"
        assert reflector.tags("glue") == ("v1.0", "v1.1")
        assert reflector.current_tag("glue") == "v1.1"
        assert reflector.origin_url("glue") == "https://example.org/glue.git"

    def test_untagged_package(self, harness) -> None:
        reflector = harness.reflector
        assert reflector.version("bitmap") is None
        assert reflector.tags("bitmap") == ()
        assert reflector.current_tag("bitmap") is None
        assert reflector.origin_url("bitmap") is None

    def test_package_must_be_installed(self, harness) -> None:
        with pytest.raises(PackageNotInstalledError):
            harness.reflector.version("ghost")
        with pytest.raises(UnknownPackageError):
            harness.reflector.tags("nosuch")
