"""Tests for header flattening and the framework/xcframework layouts."""

from pathlib import Path
import plistlib

import pytest

from xcfpack.config import HeaderCollisionPolicy
from xcfpack.exceptions import HeaderCollisionError
from xcfpack.models import Architecture
from xcfpack.packaging.bundle import (
    flatten_headers,
    library_identifier,
    write_framework,
    write_xcframework,
)


def _headers(root: Path, files: dict[str, str]) -> Path:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def test_flatten_headers_collects_nested_headers(tmp_path: Path) -> None:
    source = _headers(
        tmp_path / "src",
        {"Public/A.h": "a", "Public/Nested/B.h": "b", "Public/impl.m": "m"},
    )
    result = flatten_headers(source, tmp_path / "Headers", HeaderCollisionPolicy.ERROR)
    assert sorted(p.name for p in result.headers) == ["A.h", "B.h"]
    assert sorted(p.name for p in (tmp_path / "Headers").iterdir()) == ["A.h", "B.h"]
    assert result.warnings == []


def test_flatten_headers_collision_fails_by_default(tmp_path: Path) -> None:
    source = _headers(tmp_path / "src", {"one/Same.h": "first", "two/Same.h": "second"})
    with pytest.raises(HeaderCollisionError, match="Same.h"):
        flatten_headers(source, tmp_path / "Headers", HeaderCollisionPolicy.ERROR)


def test_flatten_headers_overwrite_policy_warns_last_wins(tmp_path: Path) -> None:
    source = _headers(tmp_path / "src", {"one/Same.h": "first", "two/Same.h": "second"})
    result = flatten_headers(source, tmp_path / "Headers", HeaderCollisionPolicy.OVERWRITE)
    assert (tmp_path / "Headers" / "Same.h").read_text() == "second"
    assert len(result.warnings) == 1
    assert "one/Same.h" in result.warnings[0] and "two/Same.h" in result.warnings[0]


def test_flatten_headers_identical_duplicates_are_not_collisions(tmp_path: Path) -> None:
    source = _headers(tmp_path / "src", {"one/Same.h": "same", "two/Same.h": "same"})
    result = flatten_headers(source, tmp_path / "Headers", HeaderCollisionPolicy.ERROR)
    assert [p.name for p in result.headers] == ["Same.h"]
    assert result.warnings == []


def test_library_identifier() -> None:
    assert library_identifier([Architecture.X86_64, Architecture.ARM64]) == "macos-arm64_x86_64"


def test_write_framework_layout(tmp_path: Path) -> None:
    binary = tmp_path / "libAlpha.a"
    binary.write_bytes(b"fat")
    headers = _headers(tmp_path / "Headers", {"Alpha.h": "#import <Alpha/Other.h>", "Other.h": ""})

    framework = write_framework(
        "Alpha",
        binary,
        tmp_path / "out",
        bundle_identifier="com.example.Alpha",
        version="7.0.0",
        platform_version="10.15",
        headers_dir=headers,
    )

    assert framework.name == "Alpha.framework"
    assert (framework / "Alpha").read_bytes() == b"fat"
    assert sorted(p.name for p in (framework / "Headers").iterdir()) == ["Alpha.h", "Other.h"]
    modulemap = (framework / "Modules" / "module.modulemap").read_text()
    assert "framework module Alpha {" in modulemap
    assert 'umbrella header "Alpha.h"' in modulemap
    info = plistlib.loads((framework / "Info.plist").read_bytes())
    assert info["CFBundleIdentifier"] == "com.example.Alpha"
    assert info["CFBundleExecutable"] == "Alpha"
    assert info["CFBundleShortVersionString"] == "7.0.0"
    assert info["CFBundlePackageType"] == "FMWK"


def test_write_framework_umbrella_directory_without_named_header(tmp_path: Path) -> None:
    binary = tmp_path / "libBeta.a"
    binary.write_bytes(b"fat")
    headers = _headers(tmp_path / "Headers", {"Something.h": ""})
    framework = write_framework(
        "Beta", binary, tmp_path / "out", "com.example.Beta", "1.0", "10.15", headers_dir=headers
    )
    assert 'umbrella "Headers"' in (framework / "Modules" / "module.modulemap").read_text()


def test_write_framework_link_only_has_no_module_map(tmp_path: Path) -> None:
    binary = tmp_path / "libGamma.a"
    binary.write_bytes(b"fat")
    framework = write_framework("Gamma", binary, tmp_path / "out", "com.example.Gamma", "1.0", "10.15")
    assert not (framework / "Headers").exists()
    assert not (framework / "Modules").exists()
    assert (framework / "Info.plist").is_file()


def test_write_xcframework_layout(tmp_path: Path) -> None:
    binary = tmp_path / "libAlpha.a"
    binary.write_bytes(b"fat")
    framework = write_framework("Alpha", binary, tmp_path / "stage", "com.example.Alpha", "1.0", "10.15")

    xcframework = write_xcframework(
        "Alpha", framework, [Architecture.ARM64, Architecture.X86_64], tmp_path / "output"
    )

    assert (xcframework / "macos-arm64_x86_64" / "Alpha.framework" / "Alpha").read_bytes() == b"fat"
    info = plistlib.loads((xcframework / "Info.plist").read_bytes())
    assert info["CFBundlePackageType"] == "XFWK"
    assert info["AvailableLibraries"] == [
        {
            "BinaryPath": "Alpha.framework/Alpha",
            "LibraryIdentifier": "macos-arm64_x86_64",
            "LibraryPath": "Alpha.framework",
            "SupportedArchitectures": ["arm64", "x86_64"],
            "SupportedPlatform": "macos",
        }
    ]
