"""Framework and XCFramework directory layouts."""

from collections.abc import Sequence
from pathlib import Path
import plistlib
import shutil

from attrs import define, field
from pyvider.telemetry import logger

from ..config import HeaderCollisionPolicy
from ..exceptions import HeaderCollisionError
from ..models import Architecture
from ..templating import render_template

HEADER_SUFFIX = ".h"
XCFRAMEWORK_FORMAT_VERSION = "1.0"
PLATFORM_NAME = "macos"
BUNDLE_PLATFORM_NAME = "MacOSX"


@define
class HeaderSet:
    headers: list[Path] = field(factory=list)
    warnings: list[str] = field(factory=list)


def flatten_headers(
    source_dir: Path, headers_dir: Path, policy: HeaderCollisionPolicy
) -> HeaderSet:
    """
    Copies every header under `source_dir` into the single `headers_dir`.

    Two headers with the same filename but different contents collide. Under
    ERROR that raises; under OVERWRITE the later path (sorted order) wins and a
    warning names both sources. Byte-identical duplicates are dropped quietly.
    """
    result = HeaderSet()
    origins: dict[str, Path] = {}
    headers_dir.mkdir(parents=True, exist_ok=True)
    candidates = sorted(
        (p for p in source_dir.rglob(f"*{HEADER_SUFFIX}") if p.is_file()),
        key=lambda p: p.relative_to(source_dir).as_posix(),
    )
    for header in candidates:
        destination = headers_dir / header.name
        previous = origins.get(header.name)
        if previous is not None:
            if previous.read_bytes() == header.read_bytes():
                continue
            message = (
                f"Header collision on {header.name}: "
                f"{previous.relative_to(source_dir)} and {header.relative_to(source_dir)}"
            )
            if policy is HeaderCollisionPolicy.ERROR:
                raise HeaderCollisionError(
                    f"{message}. Set header_collisions = \"overwrite\" to keep the last one."
                )
            logger.warning(message, kept=str(header.relative_to(source_dir)))
            result.warnings.append(message)
        else:
            result.headers.append(destination)
        shutil.copyfile(header, destination)
        origins[header.name] = header
    return result


def library_identifier(architectures: Sequence[Architecture]) -> str:
    return f"{PLATFORM_NAME}-" + "_".join(sorted(arch.value for arch in architectures))


def write_framework(
    name: str,
    binary_path: Path,
    output_parent: Path,
    bundle_identifier: str,
    version: str,
    platform_version: str,
    headers_dir: Path | None = None,
) -> Path:
    """
    Lays out `<name>.framework`: binary at the root, `Headers/`,
    `Modules/module.modulemap` and `Info.plist`.
    """
    framework = output_parent / f"{name}.framework"
    if framework.exists():
        shutil.rmtree(framework)
    framework.mkdir(parents=True)
    shutil.copyfile(binary_path, framework / name)

    header_names: list[str] = []
    if headers_dir is not None and headers_dir.is_dir():
        header_names = sorted(p.name for p in headers_dir.glob(f"*{HEADER_SUFFIX}"))
    if header_names:
        shutil.copytree(headers_dir, framework / "Headers")
        umbrella = f"{name}{HEADER_SUFFIX}"
        (framework / "Modules").mkdir()
        (framework / "Modules" / "module.modulemap").write_text(
            render_template(
                "module.modulemap.j2",
                name=name,
                umbrella_header=umbrella if umbrella in header_names else None,
            )
        )
    else:
        logger.debug("No public headers, omitting module map", framework=name)

    info = {
        "CFBundleDevelopmentRegion": "en",
        "CFBundleExecutable": name,
        "CFBundleIdentifier": bundle_identifier,
        "CFBundleInfoDictionaryVersion": "6.0",
        "CFBundleName": name,
        "CFBundlePackageType": "FMWK",
        "CFBundleShortVersionString": version,
        "CFBundleSupportedPlatforms": [BUNDLE_PLATFORM_NAME],
        "CFBundleVersion": version,
        "LSMinimumSystemVersion": platform_version,
    }
    with (framework / "Info.plist").open("wb") as f:
        plistlib.dump(info, f, sort_keys=True)
    return framework


def write_xcframework(
    name: str,
    framework: Path,
    architectures: Sequence[Architecture],
    output_dir: Path,
) -> Path:
    """Wraps a universal framework into `<name>.xcframework` for its architecture pair."""
    xcframework = output_dir / f"{name}.xcframework"
    if xcframework.exists():
        shutil.rmtree(xcframework)
    identifier = library_identifier(architectures)
    slice_dir = xcframework / identifier
    slice_dir.mkdir(parents=True)
    shutil.copytree(framework, slice_dir / framework.name, symlinks=True)

    library = {
        "BinaryPath": f"{framework.name}/{name}",
        "LibraryIdentifier": identifier,
        "LibraryPath": framework.name,
        "SupportedArchitectures": sorted(arch.value for arch in architectures),
        "SupportedPlatform": PLATFORM_NAME,
    }
    info = {
        "AvailableLibraries": [library],
        "CFBundlePackageType": "XFWK",
        "XCFrameworkFormatVersion": XCFRAMEWORK_FORMAT_VERSION,
    }
    with (xcframework / "Info.plist").open("wb") as f:
        plistlib.dump(info, f, sort_keys=True)
    return xcframework
