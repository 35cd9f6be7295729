"""
Checks a generated Package.swift without building it.

The binary target URLs only resolve once the release exists, so this parses
the manifest with SwiftPM and checks every wrapper target has its placeholder
source, nothing more.
"""

from pathlib import Path
import re
import shutil

from attrs import define, field
from pyvider.telemetry import logger

from ..exceptions import BuildError
from ..toolchain import run_command
from .generator import MANIFEST_FILENAME, PLACEHOLDER_FILENAME

SOURCES_PATH_PATTERN = re.compile(r'path:\s*"Sources/([^"]+)"')


@define
class ValidationReport:
    errors: list[str] = field(factory=list)
    passed: list[str] = field(factory=list)
    skipped: list[str] = field(factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def wrapper_source_dirs(manifest_text: str) -> list[str]:
    return SOURCES_PATH_PATTERN.findall(manifest_text)


def validate_package(repo_root: Path, dump_package: bool = True) -> ValidationReport:
    report = ValidationReport()
    manifest_path = repo_root / MANIFEST_FILENAME
    if not manifest_path.is_file():
        report.errors.append(f"{MANIFEST_FILENAME} not found at {manifest_path}")
        return report

    if not dump_package:
        report.skipped.append("swift package dump-package (disabled)")
    elif shutil.which("swift") is None:
        logger.warning("swift not found in PATH, skipping dump-package check")
        report.skipped.append("swift package dump-package (swift not in PATH)")
    else:
        try:
            run_command(["swift", "package", "--package-path", str(repo_root), "dump-package"])
            report.passed.append(f"{MANIFEST_FILENAME} parses correctly")
        except BuildError as e:
            report.errors.append(f"{MANIFEST_FILENAME} does not parse correctly:\n{e}")

    for target_dir in wrapper_source_dirs(manifest_path.read_text()):
        placeholder = repo_root / "Sources" / target_dir / PLACEHOLDER_FILENAME
        if placeholder.is_file():
            report.passed.append(f"Sources/{target_dir}/{PLACEHOLDER_FILENAME} exists")
        else:
            report.errors.append(f"Missing {placeholder}")
    return report
