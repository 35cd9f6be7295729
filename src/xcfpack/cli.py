"""The `xcfpack` command-line interface."""

import importlib.metadata
from pathlib import Path
import shutil
from typing import Any

import attrs
import click

from .config import PackConfig, load_config
from .exceptions import BinaryFormatError, LockError, XcfpackError
from .locking import run_lock
from .manifest.checksums import compute_checksum
from .manifest.generator import ManifestGenerator
from .manifest.validator import validate_package
from .packaging.orchestrator import PackagePipeline
from .packaging.reader import UniversalBinaryReader

try:
    __version__ = importlib.metadata.version("xcfpack")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0-dev"


config_option = click.option(
    "--config",
    "config_path",
    default="pyproject.toml",
    type=click.Path(dir_okay=False, resolve_path=True),
    help="pyproject.toml holding a [tool.xcfpack] table (defaults apply if absent).",
)


def _load(config_path: str, **overrides: Any) -> PackConfig:
    config = load_config(Path(config_path))
    overrides = {key: value for key, value in overrides.items() if value is not None}
    return attrs.evolve(config, **overrides) if overrides else config


def _echo_warnings(warnings: list[str] | tuple[str, ...]) -> None:
    for warning in warnings:
        click.secho(f"⚠️  {warning}", fg="yellow", err=True)


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.version_option(
    __version__,
    "-V",
    "--version",
    prog_name="xcfpack",
    message="%(prog)s version %(version)s",
)
def cli() -> None:
    """Firebase + GoogleSignIn macOS xcframework packager."""
    pass


@cli.command("build")
@config_option
@click.option("--firebase-version", envvar="FIREBASE_VERSION", help="Firebase release to download.")
@click.option(
    "--googlesignin-version",
    envvar="GOOGLESIGNIN_VERSION",
    help="GoogleSignIn-iOS tag to build from source.",
)
@click.option(
    "--work-dir",
    envvar="XCFPACK_WORK_DIR",
    type=click.Path(file_okay=False, resolve_path=True),
    help="Working directory; wiped at the start of every run.",
)
@click.option(
    "--parallel/--sequential",
    "parallel_builds",
    default=None,
    help="Build both architectures concurrently.",
)
def build_command(
    config_path: str,
    firebase_version: str | None,
    googlesignin_version: str | None,
    work_dir: str | None,
    parallel_builds: bool | None,
) -> None:
    """Downloads, builds, assembles and zips every xcframework."""
    try:
        config = _load(
            config_path,
            firebase_version=firebase_version,
            googlesignin_version=googlesignin_version,
            work_dir=work_dir,
            parallel_builds=parallel_builds,
        )
        click.echo(
            f"🚀 Building Firebase {config.firebase_version} + "
            f"GoogleSignIn {config.googlesignin_version}..."
        )
        result = PackagePipeline(config).run()
    except XcfpackError as e:
        click.secho(f"❌ Build Failed:\n{e}", fg="red", err=True)
        raise click.Abort() from e

    _echo_warnings(result.warnings)
    click.echo("xcframeworks in output:")
    for zip_path in result.zips:
        click.echo(f"  {zip_path.name}  {result.record[zip_path.name]}")
    if result.combined_zip is not None:
        click.echo(f"Output: {result.combined_zip}")
        click.echo(f"SHA-256 checksum: {result.record[result.combined_zip.name]}")
    click.secho(f"✅ Build complete. Checksums: {result.checksums_file}", fg="green")


@cli.command("generate")
@config_option
@click.option("--tag", envvar="TAG", required=True, help="Release tag used in the download URLs.")
@click.option(
    "--checksums",
    "checksums_file",
    envvar="CHECKSUMS_FILE",
    type=click.Path(dir_okay=False, resolve_path=True),
    help="Checksum record written by `xcfpack build`.",
)
@click.option(
    "--repo-root",
    default=".",
    type=click.Path(file_okay=False, exists=True, resolve_path=True),
    help="Directory the Package.swift and Sources/ are written to.",
)
def generate_command(
    config_path: str, tag: str, checksums_file: str | None, repo_root: str
) -> None:
    """Writes Package.swift from the checksum record."""
    try:
        config = _load(config_path)
        generator = ManifestGenerator(
            repo_root=Path(repo_root),
            checksums_file=Path(checksums_file) if checksums_file else config.checksums_file,
            tag=tag,
            products=config.products,
            base_url_template=config.base_url,
            package_name=config.package_name,
            platform_version=config.platform_version,
            local_probe=config.local_probe,
        )
        manifest = generator.generate()
    except XcfpackError as e:
        click.secho(f"❌ Manifest generation failed:\n{e}", fg="red", err=True)
        raise click.Abort() from e

    _echo_warnings(manifest.warnings)
    click.secho(f"✅ Generated {generator.output_path} (tag {tag})", fg="green")


@cli.command("validate")
@click.option(
    "--repo-root",
    default=".",
    type=click.Path(file_okay=False, exists=True, resolve_path=True),
)
@click.option(
    "--dump-package/--no-dump-package",
    default=True,
    help="Parse the manifest with `swift package dump-package`.",
)
def validate_command(repo_root: str, dump_package: bool) -> None:
    """Checks Package.swift parses and every wrapper target has a source file."""
    click.echo("🔍 Validating Package.swift...")
    report = validate_package(Path(repo_root), dump_package=dump_package)
    for line in report.passed:
        click.echo(f"  OK: {line}")
    for line in report.skipped:
        click.secho(f"  SKIP: {line}", fg="yellow")
    for line in report.errors:
        click.secho(f"  FAIL: {line}", fg="red", err=True)
    if not report.ok:
        click.secho(f"❌ Validation failed ({len(report.errors)} error(s))", fg="red", err=True)
        raise click.Abort()
    click.secho("✅ All checks passed.", fg="green")


@cli.command("inspect")
@click.argument(
    "binary_file",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
)
def inspect_command(binary_file: str) -> None:
    """Lists the architecture slices of a universal binary."""
    try:
        reader = UniversalBinaryReader(Path(binary_file))
    except BinaryFormatError as e:
        click.secho(f"❌ Not a readable universal binary: {e}", fg="red", err=True)
        raise click.Abort() from e
    click.echo(reader.get_info())


@cli.command("checksum")
@click.argument(
    "files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
)
def checksum_command(files: tuple[str, ...]) -> None:
    """Prints the SHA-256 checksum SwiftPM expects for each file."""
    for file in files:
        path = Path(file)
        click.echo(f"{path.name} {compute_checksum(path)}")


@cli.command("clean")
@config_option
@click.option(
    "--work-dir",
    envvar="XCFPACK_WORK_DIR",
    type=click.Path(file_okay=False, resolve_path=True),
)
def clean_command(config_path: str, work_dir: str | None) -> None:
    """Removes the working directory."""
    try:
        config = _load(config_path, work_dir=work_dir)
    except XcfpackError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        raise click.Abort() from e
    click.echo("🧹 Cleaning working directory...")
    try:
        with run_lock(config.lock_path, timeout=config.lock_timeout):
            removed = config.work_dir.exists()
            if removed:
                shutil.rmtree(config.work_dir)
    except LockError as e:
        click.secho(f"❌ Clean failed:\n{e}", fg="red", err=True)
        raise click.Abort() from e

    if removed:
        click.secho(f"✅ Removed working directory: {config.work_dir}", fg="green")
    else:
        click.secho("i️ Working directory not found, nothing to clean.", fg="yellow")


main = cli

if __name__ == "__main__":
    main()
