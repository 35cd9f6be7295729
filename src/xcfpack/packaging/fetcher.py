"""Retrieves the vendor archive and the pinned upstream source checkout."""

from collections.abc import Sequence
from pathlib import Path
import shutil

from pyvider.telemetry import logger

from ..exceptions import BuildError, FetchError, MissingBuildOutputError
from ..models import PrebuiltArtifactSpec
from ..templating import render_template
from ..toolchain import ensure_tool, run_command
from .zipper import extract_zip

BUILDER_PACKAGE_NAME = "Builder"
PLACEHOLDER_SOURCE = "import Foundation\n"


class Fetcher:
    def __init__(
        self,
        work_dir: Path,
        output_dir: Path,
        retries: int = 3,
    ) -> None:
        self.work_dir = work_dir
        self.output_dir = output_dir
        self.retries = retries
        self.warnings: list[str] = []

    @property
    def builder_dir(self) -> Path:
        return self.work_dir / "builder"

    def fetch_archive(self, url: str, filename: str = "Firebase.zip") -> Path:
        """Downloads `url`, retrying transient failures; no partial file survives failure."""
        destination = self.work_dir / filename
        partial = destination.with_name(destination.name + ".part")
        curl = ensure_tool("curl")
        logger.info("Downloading archive", url=url, retries=self.retries)
        try:
            run_command(
                [
                    str(curl),
                    "-L",
                    "--fail",
                    "--silent",
                    "--show-error",
                    "--retry",
                    str(self.retries),
                    "-o",
                    str(partial),
                    url,
                ]
            )
        except BuildError as e:
            partial.unlink(missing_ok=True)
            raise FetchError(f"Download of {url} failed after {self.retries} retries.\n{e}") from e
        except KeyboardInterrupt:
            partial.unlink(missing_ok=True)
            raise

        if not partial.is_file():
            raise FetchError(f"Download of {url} reported success but wrote nothing.")
        partial.replace(destination)
        return destination

    def extract_archive(self, archive_path: Path, directory_name: str = "firebase") -> Path:
        logger.info("Extracting archive", archive=archive_path.name)
        try:
            return extract_zip(archive_path, self.work_dir / directory_name)
        except BuildError as e:
            raise FetchError(str(e)) from e

    def collect_prebuilt(
        self, extracted_root: Path, specs: Sequence[PrebuiltArtifactSpec]
    ) -> list[Path]:
        """Copies vendor xcframeworks into the output directory."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        copied = []
        for spec in specs:
            source = extracted_root / spec.path
            if not source.is_dir():
                if spec.optional:
                    message = f"Optional prebuilt {spec.name} not found at {source}, skipping"
                    logger.warning(message)
                    self.warnings.append(message)
                    continue
                raise MissingBuildOutputError(
                    f"Prebuilt xcframework {spec.name} not found at {source}."
                )
            destination = self.output_dir / Path(spec.path).name
            logger.info("Copying prebuilt xcframework", name=destination.name)
            shutil.copytree(source, destination, symlinks=True)
            copied.append(destination)
        logger.info("Prebuilt xcframeworks copied", count=len(copied))
        return copied

    def fetch_source(
        self,
        source_url: str,
        version: str,
        source_product: str,
        source_package: str,
        platform_version: str,
    ) -> Path:
        """
        Writes a throwaway SwiftPM package depending on `source_url` at exactly
        `version` and resolves it. An unknown version fails the resolve.
        """
        sources_dir = self.builder_dir / "Sources"
        sources_dir.mkdir(parents=True, exist_ok=True)
        (self.builder_dir / "Package.swift").write_text(
            render_template(
                "BuilderPackage.swift.j2",
                name=BUILDER_PACKAGE_NAME,
                platform_version=platform_version,
                source_url=source_url,
                version=version,
                source_product=source_product,
                source_package=source_package,
            )
        )
        (sources_dir / "Placeholder.swift").write_text(PLACEHOLDER_SOURCE)

        swift = ensure_tool("swift")
        logger.info("Resolving source dependencies", url=source_url, version=version)
        try:
            run_command([str(swift), "package", "--package-path", str(self.builder_dir), "resolve"])
        except BuildError as e:
            raise FetchError(
                f"Could not resolve {source_url} at exact version {version}.\n{e}"
            ) from e
        return self.builder_dir
