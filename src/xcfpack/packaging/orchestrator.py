"""Core logic for the fetch, build, assemble and package pipeline."""

from pathlib import Path
import shutil

from attrs import define, field
from pyvider.telemetry import logger

from ..config import PackConfig
from ..locking import run_lock
from ..manifest.checksums import ChecksumRecord
from ..manifest.generator import zip_name_for
from ..models import Artifact
from .assembler import UniversalAssembler
from .builder import ArchitectureBuilder
from .fetcher import Fetcher
from .zipper import zip_trees

XCFRAMEWORK_SUFFIX = ".xcframework"


@define
class PipelineResult:
    output_dir: Path
    zips: list[Path] = field(factory=list)
    combined_zip: Path | None = None
    checksums_file: Path | None = None
    record: ChecksumRecord = field(factory=ChecksumRecord)
    artifacts: list[Artifact] = field(factory=list)
    warnings: list[str] = field(factory=list)


def package_outputs(
    output_dir: Path, zips_dir: Path, combined_zip_name: str, checksums_filename: str
) -> PipelineResult:
    """
    Zips every xcframework individually and all of them together, then
    persists the checksum record the manifest generator reads.
    """
    frameworks = sorted(output_dir.glob(f"*{XCFRAMEWORK_SUFFIX}"))
    result = PipelineResult(output_dir=output_dir)
    if not frameworks:
        logger.warning("No xcframeworks to package", output_dir=str(output_dir))
        result.warnings.append(f"No xcframeworks found in {output_dir}")

    zips_dir.mkdir(parents=True, exist_ok=True)
    for framework in frameworks:
        logger.info("Packaging", xcframework=framework.name)
        name = framework.name.removesuffix(XCFRAMEWORK_SUFFIX)
        result.zips.append(zip_trees([framework], zips_dir / zip_name_for(name)))
    result.combined_zip = zip_trees(frameworks, zips_dir / combined_zip_name)

    result.record = ChecksumRecord.from_files([*result.zips, result.combined_zip])
    result.checksums_file = result.record.write(zips_dir / checksums_filename)
    return result


class PackagePipeline:
    def __init__(self, config: PackConfig) -> None:
        self.config = config

    def _reset_work_dir(self) -> None:
        work_dir = self.config.work_dir
        if work_dir.exists():
            logger.info("Removing previous working directory", path=str(work_dir))
            shutil.rmtree(work_dir)
        self.config.output_dir.mkdir(parents=True)

    def run(self) -> PipelineResult:
        config = self.config
        with run_lock(config.lock_path, timeout=config.lock_timeout):
            self._reset_work_dir()

            logger.info("[1/4] Fetching Firebase", version=config.firebase_version)
            fetcher = Fetcher(config.work_dir, config.output_dir, retries=config.fetch_retries)
            archive = fetcher.fetch_archive(config.archive_download_url)
            extracted = fetcher.extract_archive(archive)
            fetcher.collect_prebuilt(extracted / config.archive_root, config.prebuilt)

            logger.info("[2/4] Building from source", version=config.googlesignin_version)
            package_dir = fetcher.fetch_source(
                config.source_url,
                config.googlesignin_version,
                config.source_product,
                config.source_package,
                config.platform_version,
            )
            builder = ArchitectureBuilder(package_dir, config.work_dir)
            outputs = builder.build_all(parallel=config.parallel_builds)

            logger.info("[3/4] Assembling xcframeworks", count=len(config.artifacts))
            assembler = UniversalAssembler(
                output_dir=config.output_dir,
                staging_dir=config.work_dir / "universal",
                checkouts_dir=builder.checkouts_dir,
                version=config.googlesignin_version,
                bundle_id_prefix=config.bundle_id_prefix,
                platform_version=config.platform_version,
                toolchain=config.toolchain,
                header_policy=config.header_collisions,
            )
            artifacts = []
            for spec in config.artifacts:
                artifact = assembler.assemble(spec, outputs)
                if artifact is not None:
                    artifacts.append(artifact)

            logger.info("[4/4] Packaging")
            result = package_outputs(
                config.output_dir,
                config.zips_dir,
                config.combined_zip_name,
                config.checksums_filename,
            )
            result.artifacts = artifacts
            result.warnings = [*fetcher.warnings, *assembler.warnings, *result.warnings]
            logger.info(
                "Build complete",
                combined_zip=str(result.combined_zip),
                checksums=str(result.checksums_file),
            )
            return result
