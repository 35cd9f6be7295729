"""Generates the Swift package manifest from a checksum record."""

from collections.abc import Sequence
from pathlib import Path

from attrs import define, field
from pyvider.telemetry import logger

from ..exceptions import ManifestError
from ..templating import render_template
from .checksums import ChecksumRecord
from .products import (
    BinaryRef,
    ProductDefinition,
    TargetRef,
    unique_binaries,
    validate_products,
)

MANIFEST_FILENAME = "Package.swift"
PLACEHOLDER_FILENAME = "dummy.swift"
PLACEHOLDER_CONTENT = "// Placeholder: SPM requires at least one source file per target.\n"
XCFRAMEWORK_ZIP_SUFFIX = ".xcframework.zip"


def zip_name_for(artifact_name: str) -> str:
    return f"{artifact_name}{XCFRAMEWORK_ZIP_SUFFIX}"


@define(frozen=True, slots=True)
class BinaryTarget:
    name: str
    url: str
    checksum: str


@define(frozen=True, slots=True)
class ManifestProduct:
    name: str
    target_name: str
    source_path: str
    dependency_names: tuple[str, ...] = field(converter=tuple)

    @classmethod
    def from_definition(cls, product: ProductDefinition) -> "ManifestProduct":
        names = []
        for dep in product.dependencies:
            if isinstance(dep, TargetRef):
                names.append(dep.target_name)
            elif isinstance(dep, BinaryRef):
                names.append(dep.name)
        return cls(
            name=product.name,
            target_name=product.target_name,
            source_path=product.source_path,
            dependency_names=names,
        )


@define(frozen=True, slots=True)
class Manifest:
    tag: str
    base_url: str
    package_name: str
    platform_version: str
    local_probe: str
    products: tuple[ManifestProduct, ...] = field(converter=tuple)
    binaries: tuple[BinaryTarget, ...] = field(converter=tuple)
    warnings: tuple[str, ...] = field(converter=tuple, default=())

    def render(self) -> str:
        return render_template(MANIFEST_FILENAME + ".j2", manifest=self)

    def write(self, path: Path) -> Path:
        path.write_text(self.render())
        return path


def build_manifest(
    record: ChecksumRecord,
    products: Sequence[ProductDefinition],
    tag: str,
    base_url_template: str,
    package_name: str,
    platform_version: str,
    local_probe: str,
) -> Manifest:
    """
    Resolves every binary reference against the checksum record.

    A missing checksum is a warning, not an error: the binary target is
    emitted with an empty checksum, which downstream verification rejects.
    """
    if not tag:
        raise ManifestError("A release tag is required to build release URLs.")
    validate_products(products)
    try:
        base_url = base_url_template.format(tag=tag).rstrip("/")
    except (KeyError, IndexError) as e:
        raise ManifestError(f"Invalid base URL template {base_url_template!r}: {e}") from e

    warnings = []
    binaries = []
    for name in unique_binaries(products):
        checksum = record.get(zip_name_for(name))
        if checksum is None:
            message = f"{name} is in the dependency map but has no checksum in the checksum record"
            logger.warning(message, artifact=name)
            warnings.append(message)
            checksum = ""
        binaries.append(
            BinaryTarget(name=name, url=f"{base_url}/{zip_name_for(name)}", checksum=checksum)
        )

    return Manifest(
        tag=tag,
        base_url=base_url,
        package_name=package_name,
        platform_version=platform_version,
        local_probe=f"{local_probe}.xcframework",
        products=[ManifestProduct.from_definition(p) for p in products],
        binaries=binaries,
        warnings=warnings,
    )


def ensure_placeholder_sources(repo_root: Path, products: Sequence[ProductDefinition]) -> list[Path]:
    """Creates `Sources/<Product>/dummy.swift` for each product that lacks one."""
    created = []
    for product in products:
        placeholder = repo_root / product.source_path / PLACEHOLDER_FILENAME
        if not placeholder.exists():
            logger.info("Creating placeholder source", path=str(placeholder))
            placeholder.parent.mkdir(parents=True, exist_ok=True)
            placeholder.write_text(PLACEHOLDER_CONTENT)
            created.append(placeholder)
    return created


class ManifestGenerator:
    def __init__(
        self,
        repo_root: Path,
        checksums_file: Path,
        tag: str,
        products: Sequence[ProductDefinition],
        base_url_template: str,
        package_name: str,
        platform_version: str,
        local_probe: str,
    ) -> None:
        self.repo_root = repo_root
        self.checksums_file = checksums_file
        self.tag = tag
        self.products = tuple(products)
        self.base_url_template = base_url_template
        self.package_name = package_name
        self.platform_version = platform_version
        self.local_probe = local_probe

    @property
    def output_path(self) -> Path:
        return self.repo_root / MANIFEST_FILENAME

    def generate(self) -> Manifest:
        if not self.checksums_file.is_file():
            raise ManifestError(
                f"Checksum record not found at {self.checksums_file}. "
                "Run `xcfpack build` first to generate it."
            )
        record = ChecksumRecord.read(self.checksums_file)
        for name in sorted(record):
            if name.endswith(XCFRAMEWORK_ZIP_SUFFIX):
                logger.info("Discovered xcframework", zip=name)

        manifest = build_manifest(
            record,
            self.products,
            tag=self.tag,
            base_url_template=self.base_url_template,
            package_name=self.package_name,
            platform_version=self.platform_version,
            local_probe=self.local_probe,
        )
        ensure_placeholder_sources(self.repo_root, self.products)
        manifest.write(self.output_path)
        logger.info("Generated manifest", path=str(self.output_path), tag=self.tag)
        return manifest
