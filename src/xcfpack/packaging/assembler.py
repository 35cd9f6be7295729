"""Turns two per-architecture build outputs into one universal xcframework."""

from collections.abc import Mapping, Sequence
from pathlib import Path
import shutil

from pyvider.telemetry import logger

from ..binary.ar import write_static_library
from ..binary.fat import write_universal_binary
from ..config import HeaderCollisionPolicy, Toolchain
from ..exceptions import AssemblyError, MissingBuildOutputError
from ..models import (
    SUPPORTED_ARCHITECTURES,
    Architecture,
    Artifact,
    BuildOutput,
    SourceArtifactSpec,
    require_architectures,
)
from ..toolchain import ensure_tool, run_command
from .bundle import flatten_headers, library_identifier, write_framework, write_xcframework


class UniversalAssembler:
    def __init__(
        self,
        output_dir: Path,
        staging_dir: Path,
        checkouts_dir: Path | None,
        version: str,
        bundle_id_prefix: str,
        platform_version: str,
        toolchain: Toolchain = Toolchain.BUILTIN,
        header_policy: HeaderCollisionPolicy = HeaderCollisionPolicy.ERROR,
    ) -> None:
        self.output_dir = output_dir
        self.staging_dir = staging_dir
        self.checkouts_dir = checkouts_dir
        self.version = version
        self.bundle_id_prefix = bundle_id_prefix
        self.platform_version = platform_version
        self.toolchain = toolchain
        self.header_policy = header_policy
        self.warnings: list[str] = []

    def _warn(self, message: str, **fields: str) -> None:
        logger.warning(message, **fields)
        self.warnings.append(message)

    def archive(self, objects: Sequence[Path], output_path: Path) -> Path:
        """Archives one architecture's objects into a static library."""
        if self.toolchain is Toolchain.SYSTEM:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            libtool = ensure_tool("libtool")
            run_command(
                [str(libtool), "-static", "-o", str(output_path), *(str(p) for p in objects)]
            )
            return output_path
        return write_static_library(objects, output_path)

    def fuse(self, libraries: Mapping[Architecture, Path], output_path: Path) -> Path:
        """The only place the architectures are combined."""
        if self.toolchain is Toolchain.SYSTEM:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            lipo = ensure_tool("lipo")
            run_command(
                [
                    str(lipo),
                    "-create",
                    *(str(libraries[arch]) for arch in SUPPORTED_ARCHITECTURES),
                    "-output",
                    str(output_path),
                ]
            )
            return output_path
        return write_universal_binary(libraries, output_path)

    def _select_objects(
        self, spec: SourceArtifactSpec, outputs: Mapping[Architecture, BuildOutput]
    ) -> dict[Architecture, tuple[Path, ...]] | None:
        selected = {}
        for arch in SUPPORTED_ARCHITECTURES:
            output = outputs[arch]
            if not output.has_modules(spec.modules):
                missing = [m for m in spec.modules if not output.modules.get(m)]
                if spec.optional:
                    self._warn(
                        f"SKIP {spec.name}: no {arch.value} objects for {', '.join(missing)}",
                        artifact=spec.name,
                    )
                    return None
                raise MissingBuildOutputError(
                    f"Required artifact '{spec.name}' has no {arch.value} objects for "
                    f"module(s) {', '.join(missing)} in {output.release_dir}."
                )
            selected[arch] = output.objects_for(spec.modules)
        return selected

    def _collect_headers(self, spec: SourceArtifactSpec, staging: Path) -> tuple[Path | None, list[Path]]:
        if not spec.header_source:
            return None, []
        source = (self.checkouts_dir / spec.header_source) if self.checkouts_dir else None
        if source is None or not source.is_dir():
            self._warn(
                f"Headers for {spec.name} not found at {source}, packaging without headers",
                artifact=spec.name,
            )
            return None, []
        headers_dir = staging / "Headers"
        header_set = flatten_headers(source, headers_dir, self.header_policy)
        self.warnings.extend(header_set.warnings)
        if not header_set.headers:
            self._warn(f"No headers found for {spec.name} under {source}", artifact=spec.name)
            return None, []
        return headers_dir, header_set.headers

    def assemble(
        self, spec: SourceArtifactSpec, outputs: Mapping[Architecture, BuildOutput]
    ) -> Artifact | None:
        """Returns the assembled artifact, or None when an optional artifact is skipped."""
        require_architectures(spec.name, dict(outputs))
        selected = self._select_objects(spec, outputs)
        if selected is None:
            return None

        logger.info("Creating xcframework", artifact=spec.name)
        staging = self.staging_dir / spec.name
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)

        libraries = {
            arch: self.archive(objects, staging / arch.value / f"lib{spec.name}.a")
            for arch, objects in selected.items()
        }
        universal = self.fuse(libraries, staging / f"lib{spec.name}.a")
        headers_dir, headers = self._collect_headers(spec, staging)

        framework = write_framework(
            spec.name,
            universal,
            staging / "framework",
            bundle_identifier=f"{self.bundle_id_prefix}.{spec.name}",
            version=self.version,
            platform_version=self.platform_version,
            headers_dir=headers_dir,
        )
        self.output_dir.mkdir(parents=True, exist_ok=True)
        try:
            xcframework = write_xcframework(
                spec.name, framework, SUPPORTED_ARCHITECTURES, self.output_dir
            )
        except OSError as e:
            raise AssemblyError(f"Could not write {spec.name}.xcframework: {e}") from e
        shutil.rmtree(staging)

        bundled_framework = (
            xcframework / library_identifier(SUPPORTED_ARCHITECTURES) / framework.name
        )
        return Artifact.from_outputs(
            spec.name,
            dict(outputs),
            binary_path=bundled_framework / spec.name,
            bundle_path=xcframework,
            headers=tuple(bundled_framework / "Headers" / h.name for h in headers),
        )
