"""Tests for packaging outputs and the end-to-end pipeline wiring."""

from collections.abc import Mapping
from pathlib import Path
from unittest.mock import MagicMock, patch

import attrs
import pytest

from xcfpack.config import PackConfig
from xcfpack.exceptions import LockError
from xcfpack.locking import run_lock
from xcfpack.manifest.checksums import ChecksumRecord, compute_checksum
from xcfpack.models import Architecture, Artifact, BuildOutput, SourceArtifactSpec
from xcfpack.packaging.orchestrator import PackagePipeline, package_outputs


def _xcframework(output_dir: Path, name: str) -> Path:
    path = output_dir / f"{name}.xcframework"
    path.mkdir(parents=True)
    (path / "Info.plist").write_text(name)
    return path


def test_package_outputs_zips_and_records_checksums(tmp_path: Path) -> None:
    output_dir = tmp_path / "output"
    _xcframework(output_dir, "Beta")
    _xcframework(output_dir, "Alpha")

    result = package_outputs(output_dir, tmp_path / "zips", "all.zip", "checksums.txt")

    assert [z.name for z in result.zips] == ["Alpha.xcframework.zip", "Beta.xcframework.zip"]
    assert result.combined_zip == tmp_path / "zips" / "all.zip"
    assert sorted(result.record) == ["Alpha.xcframework.zip", "Beta.xcframework.zip", "all.zip"]
    for name, checksum in result.record.items():
        assert compute_checksum(tmp_path / "zips" / name) == checksum
    assert dict(ChecksumRecord.read(result.checksums_file)) == dict(result.record)
    assert result.warnings == []


def test_package_outputs_with_nothing_to_package_warns(tmp_path: Path) -> None:
    (tmp_path / "output").mkdir()
    result = package_outputs(tmp_path / "output", tmp_path / "zips", "all.zip", "checksums.txt")
    assert result.zips == []
    assert len(result.warnings) == 1


@pytest.fixture
def config(tmp_path: Path) -> PackConfig:
    return attrs.evolve(
        PackConfig(),
        work_dir=tmp_path / "work",
        artifacts=(
            SourceArtifactSpec("Alpha", ["Alpha"]),
            SourceArtifactSpec("Extra", ["Extra"], optional=True),
        ),
    )


def test_pipeline_runs_every_stage(tmp_path: Path, config: PackConfig) -> None:
    config.work_dir.mkdir()
    (config.work_dir / "stale.txt").write_text("old run")

    fetcher = MagicMock(warnings=["prebuilt warning"])
    fetcher.fetch_source.return_value = tmp_path / "builder"
    builder = MagicMock(checkouts_dir=tmp_path / "checkouts")
    outputs = {arch: BuildOutput(arch, tmp_path / arch.value) for arch in Architecture}
    builder.build_all.return_value = outputs
    assembler = MagicMock(warnings=["SKIP Extra"])

    def _assemble(spec: SourceArtifactSpec, given: Mapping) -> Artifact | None:
        assert given is outputs
        if spec.optional:
            return None
        bundle = _xcframework(config.output_dir, spec.name)
        return Artifact(spec.name, bundle / spec.name, bundle, tuple(Architecture))

    assembler.assemble.side_effect = _assemble

    with (
        patch("xcfpack.packaging.orchestrator.Fetcher", return_value=fetcher),
        patch("xcfpack.packaging.orchestrator.ArchitectureBuilder", return_value=builder) as builder_cls,
        patch("xcfpack.packaging.orchestrator.UniversalAssembler", return_value=assembler),
    ):
        result = PackagePipeline(config).run()

    assert not (config.work_dir / "stale.txt").exists()
    fetcher.fetch_archive.assert_called_once_with(config.archive_download_url)
    fetcher.collect_prebuilt.assert_called_once_with(
        fetcher.extract_archive.return_value / "Firebase", config.prebuilt
    )
    builder_cls.assert_called_once_with(tmp_path / "builder", config.work_dir)
    builder.build_all.assert_called_once_with(parallel=False)
    assert [a.name for a in result.artifacts] == ["Alpha"]
    assert [z.name for z in result.zips] == ["Alpha.xcframework.zip"]
    assert result.checksums_file == config.checksums_file
    assert result.warnings == ["prebuilt warning", "SKIP Extra"]


def test_pipeline_refuses_to_share_a_work_dir(config: PackConfig) -> None:
    config.work_dir.mkdir()
    (config.work_dir / "keep.txt").write_text("in use")
    with run_lock(config.lock_path):
        with (
            patch("xcfpack.packaging.orchestrator.Fetcher") as fetcher_cls,
            pytest.raises(LockError),
        ):
            PackagePipeline(config).run()
    fetcher_cls.assert_not_called()
    assert (config.work_dir / "keep.txt").exists()
