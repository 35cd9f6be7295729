"""Tests for per-architecture source builds."""

from pathlib import Path
import threading
from unittest.mock import ANY, MagicMock, patch

import pytest

from xcfpack.exceptions import BuildError, MissingBuildOutputError
from xcfpack.models import Architecture
from xcfpack.packaging.builder import ArchitectureBuilder, collect_objects

from .conftest import make_macho_object


def _fake_swift_build(command: list[str], cwd: Path | None = None, on_start=None) -> str:
    """Stands in for `swift build`, writing one module's objects under the scratch path."""
    triple = command[command.index("--triple") + 1]
    scratch = Path(command[command.index("--scratch-path") + 1])
    arch = next(a for a in Architecture if a.triple == triple)
    module_dir = scratch / triple / "release" / "Alpha.build"
    module_dir.mkdir(parents=True, exist_ok=True)
    (module_dir / "Alpha.swift.o").write_bytes(make_macho_object(arch, ["_alpha"]))
    return ""


def test_collect_objects_groups_by_module(tmp_path: Path) -> None:
    release = tmp_path / "release"
    (release / "Alpha.build" / "sub").mkdir(parents=True)
    (release / "Alpha.build" / "b.o").write_bytes(b"b")
    (release / "Alpha.build" / "sub" / "a.o").write_bytes(b"a")
    (release / "Alpha.build" / "Alpha.swiftdeps").write_bytes(b"x")
    (release / "Empty.build").mkdir()
    (release / "Alpha.swiftmodule").mkdir()

    modules = collect_objects(release)

    assert list(modules) == ["Alpha"]
    assert [p.relative_to(release).as_posix() for p in modules["Alpha"]] == [
        "Alpha.build/b.o",
        "Alpha.build/sub/a.o",
    ]


def test_scratch_paths_are_per_architecture(tmp_path: Path) -> None:
    builder = ArchitectureBuilder(tmp_path / "pkg", tmp_path / "work")
    assert builder.scratch_dir(Architecture.ARM64) == tmp_path / "work" / "build-arm64"
    assert builder.release_dir(Architecture.X86_64) == (
        tmp_path / "work" / "build-x86_64" / "x86_64-apple-macosx" / "release"
    )
    assert builder.checkouts_dir == tmp_path / "work" / "build-arm64" / "checkouts"


def test_build_runs_swift_with_triple_and_scratch_path(tmp_path: Path) -> None:
    builder = ArchitectureBuilder(tmp_path / "pkg", tmp_path / "work")
    with (
        patch("xcfpack.packaging.builder.ensure_tool", return_value=Path("/usr/bin/swift")),
        patch("xcfpack.packaging.builder.run_command", side_effect=_fake_swift_build) as mock_run,
    ):
        output = builder.build(Architecture.ARM64)

    mock_run.assert_called_once_with(
        [
            "/usr/bin/swift",
            "build",
            "-c",
            "release",
            "--triple",
            "arm64-apple-macosx",
            "--package-path",
            str(tmp_path / "pkg"),
            "--scratch-path",
            str(tmp_path / "work" / "build-arm64"),
        ],
        on_start=ANY,
    )
    assert output.architecture is Architecture.ARM64
    assert [p.name for p in output.modules["Alpha"]] == ["Alpha.swift.o"]


def test_missing_release_directory_fails(tmp_path: Path) -> None:
    builder = ArchitectureBuilder(tmp_path / "pkg", tmp_path / "work")
    with pytest.raises(MissingBuildOutputError, match="x86_64 produced no output"):
        builder.collect(Architecture.X86_64)


def test_cancelled_build_removes_partial_output(tmp_path: Path) -> None:
    builder = ArchitectureBuilder(tmp_path / "pkg", tmp_path / "work")

    def _interrupted(command: list[str], cwd: Path | None = None, on_start=None) -> str:
        _fake_swift_build(command)
        raise KeyboardInterrupt

    with (
        patch("xcfpack.packaging.builder.ensure_tool", return_value=Path("swift")),
        patch("xcfpack.packaging.builder.run_command", side_effect=_interrupted),
        pytest.raises(KeyboardInterrupt),
    ):
        builder.build(Architecture.X86_64)

    assert not builder.scratch_dir(Architecture.X86_64).exists()


@pytest.mark.parametrize("parallel", [False, True])
def test_build_all_returns_every_architecture(tmp_path: Path, parallel: bool) -> None:
    builder = ArchitectureBuilder(tmp_path / "pkg", tmp_path / "work")
    with (
        patch("xcfpack.packaging.builder.ensure_tool", return_value=Path("swift")),
        patch("xcfpack.packaging.builder.run_command", side_effect=_fake_swift_build) as mock_run,
    ):
        outputs = builder.build_all(parallel=parallel)

    assert mock_run.call_count == 2
    assert set(outputs) == {Architecture.ARM64, Architecture.X86_64}
    for arch, output in outputs.items():
        assert output.release_dir == builder.release_dir(arch)
        assert output.has_modules(["Alpha"])


def test_parallel_cancellation_stops_every_architecture(tmp_path: Path) -> None:
    builder = ArchitectureBuilder(tmp_path / "pkg", tmp_path / "work")
    x86_started = threading.Event()
    x86_stopped = threading.Event()
    x86_process = MagicMock(pid=4242)
    x86_process.poll.return_value = None
    x86_process.terminate.side_effect = x86_stopped.set

    def _swift(command: list[str], cwd: Path | None = None, on_start=None) -> str:
        _fake_swift_build(command)
        if "arm64-apple-macosx" in command:
            raise KeyboardInterrupt
        x86_started.set()
        on_start(x86_process)
        if x86_stopped.wait(timeout=10):
            raise BuildError("swift build terminated")
        return ""

    with (
        patch("xcfpack.packaging.builder.ensure_tool", return_value=Path("swift")),
        patch("xcfpack.packaging.builder.run_command", side_effect=_swift),
        pytest.raises(KeyboardInterrupt),
    ):
        builder.build_all(parallel=True)

    assert not x86_started.is_set() or x86_process.terminate.called
    for arch in Architecture:
        assert not builder.scratch_dir(arch).exists()


def test_child_started_after_cancel_is_terminated(tmp_path: Path) -> None:
    builder = ArchitectureBuilder(tmp_path / "pkg", tmp_path / "work")
    builder.cancel()
    late = MagicMock(pid=7)
    late.poll.return_value = None
    builder._track(Architecture.X86_64, late)
    late.terminate.assert_called_once_with()
