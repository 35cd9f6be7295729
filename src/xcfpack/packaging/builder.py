"""Builds the resolved source package once per architecture."""

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
import shutil
import subprocess
import threading

from pyvider.telemetry import logger

from ..exceptions import MissingBuildOutputError
from ..models import SUPPORTED_ARCHITECTURES, Architecture, BuildOutput
from ..toolchain import ensure_tool, run_command, terminate_process

MODULE_BUILD_SUFFIX = ".build"
OBJECT_SUFFIX = ".o"


def collect_objects(release_dir: Path) -> dict[str, tuple[Path, ...]]:
    """
    Groups object files by SwiftPM module, keeping the umbrella's modules apart.

    SwiftPM writes each module's objects to `<release>/<Module>.build/`.
    """
    modules: dict[str, tuple[Path, ...]] = {}
    for module_dir in sorted(release_dir.glob(f"*{MODULE_BUILD_SUFFIX}")):
        if not module_dir.is_dir():
            continue
        objects = tuple(
            sorted(
                (p for p in module_dir.rglob(f"*{OBJECT_SUFFIX}") if p.is_file()),
                key=lambda p: p.relative_to(module_dir).as_posix(),
            )
        )
        if objects:
            modules[module_dir.name.removesuffix(MODULE_BUILD_SUFFIX)] = objects
    return modules


class ArchitectureBuilder:
    def __init__(
        self,
        package_dir: Path,
        work_dir: Path,
        configuration: str = "release",
    ) -> None:
        self.package_dir = package_dir
        self.work_dir = work_dir
        self.configuration = configuration
        self._children: dict[Architecture, subprocess.Popen[str]] = {}
        self._children_lock = threading.Lock()
        self._cancelled = threading.Event()

    def scratch_dir(self, arch: Architecture) -> Path:
        return self.work_dir / f"build-{arch.value}"

    def release_dir(self, arch: Architecture) -> Path:
        return self.scratch_dir(arch) / arch.triple / self.configuration

    @property
    def checkouts_dir(self) -> Path:
        """Dependency checkouts of the first architecture's scratch directory."""
        return self.scratch_dir(SUPPORTED_ARCHITECTURES[0]) / "checkouts"

    def _track(self, arch: Architecture, process: subprocess.Popen[str]) -> None:
        with self._children_lock:
            self._children[arch] = process
        if self._cancelled.is_set():
            terminate_process(process)

    def cancel(self) -> None:
        """Terminates every running build child; builds started later stop at once."""
        self._cancelled.set()
        with self._children_lock:
            children = list(self._children.items())
        for arch, process in children:
            logger.warning("Terminating build", arch=arch.value, pid=process.pid)
            terminate_process(process)

    def build(self, arch: Architecture) -> BuildOutput:
        swift = ensure_tool("swift")
        scratch = self.scratch_dir(arch)
        logger.info("Building", arch=arch.value, scratch=str(scratch))
        try:
            run_command(
                [
                    str(swift),
                    "build",
                    "-c",
                    self.configuration,
                    "--triple",
                    arch.triple,
                    "--package-path",
                    str(self.package_dir),
                    "--scratch-path",
                    str(scratch),
                ],
                on_start=lambda process: self._track(arch, process),
            )
        except KeyboardInterrupt:
            logger.warning("Build cancelled, removing partial output", arch=arch.value)
            shutil.rmtree(scratch, ignore_errors=True)
            raise
        finally:
            with self._children_lock:
                self._children.pop(arch, None)
        return self.collect(arch)

    def collect(self, arch: Architecture) -> BuildOutput:
        release = self.release_dir(arch)
        if not release.is_dir():
            raise MissingBuildOutputError(
                f"Build for {arch.value} produced no output directory at {release}."
            )
        modules = collect_objects(release)
        logger.info("Collected objects", arch=arch.value, modules=len(modules))
        return BuildOutput(architecture=arch, release_dir=release, modules=modules)

    def build_all(
        self,
        architectures: Sequence[Architecture] = SUPPORTED_ARCHITECTURES,
        parallel: bool = False,
    ) -> dict[Architecture, BuildOutput]:
        """Builds every architecture; both must finish before anything is returned."""
        if not parallel:
            return {arch: self.build(arch) for arch in architectures}

        with ThreadPoolExecutor(max_workers=len(architectures)) as pool:
            futures = {arch: pool.submit(self.build, arch) for arch in architectures}
            try:
                return {arch: future.result() for arch, future in futures.items()}
            except KeyboardInterrupt:
                logger.warning("Build cancelled, stopping every architecture")
                self.cancel()
                pool.shutdown(wait=True, cancel_futures=True)
                for arch in architectures:
                    shutil.rmtree(self.scratch_dir(arch), ignore_errors=True)
                raise
