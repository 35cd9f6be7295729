from collections.abc import Iterable
import enum
from pathlib import Path

from attrs import define, field

from .exceptions import MissingBuildOutputError

# Mach-O CPU constants from <mach/machine.h>
CPU_ARCH_ABI64: int = 0x01000000
CPU_TYPE_X86_64: int = 0x00000007 | CPU_ARCH_ABI64
CPU_TYPE_ARM64: int = 0x0000000C | CPU_ARCH_ABI64
CPU_SUBTYPE_X86_64_ALL: int = 3
CPU_SUBTYPE_ARM64_ALL: int = 0


class Architecture(enum.Enum):
    ARM64 = "arm64"
    X86_64 = "x86_64"

    @property
    def triple(self) -> str:
        return f"{self.value}-apple-macosx"

    @property
    def cpu_type(self) -> int:
        return _CPU_INFO[self][0]

    @property
    def cpu_subtype(self) -> int:
        return _CPU_INFO[self][1]

    @property
    def align(self) -> int:
        """Slice alignment inside a universal binary, as a power of two."""
        return _CPU_INFO[self][2]

    @classmethod
    def from_cpu(cls, cpu_type: int) -> "Architecture":
        for arch, (arch_cpu_type, _, _) in _CPU_INFO.items():
            if arch_cpu_type == cpu_type:
                return arch
        raise ValueError(f"Unsupported Mach-O CPU type 0x{cpu_type:08x}")


_CPU_INFO: dict[Architecture, tuple[int, int, int]] = {
    Architecture.ARM64: (CPU_TYPE_ARM64, CPU_SUBTYPE_ARM64_ALL, 14),
    Architecture.X86_64: (CPU_TYPE_X86_64, CPU_SUBTYPE_X86_64_ALL, 12),
}

SUPPORTED_ARCHITECTURES: tuple[Architecture, ...] = (
    Architecture.ARM64,
    Architecture.X86_64,
)


def _to_path(value: str | Path) -> Path:
    return Path(value)


@define(frozen=True, slots=True)
class BuildOutput:
    """Compiled objects for one architecture, grouped by SwiftPM module."""

    architecture: Architecture
    release_dir: Path = field(converter=_to_path)
    modules: dict[str, tuple[Path, ...]] = field(factory=dict)

    def objects_for(self, module_names: Iterable[str]) -> tuple[Path, ...]:
        objects: list[Path] = []
        for module_name in module_names:
            objects.extend(self.modules.get(module_name, ()))
        return tuple(objects)

    def has_modules(self, module_names: Iterable[str]) -> bool:
        return all(self.modules.get(name) for name in module_names)


@define(frozen=True, slots=True)
class SourceArtifactSpec:
    """An artifact assembled from objects built from source."""

    name: str
    modules: tuple[str, ...] = field(converter=tuple)
    header_source: str | None = None
    optional: bool = False

    @modules.validator
    def _check_modules(self, attribute: object, value: tuple[str, ...]) -> None:
        if not value:
            raise ValueError(f"Artifact '{self.name}' must name at least one module.")


@define(frozen=True, slots=True)
class PrebuiltArtifactSpec:
    """A vendor-published xcframework taken as-is from the downloaded archive."""

    path: str
    optional: bool = False

    @property
    def name(self) -> str:
        return Path(self.path).name.removesuffix(".xcframework")


@define(frozen=True, slots=True)
class Artifact:
    name: str
    binary_path: Path
    bundle_path: Path
    architectures: tuple[Architecture, ...]
    headers: tuple[Path, ...] = ()

    @classmethod
    def from_outputs(
        cls,
        name: str,
        outputs: dict[Architecture, BuildOutput],
        binary_path: Path,
        bundle_path: Path,
        headers: tuple[Path, ...] = (),
    ) -> "Artifact":
        require_architectures(name, outputs)
        return cls(
            name=name,
            binary_path=binary_path,
            bundle_path=bundle_path,
            architectures=SUPPORTED_ARCHITECTURES,
            headers=headers,
        )


def require_architectures(name: str, outputs: dict[Architecture, BuildOutput]) -> None:
    """An artifact is universal only once every supported architecture has output."""
    missing = [arch.value for arch in SUPPORTED_ARCHITECTURES if arch not in outputs]
    if missing:
        raise MissingBuildOutputError(
            f"Artifact '{name}' cannot be universal without build output for: "
            f"{', '.join(missing)}"
        )
