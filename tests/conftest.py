"""Pytest fixtures for the entire xcfpack test suite."""

from collections.abc import Callable, Iterable
from pathlib import Path
import struct

import pytest

from xcfpack.models import Architecture, BuildOutput
from xcfpack.packaging.builder import collect_objects

MH_OBJECT = 0x1
N_SECT_EXT = 0x0F
N_UNDF_EXT = 0x01


def make_macho_object(
    arch: Architecture,
    defined: Iterable[str],
    undefined: Iterable[str] = (),
) -> bytes:
    """Builds a minimal 64-bit Mach-O object with only an LC_SYMTAB command."""
    entries = [(name, N_SECT_EXT, 1) for name in defined]
    entries += [(name, N_UNDF_EXT, 0) for name in undefined]

    strtab = bytearray(b"\x00")
    offsets = []
    for name, _, _ in entries:
        offsets.append(len(strtab))
        strtab += name.encode() + b"\x00"

    header_size = 32
    symtab_cmd_size = 24
    symoff = header_size + symtab_cmd_size
    stroff = symoff + 16 * len(entries)

    data = struct.pack(
        "<IiiIIIII",
        0xFEEDFACF,
        arch.cpu_type,
        arch.cpu_subtype,
        MH_OBJECT,
        1,
        symtab_cmd_size,
        0,
        0,
    )
    data += struct.pack("<IIIIII", 0x2, symtab_cmd_size, symoff, len(entries), stroff, len(strtab))
    for offset, (_, n_type, n_sect) in zip(offsets, entries):
        data += struct.pack("<IBBHQ", offset, n_type, n_sect, 0, 0)
    return data + bytes(strtab)


@pytest.fixture
def macho_object() -> Callable[..., bytes]:
    return make_macho_object


def _write_module(
    release_dir: Path, arch: Architecture, module: str, objects: dict[str, list[str]]
) -> None:
    module_dir = release_dir / f"{module}.build"
    module_dir.mkdir(parents=True, exist_ok=True)
    for filename, symbols in objects.items():
        (module_dir / filename).write_bytes(make_macho_object(arch, symbols))


@pytest.fixture
def release_tree(tmp_path: Path) -> Callable[..., dict[Architecture, BuildOutput]]:
    """
    A factory that lays out SwiftPM release directories for both architectures,
    each holding objects for the `Alpha` and `Beta` modules.
    """

    def _make(
        architectures: Iterable[Architecture] = (Architecture.ARM64, Architecture.X86_64),
        modules: dict[str, dict[str, list[str]]] | None = None,
    ) -> dict[Architecture, BuildOutput]:
        modules = modules or {
            "Alpha": {
                "Alpha.swift.o": ["_alpha_fn", "_shared_name_alpha"],
                "AlphaHelpers.m.o": ["_alpha_helper"],
            },
            "Beta": {"Beta.swift.o": ["_beta_only"]},
        }
        outputs = {}
        for arch in architectures:
            release_dir = tmp_path / f"build-{arch.value}" / arch.triple / "release"
            release_dir.mkdir(parents=True, exist_ok=True)
            for module, objects in modules.items():
                _write_module(release_dir, arch, module, objects)
            outputs[arch] = BuildOutput(
                architecture=arch,
                release_dir=release_dir,
                modules=collect_objects(release_dir),
            )
        return outputs

    return _make


@pytest.fixture
def checksum_hex() -> Callable[[str], str]:
    """Deterministic fake SHA-256 hex strings."""

    def _hex(seed: str) -> str:
        return (seed.encode().hex() * 64)[:64]

    return _hex
