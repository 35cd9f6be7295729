"""Python-based reader for universal binaries produced by the assembler."""

from pathlib import Path

from ..binary import ar
from ..binary.fat import FatArch, read_fat_archs, thin
from ..exceptions import BinaryFormatError
from ..models import Architecture


class UniversalBinaryReader:
    """Reads and interprets the fat header of a universal binary."""

    def __init__(self, binary_path: Path) -> None:
        if not binary_path.is_file():
            raise FileNotFoundError(f"Binary not found at: {binary_path}")
        self.binary_path = binary_path
        self.data = binary_path.read_bytes()
        self.slices = self._read_and_verify_header()

    def _read_and_verify_header(self) -> list[FatArch]:
        slices = read_fat_archs(self.data)
        for record in slices:
            try:
                record.architecture
            except ValueError as e:
                raise BinaryFormatError(str(e)) from e
        return slices

    @property
    def architectures(self) -> tuple[Architecture, ...]:
        return tuple(record.architecture for record in self.slices)

    def extract(self, arch: Architecture) -> bytes:
        return thin(self.data, arch)

    def symbols(self, arch: Architecture) -> dict[str, str]:
        """Table-of-contents symbols of one slice, when the slice is an archive."""
        slice_data = self.extract(arch)
        if not ar.is_archive(slice_data):
            return {}
        return ar.read_symbol_table(slice_data)

    def get_info(self) -> str:
        """Returns a human-readable string of the binary's slices."""
        lines = [f"Universal binary: {self.binary_path.name}"]
        for record in self.slices:
            slice_data = self.data[record.offset : record.offset + record.size]
            kind = "static library" if ar.is_archive(slice_data) else "object"
            lines.append(
                f"  {record.architecture.value}: {record.size} bytes at offset "
                f"{record.offset} (align 2^{record.align}, {kind})"
            )
        return "\n".join(lines)
