"""
Mach-O universal ("fat") binary writer and reader.

Layout: a big-endian `fat_header` (magic, slice count) followed by one
`fat_arch` record per slice, then each slice at an offset aligned to
`2**align`, zero-padded in between.
"""

from collections.abc import Mapping
from pathlib import Path
import struct
from typing import Self

from attrs import define

from ..exceptions import BinaryFormatError
from ..models import Architecture

FAT_MAGIC: int = 0xCAFEBABE
FAT_HEADER_FORMAT = ">II"
FAT_HEADER_SIZE = struct.calcsize(FAT_HEADER_FORMAT)
FAT_ARCH_FORMAT = ">IIIII"
FAT_ARCH_SIZE = struct.calcsize(FAT_ARCH_FORMAT)

if FAT_HEADER_SIZE != 8 or FAT_ARCH_SIZE != 20:
    raise AssertionError("Unexpected fat header struct sizes.")


@define(frozen=True, slots=True)
class FatArch:
    cpu_type: int
    cpu_subtype: int
    offset: int
    size: int
    align: int

    @property
    def architecture(self) -> Architecture:
        return Architecture.from_cpu(self.cpu_type)

    def pack(self) -> bytes:
        return struct.pack(
            FAT_ARCH_FORMAT,
            self.cpu_type,
            self.cpu_subtype,
            self.offset,
            self.size,
            self.align,
        )

    @classmethod
    def unpack(cls, buffer: bytes) -> Self:
        if len(buffer) != FAT_ARCH_SIZE:
            raise ValueError(f"Buffer size {len(buffer)} != {FAT_ARCH_SIZE}")
        cpu_type, cpu_subtype, offset, size, align = struct.unpack(FAT_ARCH_FORMAT, buffer)
        return cls(
            cpu_type=cpu_type,
            cpu_subtype=cpu_subtype,
            offset=offset,
            size=size,
            align=align,
        )


def _align_up(value: int, align: int) -> int:
    boundary = 1 << align
    return (value + boundary - 1) & ~(boundary - 1)


def is_fat(data: bytes) -> bool:
    return len(data) >= 4 and struct.unpack_from(">I", data)[0] == FAT_MAGIC


def fuse(slices: Mapping[Architecture, bytes]) -> bytes:
    """Combines single-architecture binaries into one universal binary."""
    if len(slices) < 2:
        raise BinaryFormatError(
            "A universal binary needs at least two architectures, got "
            f"{', '.join(arch.value for arch in slices) or 'none'}."
        )
    for arch, data in slices.items():
        if is_fat(data):
            raise BinaryFormatError(f"Input for {arch.value} is already a universal binary.")
        if not data:
            raise BinaryFormatError(f"Input for {arch.value} is empty.")

    ordered = sorted(slices.items(), key=lambda item: (item[0].align, item[0].cpu_type))
    records: list[FatArch] = []
    position = FAT_HEADER_SIZE + FAT_ARCH_SIZE * len(ordered)
    for arch, data in ordered:
        offset = _align_up(position, arch.align)
        records.append(
            FatArch(
                cpu_type=arch.cpu_type,
                cpu_subtype=arch.cpu_subtype,
                offset=offset,
                size=len(data),
                align=arch.align,
            )
        )
        position = offset + len(data)

    output = bytearray(struct.pack(FAT_HEADER_FORMAT, FAT_MAGIC, len(records)))
    for record in records:
        output += record.pack()
    for record, (_, data) in zip(records, ordered):
        output += b"\x00" * (record.offset - len(output))
        output += data
    return bytes(output)


def read_fat_archs(data: bytes) -> list[FatArch]:
    if not is_fat(data):
        raise BinaryFormatError("Not a universal binary: bad fat magic.")
    _, count = struct.unpack_from(FAT_HEADER_FORMAT, data)
    table_end = FAT_HEADER_SIZE + FAT_ARCH_SIZE * count
    if table_end > len(data):
        raise BinaryFormatError(f"Fat header declares {count} slices past end of file.")

    records = []
    for index in range(count):
        start = FAT_HEADER_SIZE + index * FAT_ARCH_SIZE
        record = FatArch.unpack(data[start : start + FAT_ARCH_SIZE])
        if record.offset + record.size > len(data):
            raise BinaryFormatError(
                f"Slice {index} (cpu 0x{record.cpu_type:08x}) extends past end of file."
            )
        records.append(record)
    return records


def thin(data: bytes, arch: Architecture) -> bytes:
    """Returns the slice for `arch`, byte for byte as it was fused."""
    for record in read_fat_archs(data):
        if record.cpu_type == arch.cpu_type:
            return data[record.offset : record.offset + record.size]
    raise BinaryFormatError(f"Universal binary has no {arch.value} slice.")


def write_universal_binary(
    libraries: Mapping[Architecture, Path], output_path: Path
) -> Path:
    fused = fuse({arch: path.read_bytes() for arch, path in libraries.items()})
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(fused)
    return output_path
