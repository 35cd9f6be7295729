"""
Deterministic BSD `ar` static library writer and reader.

The writer produces the same layout as Apple's `libtool -static`: a sorted
`__.SYMDEF SORTED` table of contents first, then one member per object with
`#1/<len>` long names padded so member data starts on an 8-byte boundary.
Timestamps, owner and group are zeroed so identical inputs give identical bytes.
"""

from collections.abc import Iterable, Sequence
from pathlib import Path
import struct

from attrs import define

from ..exceptions import BinaryFormatError
from .macho import exported_symbols

AR_MAGIC: bytes = b"!<arch>\n"
AR_FMAG: bytes = b"`\n"
AR_HEADER_SIZE = 60
BSD_LONG_NAME_PREFIX = "#1/"
SYMDEF_NAMES = ("__.SYMDEF", "__.SYMDEF SORTED", "__.SYMDEF_64", "__.SYMDEF_64 SORTED")
SYMDEF_SORTED = "__.SYMDEF SORTED"
DEFAULT_MODE = 0o100644


@define(frozen=True, slots=True)
class ArchiveMember:
    name: str
    data: bytes
    header_offset: int = 0


def _header(name_field: str, size: int, mode: int = DEFAULT_MODE) -> bytes:
    header = (
        f"{name_field:<16}"
        f"{0:<12}"
        f"{0:<6}"
        f"{0:<6}"
        f"{mode:<8o}"
        f"{size:<10}"
    ).encode("ascii") + AR_FMAG
    if len(header) != AR_HEADER_SIZE:
        raise BinaryFormatError(f"Archive member field too long for '{name_field}'.")
    return header


def _encode_member(name: str, data: bytes, header_offset: int) -> bytes:
    raw_name = name.encode("utf-8")
    unaligned = header_offset + AR_HEADER_SIZE + len(raw_name)
    padded_name = raw_name + b"\x00" * ((-unaligned) % 8)
    size = len(padded_name) + len(data)
    encoded = (
        _header(f"{BSD_LONG_NAME_PREFIX}{len(padded_name)}", size)
        + padded_name
        + data
    )
    if len(encoded) % 2:
        encoded += b"\n"
    return encoded


def _symbol_index(members: Sequence[tuple[str, bytes]]) -> list[tuple[str, int]]:
    """Sorted (symbol, member index) pairs; the first definition of a symbol wins."""
    first_definition: dict[str, int] = {}
    for index, (_, data) in enumerate(members):
        for symbol in exported_symbols(data):
            first_definition.setdefault(symbol, index)
    return sorted(first_definition.items())


def _symdef_body(symbols: list[tuple[str, int]], member_offsets: list[int]) -> bytes:
    strtab = bytearray()
    entries = bytearray()
    for symbol, member_index in symbols:
        entries += struct.pack("<II", len(strtab), member_offsets[member_index])
        strtab += symbol.encode("utf-8") + b"\x00"
    strtab += b"\x00" * ((-len(strtab)) % 8)
    return (
        struct.pack("<I", len(entries))
        + bytes(entries)
        + struct.pack("<I", len(strtab))
        + bytes(strtab)
    )


def build_archive(members: Sequence[tuple[str, bytes]]) -> bytes:
    """Builds a static library from (member name, object bytes) pairs, in order."""
    symbols = _symbol_index(members)
    placeholder_offsets = [0] * len(members)
    symdef_size = len(
        _encode_member(SYMDEF_SORTED, _symdef_body(symbols, placeholder_offsets), len(AR_MAGIC))
    )

    member_offsets = []
    position = len(AR_MAGIC) + symdef_size
    encoded_members = []
    for name, data in members:
        member_offsets.append(position)
        encoded = _encode_member(name, data, position)
        encoded_members.append(encoded)
        position += len(encoded)

    symdef = _encode_member(
        SYMDEF_SORTED, _symdef_body(symbols, member_offsets), len(AR_MAGIC)
    )
    if len(symdef) != symdef_size:
        raise BinaryFormatError("Symbol table size changed while laying out archive.")
    return AR_MAGIC + symdef + b"".join(encoded_members)


def write_static_library(objects: Iterable[Path], output_path: Path) -> Path:
    """Archives object files into `output_path` in the given order."""
    members = [(path.name, path.read_bytes()) for path in objects]
    if not members:
        raise BinaryFormatError(f"No object files to archive into {output_path.name}.")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(build_archive(members))
    return output_path


def is_archive(data: bytes) -> bool:
    return data.startswith(AR_MAGIC)


def read_archive(data: bytes) -> list[ArchiveMember]:
    """Returns every member of an archive, symbol tables included."""
    if not is_archive(data):
        raise BinaryFormatError("Missing '!<arch>' archive magic.")

    members = []
    offset = len(AR_MAGIC)
    while offset < len(data):
        if offset + AR_HEADER_SIZE > len(data):
            raise BinaryFormatError(f"Truncated archive member header at offset {offset}.")
        header = data[offset : offset + AR_HEADER_SIZE]
        if header[58:60] != AR_FMAG:
            raise BinaryFormatError(f"Bad archive member terminator at offset {offset}.")
        name_field = header[0:16].decode("ascii").rstrip()
        try:
            size = int(header[48:58].decode("ascii").strip())
        except ValueError as e:
            raise BinaryFormatError(f"Bad archive member size at offset {offset}.") from e

        body_start = offset + AR_HEADER_SIZE
        body = data[body_start : body_start + size]
        if len(body) != size:
            raise BinaryFormatError(f"Archive member at offset {offset} is truncated.")

        if name_field.startswith(BSD_LONG_NAME_PREFIX):
            name_length = int(name_field[len(BSD_LONG_NAME_PREFIX) :])
            name = body[:name_length].rstrip(b"\x00").decode("utf-8")
            body = body[name_length:]
        else:
            name = name_field.rstrip("/")

        members.append(ArchiveMember(name=name, data=body, header_offset=offset))
        offset = body_start + size + (size % 2)
    return members


def read_symbol_table(data: bytes) -> dict[str, str]:
    """Maps each symbol in the archive's table of contents to its member name."""
    members = read_archive(data)
    by_offset = {member.header_offset: member.name for member in members}
    symdef = next((m for m in members if m.name in SYMDEF_NAMES), None)
    if symdef is None:
        return {}

    body = symdef.data
    (ranlib_size,) = struct.unpack_from("<I", body, 0)
    (strtab_size,) = struct.unpack_from("<I", body, 4 + ranlib_size)
    strtab = body[8 + ranlib_size : 8 + ranlib_size + strtab_size]
    table = {}
    for entry_offset in range(4, 4 + ranlib_size, 8):
        strx, member_offset = struct.unpack_from("<II", body, entry_offset)
        end = strtab.find(b"\x00", strx)
        symbol = strtab[strx:end].decode("utf-8")
        table[symbol] = by_offset.get(member_offset, "")
    return table
