"""Minimal Mach-O object reader: just enough to list exported symbols."""

import struct

from attrs import define

from ..exceptions import BinaryFormatError

MH_MAGIC_64: int = 0xFEEDFACF
MACH_HEADER_64_FORMAT = "<IiiIIIII"
MACH_HEADER_64_SIZE = struct.calcsize(MACH_HEADER_64_FORMAT)
LOAD_COMMAND_FORMAT = "<II"
LC_SYMTAB: int = 0x2
SYMTAB_COMMAND_FORMAT = "<IIIIII"
NLIST_64_FORMAT = "<IBBHQ"
NLIST_64_SIZE = struct.calcsize(NLIST_64_FORMAT)

N_STAB: int = 0xE0
N_TYPE: int = 0x0E
N_EXT: int = 0x01
N_UNDF: int = 0x0


@define(frozen=True, slots=True)
class Symbol:
    name: str
    n_type: int
    n_sect: int

    @property
    def is_external(self) -> bool:
        return bool(self.n_type & N_EXT)

    @property
    def is_defined(self) -> bool:
        return (self.n_type & N_TYPE) != N_UNDF

    @property
    def is_debug(self) -> bool:
        return bool(self.n_type & N_STAB)


def is_macho_object(data: bytes) -> bool:
    return len(data) >= 4 and struct.unpack_from("<I", data)[0] == MH_MAGIC_64


def read_symbols(data: bytes) -> list[Symbol]:
    """Returns every entry of the LC_SYMTAB symbol table of a 64-bit Mach-O file."""
    if not is_macho_object(data):
        raise BinaryFormatError("Not a 64-bit little-endian Mach-O file.")
    if len(data) < MACH_HEADER_64_SIZE:
        raise BinaryFormatError("Truncated Mach-O header.")

    _, _, _, _, ncmds, _, _, _ = struct.unpack_from(MACH_HEADER_64_FORMAT, data)
    offset = MACH_HEADER_64_SIZE
    for _ in range(ncmds):
        if offset + 8 > len(data):
            raise BinaryFormatError("Truncated Mach-O load command.")
        cmd, cmdsize = struct.unpack_from(LOAD_COMMAND_FORMAT, data, offset)
        if cmdsize < 8:
            raise BinaryFormatError(f"Invalid load command size {cmdsize}.")
        if cmd == LC_SYMTAB:
            _, _, symoff, nsyms, stroff, strsize = struct.unpack_from(
                SYMTAB_COMMAND_FORMAT, data, offset
            )
            return _read_nlist(data, symoff, nsyms, stroff, strsize)
        offset += cmdsize
    return []


def _read_nlist(
    data: bytes, symoff: int, nsyms: int, stroff: int, strsize: int
) -> list[Symbol]:
    if symoff + nsyms * NLIST_64_SIZE > len(data) or stroff + strsize > len(data):
        raise BinaryFormatError("Mach-O symbol table extends past end of file.")
    strings = data[stroff : stroff + strsize]
    symbols = []
    for index in range(nsyms):
        n_strx, n_type, n_sect, _, _ = struct.unpack_from(
            NLIST_64_FORMAT, data, symoff + index * NLIST_64_SIZE
        )
        end = strings.find(b"\x00", n_strx)
        raw_name = strings[n_strx:] if end == -1 else strings[n_strx:end]
        symbols.append(
            Symbol(name=raw_name.decode("utf-8", "replace"), n_type=n_type, n_sect=n_sect)
        )
    return symbols


def exported_symbols(data: bytes) -> list[str]:
    """Names of external, defined, non-debug symbols; empty for non Mach-O input."""
    if not is_macho_object(data):
        return []
    return [
        symbol.name
        for symbol in read_symbols(data)
        if symbol.is_external and symbol.is_defined and not symbol.is_debug
    ]
