"""
The flat checksum record that couples packaging to manifest generation.

One `<zip-name> <sha256-hex>` pair per line, sorted by name. The build writes
it; the manifest generator reads it, possibly in a separate invocation.
"""

from collections.abc import Iterable, Iterator, Mapping
import hashlib
from pathlib import Path
import re

from attrs import define, field

from ..exceptions import ChecksumFormatError

CHUNK_SIZE = 1024 * 1024
CHECKSUM_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def compute_checksum(path: Path) -> str:
    """SHA-256 of a file as lowercase hex, the digest SwiftPM verifies."""
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _freeze(entries: Mapping[str, str]) -> dict[str, str]:
    return dict(entries)


@define(frozen=True, slots=True)
class ChecksumRecord(Mapping[str, str]):
    entries: dict[str, str] = field(factory=dict, converter=_freeze)

    @entries.validator
    def _check_entries(self, attribute: object, value: dict[str, str]) -> None:
        for name, checksum in value.items():
            if not name or any(ch.isspace() for ch in name):
                raise ChecksumFormatError(f"Invalid packaged unit name {name!r}.")
            if not CHECKSUM_PATTERN.match(checksum):
                raise ChecksumFormatError(f"Invalid checksum {checksum!r} for '{name}'.")

    def __getitem__(self, name: str) -> str:
        return self.entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @classmethod
    def from_files(cls, paths: Iterable[Path]) -> "ChecksumRecord":
        entries: dict[str, str] = {}
        for path in paths:
            if path.name in entries:
                raise ChecksumFormatError(f"Duplicate packaged unit '{path.name}'.")
            entries[path.name] = compute_checksum(path)
        return cls(entries)

    def dumps(self) -> str:
        return "".join(f"{name} {self.entries[name]}\n" for name in sorted(self.entries))

    @classmethod
    def loads(cls, text: str) -> "ChecksumRecord":
        entries: dict[str, str] = {}
        for line_number, raw_line in enumerate(text.splitlines(), start=1):
            line = raw_line.strip()
            if not line:
                continue
            parts = line.split()
            if len(parts) != 2:
                raise ChecksumFormatError(
                    f"Line {line_number}: expected '<name> <checksum>', got {raw_line!r}."
                )
            name, checksum = parts
            if name in entries:
                raise ChecksumFormatError(f"Line {line_number}: duplicate entry '{name}'.")
            entries[name] = checksum.lower()
        return cls(entries)

    def write(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.dumps())
        return path

    @classmethod
    def read(cls, path: Path) -> "ChecksumRecord":
        return cls.loads(path.read_text())
