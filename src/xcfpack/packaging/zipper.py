"""Reproducible zip archives that keep symbolic links as links."""

from collections.abc import Iterable
import os
from pathlib import Path
import shutil
import stat
import zipfile

from ..exceptions import BuildError

ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
UNIX_SYSTEM = 3


def _walk(root: Path) -> list[Path]:
    """Every file, link and directory under root (root included), sorted."""
    entries = [root]
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        current = Path(dirpath)
        for name in dirnames + filenames:
            entries.append(current / name)
    return sorted(entries, key=lambda p: p.as_posix())


def _zip_info(arcname: str, mode: int) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(filename=arcname, date_time=ZIP_EPOCH)
    info.create_system = UNIX_SYSTEM
    info.external_attr = mode << 16
    return info


def zip_trees(roots: Iterable[Path], output_path: Path) -> Path:
    """
    Zips each root directory (stored under its own name) into `output_path`.

    Symbolic links are stored as links whose content is the link target, the
    same way `zip -y` stores them.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(output_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for root in sorted(roots, key=lambda p: p.name):
            if not root.exists():
                raise BuildError(f"Cannot zip missing directory: {root}")
            for path in _walk(root):
                arcname = path.relative_to(root.parent).as_posix()
                if path.is_symlink():
                    info = _zip_info(arcname, stat.S_IFLNK | 0o755)
                    archive.writestr(info, os.readlink(path))
                elif path.is_dir():
                    info = _zip_info(arcname + "/", stat.S_IFDIR | 0o755)
                    info.external_attr |= 0x10
                    archive.writestr(info, b"")
                else:
                    mode = stat.S_IMODE(path.stat().st_mode) | stat.S_IFREG
                    info = _zip_info(arcname, mode)
                    info.compress_type = zipfile.ZIP_DEFLATED
                    archive.writestr(info, path.read_bytes())
    return output_path


def _is_symlink_entry(info: zipfile.ZipInfo) -> bool:
    return info.create_system == UNIX_SYSTEM and stat.S_ISLNK(info.external_attr >> 16)


def _placement(target: Path) -> Path:
    """Where an entry lands, following links already on disk but not the entry itself."""
    return Path(os.path.normpath(target.parent.resolve() / target.name))


def extract_zip(zip_path: Path, destination: Path) -> Path:
    """
    Extracts a zip, recreating stored symbolic links and file modes.

    Every entry, links included, must land inside `destination`; an entry
    reached through a previously extracted link is checked where the link
    points.
    """
    destination.mkdir(parents=True, exist_ok=True)
    resolved_root = destination.resolve()
    try:
        archive = zipfile.ZipFile(zip_path)
    except zipfile.BadZipFile as e:
        raise BuildError(f"{zip_path.name} is not a valid zip archive: {e}") from e

    with archive:
        for info in archive.infolist():
            target = destination / info.filename
            placed = _placement(target)
            if placed == resolved_root or not placed.is_relative_to(resolved_root):
                raise BuildError(f"Refusing to extract '{info.filename}' outside {destination}.")
            if _is_symlink_entry(info):
                target.parent.mkdir(parents=True, exist_ok=True)
                if target.is_symlink() or target.exists():
                    target.unlink()
                os.symlink(archive.read(info).decode("utf-8"), target)
            elif info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                if target.is_symlink():
                    target.unlink()
                with archive.open(info) as source, target.open("wb") as sink:
                    shutil.copyfileobj(source, sink)
                mode = stat.S_IMODE(info.external_attr >> 16)
                if mode:
                    target.chmod(mode)
    return destination
