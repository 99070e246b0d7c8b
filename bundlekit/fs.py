import os
import shutil
from pathlib import Path
from typing import BinaryIO, Mapping

from .errors import BundlerError


def is_retina(path) -> bool:
    """True when the file stem ends with "@2x" (high-density icon naming)."""
    return Path(path).stem.endswith("@2x")


def create_file(path) -> BinaryIO:
    """Open a new file for writing, creating any missing parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return open(path, "wb")


def copy_file(src, dst):
    """
    Copy a regular file, creating parent directories of `dst` as needed.
    Fails if `src` is missing or is not a file.
    """
    src, dst = Path(src), Path(dst)
    if not src.exists():
        raise BundlerError(f"{src} does not exist")
    if not src.is_file():
        raise BundlerError(f"{src} is not a file")
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy(src, dst)


def copy_dir(src, dst):
    """
    Recursively copy a directory tree. Symlinks are recreated as links
    pointing at the same target rather than followed.
    Fails if `src` is missing or not a directory, or if `dst` already exists.
    """
    src, dst = Path(src), Path(dst)
    if not src.exists():
        raise BundlerError(f"{src} does not exist")
    if not src.is_dir():
        raise BundlerError(f"{src} is not a Directory")
    if dst.exists():
        raise BundlerError(f"{dst} already exists")
    dst.parent.mkdir(parents=True, exist_ok=True)
    dst.mkdir()

    for root, dirs, files in os.walk(src):
        rel = Path(root).relative_to(src)
        for name in list(dirs):
            entry = Path(root) / name
            target = dst / rel / name
            if entry.is_symlink():
                os.symlink(os.readlink(entry), target, target_is_directory=True)
                # don't descend into linked dirs
                dirs.remove(name)
            else:
                target.mkdir()
        for name in files:
            entry = Path(root) / name
            target = dst / rel / name
            if entry.is_symlink():
                os.symlink(os.readlink(entry), target)
            else:
                shutil.copy(entry, target)


def copy_custom_files(files_map: Mapping, data_dir):
    """
    Copy user-declared files into a package data directory.
    `files_map` maps the path inside the package to the source on disk.
    """
    data_dir = Path(data_dir)
    for pkg_path, path in files_map.items():
        pkg_path, path = Path(pkg_path), Path(path)
        if pkg_path.is_absolute():
            pkg_path = pkg_path.relative_to(pkg_path.anchor)
        if path.is_file():
            copy_file(path, data_dir / pkg_path)
        else:
            copy_dir(path, data_dir / pkg_path)
