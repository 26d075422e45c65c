"""Helpers too generic to be in other modules."""
import os
import stat

from pathlib import Path


def create_dir_if_not_exist(dir: Path):
    os.makedirs(dir, exist_ok=True)


def is_hidden(path: Path) -> bool:
    """Check if a file or directory is hidden.

    Dot files are hidden everywhere, on Windows the hidden attribute counts too.
    """
    if path.name.startswith("."):
        return True
    if os.name == "nt":
        attributes = os.lstat(path).st_file_attributes
        return bool(attributes & stat.FILE_ATTRIBUTE_HIDDEN)
    return False


def relative_posix(path: Path, root: Path) -> str:
    """Path of `path` relative to `root`, always with forward slashes."""
    return path.relative_to(root).as_posix()
