"""Idempotent directory provisioning beneath a mount root.

Every missing segment of the target directory is created in order from root
to leaf with the requested mode and ownership. Segments that already exist are
left alone, so re-running against a provisioned disk changes nothing. Nothing
is rolled back on failure; directories created before the error remain and a
retry picks up where the previous run stopped.
"""

from __future__ import annotations

import os
import posixpath
import stat
from pathlib import Path

from writefile.logging import LoggerFactory
from writefile.storage.exceptions import DirectoryConflictError, DirectoryError


log = LoggerFactory.for_storage()


def _full_path(mount_root: Path, path: str) -> Path:
    return Path(mount_root) / path.lstrip("/")


def dir_exists(mount_root: Path, path: str) -> bool:
    """Check whether ``path`` exists under ``mount_root`` as a directory.

    Raises:
        DirectoryConflictError: If the path exists but is not a directory
        DirectoryError: If the path cannot be inspected
    """
    try:
        info = os.stat(_full_path(mount_root, path))
    except FileNotFoundError:
        return False
    except OSError as e:
        raise DirectoryError(path, f"failed to stat path: {e}") from e

    if not stat.S_ISDIR(info.st_mode):
        raise DirectoryConflictError(path)
    return True


def ensure_dir(mount_root: Path, path: str, mode: int, uid: int, gid: int) -> bool:
    """Create a single directory if missing, then apply mode and ownership.

    Returns:
        True if the directory was created, False if it already existed
    """
    if dir_exists(mount_root, path):
        return False

    full_path = _full_path(mount_root, path)
    try:
        os.mkdir(full_path, mode)
        # mkdir is filtered through the umask
        os.chmod(full_path, mode)
    except OSError as e:
        raise DirectoryError(path, f"failed to create directory: {e}") from e

    log.info(f"Successfully created directory: {path}")

    try:
        os.chown(full_path, uid, gid)
    except OSError as e:
        raise DirectoryError(
            path, f"failed to set ownership to {uid}:{gid}: {e}"
        ) from e

    log.info(f"Successfully set ownership of directory {path} to {uid}:{gid}")
    return True


def ensure_directory_tree(
    mount_root: Path, path: str, mode: int, uid: int, gid: int
) -> list[str]:
    """Ensure every segment of ``path`` exists as a directory under ``mount_root``.

    Args:
        mount_root: Root of the mounted filesystem
        path: Directory path relative to the mount root (e.g., "/etc/config/")
        mode: Permission bits for newly created directories
        uid: Owner applied to newly created directories
        gid: Group applied to newly created directories

    Returns:
        The path prefixes that were created, in creation order

    Raises:
        DirectoryConflictError: If any segment exists as a file
        DirectoryError: If the path cannot be decomposed, or a stat, mkdir or
            chown fails
    """
    if dir_exists(mount_root, path):
        log.debug(f"Directory {path} already exists")
        return []

    if posixpath.sep not in path:
        raise DirectoryError(path, "bad path")

    created: list[str] = []
    prefix = posixpath.sep
    for part in path.split(posixpath.sep):
        if not part:
            continue
        prefix = posixpath.join(prefix, part)
        if ensure_dir(mount_root, prefix, mode, uid, gid):
            created.append(prefix)

    return created
