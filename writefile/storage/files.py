"""Writing the destination file and finalizing its ownership."""

from __future__ import annotations

import os
from pathlib import Path

from writefile.logging import LoggerFactory
from writefile.storage.exceptions import FileWriteError, OwnershipError


log = LoggerFactory.for_storage()


def write_file(path: Path, data: bytes, mode: int) -> None:
    """Write ``data`` to ``path`` and apply ``mode``.

    An existing file is truncated and its mode replaced; the last writer wins.

    Raises:
        FileWriteError: If the file cannot be written or its mode set
    """
    try:
        path.write_bytes(data)
        os.chmod(path, mode)
    except OSError as e:
        raise FileWriteError(str(path), str(e)) from e
    log.debug(f"Wrote {len(data)} bytes to {path} with mode {mode:o}")


def finalize_file(path: Path, uid: int, gid: int) -> None:
    """Set ownership on the output file once all writes are done.

    Raises:
        OwnershipError: If chown fails
    """
    try:
        os.chown(path, uid, gid)
    except OSError as e:
        raise OwnershipError(str(path), uid, gid, str(e)) from e
    log.debug(f"Set ownership of {path} to {uid}:{gid}")
