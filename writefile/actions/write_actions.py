"""The write-file provisioning pipeline.

Stages run strictly in order, each one depending on what the previous one
left behind:

    mount -> directories -> content -> write -> bootconfig (optional) -> finalize

The first failing stage aborts the run; nothing is undone.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from writefile.domain import BootConfigContent, ProvisionRequest
from writefile.logging import operation_context
from writefile.services.bootconfig import apply_bootconfig
from writefile.services.content import resolve_content
from writefile.storage.directories import ensure_directory_tree
from writefile.storage.files import finalize_file, write_file
from writefile.storage.mount import MOUNT_ACTION, MountHandle, mount_device


@dataclass
class WriteResult:
    """What a completed run did."""

    mount: MountHandle
    path: Path
    created_directories: list[str]
    bytes_written: int


def write_file_to_disk(
    request: ProvisionRequest, mountpoint: Optional[Path] = None
) -> WriteResult:
    """Mount the device and write the requested file onto it.

    Raises:
        WriteFileError: From whichever stage failed first
    """
    with operation_context(
        "mount", device=request.block_device, fs_type=request.filesystem_type
    ):
        handle = mount_device(
            request.block_device,
            request.filesystem_type,
            mountpoint if mountpoint is not None else MOUNT_ACTION,
        )

    with operation_context("directories", directory=request.directory) as log:
        created = ensure_directory_tree(
            handle.mountpoint,
            request.directory,
            request.dir_mode,
            request.uid,
            request.gid,
        )
        log.debug(f"Created {len(created)} directories")

    with operation_context("content", content_source=type(request.source).__name__):
        data = resolve_content(request.source)

    target = handle.resolve(request.destination)
    with operation_context("write", path=request.destination):
        write_file(target, data, request.file_mode)

    if isinstance(request.source, BootConfigContent):
        with operation_context("bootconfig", path=request.destination):
            apply_bootconfig(request.source.document, target, request.file_mode)

    with operation_context("finalize", path=request.destination):
        finalize_file(target, request.uid, request.gid)

    return WriteResult(
        mount=handle,
        path=target,
        created_directories=created,
        bytes_written=len(data),
    )
