"""Block device mounting for the provisioning step.

The target device is attached at a fixed, ephemeral mountpoint. There is no
retry: a failed mount means the environment is not what the caller promised.

Functions:
    - validate_block_device(): Reject non-/dev/ paths and shell metacharacters
    - create_mountpoint(): Create the fixed mountpoint directory
    - mount_device(): Mount a block device with an explicit filesystem type

Example:
    >>> handle = mount_device("/dev/sda1", "ext4")
    >>> handle.resolve("/etc/hosts")
    PosixPath('/mountAction/etc/hosts')
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path

from writefile.logging import LoggerFactory
from writefile.storage.exceptions import ConfigurationError, MountError


MOUNT_ACTION = Path("/mountAction")

_FORBIDDEN_CHARS = [";", "&", "|", "$", "`", "\n", "\r", " "]


log = LoggerFactory.for_storage()


@dataclass(frozen=True)
class MountHandle:
    """A block device attached at a mountpoint for the lifetime of the run."""

    device: str
    filesystem_type: str
    mountpoint: Path

    def resolve(self, path: str) -> Path:
        """Root an absolute path beneath the mountpoint."""
        return self.mountpoint / path.lstrip("/")


def validate_block_device(device: str) -> None:
    """Validate a block device path before it reaches a command line.

    Raises:
            ConfigurationError: If the path is empty, not under /dev/, or contains
                    shell metacharacters
    """
    if not isinstance(device, str) or not device:
        raise ConfigurationError("DEST_DISK", "no block device specified")
    if not device.startswith("/dev/"):
        raise ConfigurationError("DEST_DISK", f"invalid device path: {device}")
    if any(char in device for char in _FORBIDDEN_CHARS):
        raise ConfigurationError(
            "DEST_DISK", f"device path contains invalid characters: {device}"
        )


def create_mountpoint(mountpoint: Path = MOUNT_ACTION) -> None:
    """Create the mountpoint directory.

    An existing directory is accepted so a re-run in the same environment
    reaches the mount step.

    Raises:
            MountError: If the directory cannot be created
    """
    try:
        mountpoint.mkdir(exist_ok=True)
    except OSError as e:
        raise MountError("-", str(mountpoint), f"creating mountpoint: {e}") from e


def mount_device(
    device: str, filesystem_type: str, mountpoint: Path = MOUNT_ACTION
) -> MountHandle:
    """Mount a block device at the mountpoint.

    No mount flags and no data options are passed.

    Args:
            device: Device node (e.g., '/dev/sda1')
            filesystem_type: Filesystem type passed to mount -t (e.g., 'ext4')
            mountpoint: Directory to mount on (default: /mountAction)

    Returns:
            MountHandle for resolving paths under the mount

    Raises:
            ConfigurationError: If the device or filesystem type is invalid
            MountError: If creating the mountpoint or mounting fails
    """
    validate_block_device(device)
    if not filesystem_type or any(char in filesystem_type for char in _FORBIDDEN_CHARS):
        raise ConfigurationError("FS_TYPE", f"invalid filesystem type: {filesystem_type!r}")

    create_mountpoint(mountpoint)

    command = ["mount", "-t", filesystem_type, device, str(mountpoint)]
    log.debug(f"Running command: {' '.join(command)}")
    try:
        subprocess.run(command, check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as e:
        raise MountError(device, str(mountpoint), (e.stderr or "").strip()) from e
    except OSError as e:
        raise MountError(device, str(mountpoint), str(e)) from e

    log.info(f"Mounted [{device}] -> [{mountpoint}]")
    return MountHandle(device=device, filesystem_type=filesystem_type, mountpoint=mountpoint)
