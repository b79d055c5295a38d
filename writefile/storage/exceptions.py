"""Custom exceptions for the write-file provisioning step.

Every failure surfaced to the entry point derives from WriteFileError so the
process can report it and exit non-zero. Lower-level OSError and subprocess
errors are wrapped with the path or operation that failed.

Exception Hierarchy:
    WriteFileError (base)
        ├── ConfigurationError
        ├── StorageError
        │   ├── MountError
        │   ├── DirectoryError
        │   │   └── DirectoryConflictError
        │   ├── FileWriteError
        │   └── OwnershipError
        ├── ContentError
        │   ├── MetadataUnavailableError
        │   └── TemplateRenderError
        ├── NetworkError
        │   ├── NamespaceError
        │   ├── InterfaceDiscoveryError
        │   └── DhcpError
        │       └── DhcpTimeoutError
        └── BootConfigError

Usage:
    from writefile.storage.exceptions import DirectoryConflictError

    if not os.path.isdir(path):
        raise DirectoryConflictError(path)
"""

from __future__ import annotations

from typing import Sequence


class WriteFileError(Exception):
    """Base exception for all provisioning failures."""


class ConfigurationError(WriteFileError):
    """Input configuration is missing or invalid."""

    def __init__(self, variable: str, reason: str):
        self.variable = variable
        self.reason = reason
        super().__init__(f"Invalid configuration [{variable}]: {reason}")


class StorageError(WriteFileError):
    """Base exception for mount and filesystem errors."""


class MountError(StorageError):
    """Creating the mountpoint or mounting the device failed."""

    def __init__(self, device: str, mountpoint: str, reason: str):
        self.device = device
        self.mountpoint = mountpoint
        self.reason = reason
        super().__init__(f"Mounting [{device}] -> [{mountpoint}] error [{reason}]")


class DirectoryError(StorageError):
    """A directory could not be inspected, created, or chowned."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Directory {path}: {reason}")


class DirectoryConflictError(DirectoryError):
    """A path segment that should be a directory is a file."""

    def __init__(self, path: str):
        super().__init__(path, "expected a directory, but it is a file")


class FileWriteError(StorageError):
    """The destination file could not be written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not write file {path}: {reason}")


class OwnershipError(StorageError):
    """Ownership of the destination file could not be changed."""

    def __init__(self, path: str, uid: int, gid: int, reason: str):
        self.path = path
        self.uid = uid
        self.gid = gid
        super().__init__(
            f"Could not modify ownership of file {path} to {uid}:{gid}: {reason}"
        )


class ContentError(WriteFileError):
    """Base exception for content resolution errors."""


class MetadataUnavailableError(ContentError):
    """Every metadata endpoint failed."""

    def __init__(self, endpoints: Sequence[str]):
        self.endpoints = list(endpoints)
        super().__init__(
            "Failed to read user-data, exhausted all metadata endpoints: "
            f"{', '.join(self.endpoints) or '(none)'}"
        )


class TemplateRenderError(ContentError):
    """The network configuration template could not be rendered."""


class NetworkError(WriteFileError):
    """Base exception for namespace and DHCP errors."""


class NamespaceError(NetworkError):
    """Switching into or out of a network namespace failed."""


class InterfaceDiscoveryError(NetworkError):
    """No usable interface could be found in the host namespace."""


class DhcpError(NetworkError):
    """The DHCP exchange failed."""

    def __init__(self, message: str, interface: str | None = None):
        self.interface = interface
        super().__init__(message)


class DhcpTimeoutError(DhcpError):
    """No DHCP offer arrived before the timeout elapsed."""

    def __init__(self, interface: str | None, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"No DHCP offer on {interface or '(unknown interface)'} "
            f"within {timeout:g}s",
            interface=interface,
        )


class BootConfigError(WriteFileError):
    """The boot configuration tool failed."""

    def __init__(self, message: str, output: str = ""):
        self.output = output
        msg = message
        if output:
            msg += f", Output: {output}"
        super().__init__(msg)
