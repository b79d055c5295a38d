"""Apply a boot configuration document to the output file with bootconfig."""

from __future__ import annotations

import contextlib
import os
import subprocess
from pathlib import Path

from writefile.logging import LoggerFactory
from writefile.storage.exceptions import BootConfigError

log = LoggerFactory.for_content()

BOOTCONFIG_TOOL = "/usr/bin/bootconfig"
BOOTCONFIG_INPUT_PATH = Path("/userInputBootConfig")


@contextlib.contextmanager
def staged_input(document: bytes, mode: int, path: Path = BOOTCONFIG_INPUT_PATH):
    """Write ``document`` to ``path`` for the duration of the block."""
    try:
        try:
            path.write_bytes(document)
            os.chmod(path, mode)
        except OSError as e:
            raise BootConfigError(f"Could not write bootconfig input {path}: {e}") from e
        yield path
    finally:
        with contextlib.suppress(FileNotFoundError):
            path.unlink()


def apply_bootconfig(
    document: bytes,
    output_path: Path,
    mode: int,
    tool: str = BOOTCONFIG_TOOL,
    input_path: Path = BOOTCONFIG_INPUT_PATH,
) -> str:
    """Run ``bootconfig -a <input> <output>`` to rewrite ``output_path`` in place.

    Args:
        document: Boot configuration supplied by the user
        output_path: File the tool appends the configuration to
        mode: Permission bits for the temporary input file
        tool: Path of the bootconfig executable
        input_path: Where the input document is staged

    Returns:
        Combined stdout/stderr of the tool

    Raises:
        BootConfigError: If staging fails, the tool cannot be started, or it
            exits non-zero
    """
    with staged_input(document, mode, input_path) as staged:
        command = [tool, "-a", str(staged), str(output_path)]
        log.debug(f"Running command: {' '.join(command)}")
        try:
            result = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            raise BootConfigError(f"Error running Bootconfig tool. Err: {e}") from e

    output = (result.stdout or "").strip()
    if result.returncode != 0:
        raise BootConfigError(
            f"Error running Bootconfig tool. Err: exit status {result.returncode}",
            output=output,
        )
    log.info(f"Applied boot configuration to {output_path}")
    return output
