"""Run work inside another process's network namespace.

A network namespace belongs to a single OS thread, so switching the calling
thread would silently move every later socket it opens. Work is instead run
on a fresh dedicated thread that enters the target namespace, does its job,
switches back, and exits. The caller only waits, bounded by a timeout.

Example:
    >>> run_in_namespace(psutil.net_if_addrs, timeout=5)
"""

from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from typing import Callable, Optional, TypeVar

from writefile.logging import LoggerFactory
from writefile.storage.exceptions import NamespaceError

T = TypeVar("T")

HOST_NAMESPACE_PID = 1
THREAD_NAMESPACE_PATH = "/proc/thread-self/ns/net"
JOIN_GRACE_SECONDS = 5.0

log = LoggerFactory.for_network(job_id="netns")


def namespace_path(pid: int) -> str:
    return f"/proc/{pid}/ns/net"


def _open_namespace(path: str) -> int:
    try:
        return os.open(path, os.O_RDONLY)
    except OSError as e:
        raise NamespaceError(f"Could not open network namespace {path}: {e}") from e


def _set_namespace(fd: int, description: str) -> None:
    try:
        os.setns(fd, os.CLONE_NEWNET)
    except OSError as e:
        raise NamespaceError(f"Could not switch to {description} network namespace: {e}") from e


@contextmanager
def network_namespace(pid: int = HOST_NAMESPACE_PID):
    """Switch the calling thread into the network namespace of ``pid``.

    The thread's original namespace is restored on exit, including when the
    body raises. Only use this on a thread dedicated to the work inside it.

    Raises:
        NamespaceError: If a namespace cannot be opened or entered
    """
    original = _open_namespace(THREAD_NAMESPACE_PATH)
    try:
        target = _open_namespace(namespace_path(pid))
        try:
            _set_namespace(target, f"pid {pid}")
            log.trace(f"Entered network namespace of pid {pid}")
            try:
                yield
            finally:
                _set_namespace(original, "original")
                log.trace("Restored original network namespace")
        finally:
            os.close(target)
    finally:
        os.close(original)


def run_in_namespace(
    func: Callable[[], T],
    *,
    timeout: Optional[float] = None,
    pid: int = HOST_NAMESPACE_PID,
    name: str = "netns-worker",
) -> T:
    """Run ``func`` on a dedicated thread inside the namespace of ``pid``.

    Args:
        func: Zero-argument callable to run in the namespace
        timeout: Seconds to wait for ``func``; None waits indefinitely. A short
            grace period is added so ``func``'s own timeout can fire first.
        pid: Process whose network namespace is entered
        name: Worker thread name

    Returns:
        Whatever ``func`` returns

    Raises:
        TimeoutError: If the worker has not finished in time. The daemon worker
            is abandoned and never blocks interpreter exit.
        NamespaceError: If the namespace switch fails
        Exception: Anything raised by ``func`` is re-raised unchanged
    """
    outcome: dict[str, object] = {}

    def worker() -> None:
        try:
            with network_namespace(pid):
                outcome["value"] = func()
        except BaseException as e:
            outcome["error"] = e

    thread = threading.Thread(target=worker, name=name, daemon=True)
    thread.start()
    thread.join(None if timeout is None else timeout + JOIN_GRACE_SECONDS)

    if thread.is_alive():
        raise TimeoutError(f"{name} did not finish within {timeout:g}s")
    if "error" in outcome:
        raise outcome["error"]  # type: ignore[misc]
    return outcome["value"]  # type: ignore[return-value]
