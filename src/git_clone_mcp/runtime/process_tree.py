"""Forceful process tree termination.

git-clone-mcp runtime module v0.1.0

A recursive clone spawns helpers (git-remote-https, index-pack, nested
clones for submodules). Killing only the top-level git would orphan them,
so termination works on the whole tree:

- Snapshot descendants with psutil *before* signalling (once the root dies
  its children are reparented and no longer reachable from it)
- POSIX: SIGKILL the process group (the root runs in its own session)
- Then SIGKILL every snapshotted descendant that is still alive, which
  covers children that moved to another session or group
- Windows: kill descendants, then the root

No graceful phase: SIGTERM is never sent.
"""

from __future__ import annotations

import logging
import os
import signal
import sys
from typing import Iterable

import psutil

__all__ = [
    "IS_WINDOWS",
    "kill_process_tree",
    "list_descendants",
]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"


def list_descendants(pid: int) -> list[psutil.Process]:
    """Return all live descendants of ``pid`` (empty if it is gone)."""
    try:
        return psutil.Process(pid).children(recursive=True)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return []


def kill_process_tree(
    pid: int,
    *,
    pgid: int | None = None,
    known: Iterable[psutil.Process] = (),
    include_root: bool = True,
) -> int:
    """SIGKILL ``pid`` and all of its descendants.

    Never raises for processes that already exited.

    Args:
        pid: Root process id (a session/group leader on POSIX)
        pgid: Process group to kill; looked up from ``pid`` when None
        known: Descendants seen earlier; they may have been reparented
            since and no longer show up under ``pid``
        include_root: False once the root has been reaped, so a recycled
            pid is never signalled or walked

    Returns:
        Number of descendant processes signalled individually
    """
    descendants = list_descendants(pid) if include_root else []
    seen = {child.pid for child in descendants}
    for child in known:
        if child.pid not in seen:
            seen.add(child.pid)
            descendants.append(child)

    if IS_WINDOWS:
        _kill_descendants(descendants)
        if include_root:
            _kill_pid(pid)
    else:
        _posix_kill_group(pid, pgid)
        if include_root:
            _kill_pid(pid)
        _kill_descendants(descendants)

    logger.debug(f"Killed process tree pid={pid} descendants={len(descendants)}")
    return len(descendants)


def _posix_kill_group(pid: int, pgid: int | None = None) -> None:
    """Send SIGKILL to ``pgid``, or to the process group of ``pid``."""
    if pgid is None:
        try:
            pgid = os.getpgid(pid)
        except ProcessLookupError:
            return
        except OSError as e:
            logger.debug(f"getpgid failed for pid={pid}: {e}")
            return

    # Never signal our own group
    if pgid == os.getpgrp():
        logger.debug(f"pid={pid} shares our process group, skipping killpg")
        return

    try:
        os.killpg(pgid, signal.SIGKILL)
        logger.debug(f"Sent SIGKILL to process group pgid={pgid}")
    except ProcessLookupError:
        pass
    except OSError as e:
        logger.debug(f"killpg failed for pgid={pgid}: {e}")


def _kill_pid(pid: int) -> None:
    try:
        psutil.Process(pid).kill()
    except psutil.NoSuchProcess:
        pass
    except psutil.AccessDenied as e:
        logger.warning(f"Access denied killing pid={pid}: {e}")


def _kill_descendants(descendants: list[psutil.Process]) -> None:
    for child in descendants:
        try:
            if child.is_running():
                child.kill()
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as e:
            logger.warning(f"Access denied killing descendant pid={child.pid}: {e}")
