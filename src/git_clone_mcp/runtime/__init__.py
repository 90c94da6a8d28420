"""Runtime module for git clone process management.

This module provides isolated clone execution with streamed progress
classification and forceful process tree termination.
"""

from __future__ import annotations

from .process_runner import LOG_TAG, ProcessRunner
from .process_tree import kill_process_tree, list_descendants

__all__ = [
    "LOG_TAG",
    "ProcessRunner",
    "kill_process_tree",
    "list_descendants",
]
