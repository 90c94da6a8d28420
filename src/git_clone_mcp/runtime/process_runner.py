"""Process runner supervising a single git clone.

git-clone-mcp runtime module v0.1.0

This module provides:
- Non-blocking clone start returning a completion future
- Concurrent stdout/stderr streaming with chunk classification
- Single-resolution completion (first outcome wins)
- Forceful cancellation that kills the whole process tree

Key design points:
- stdout, stderr and process exit are three independent event sources.
  Each one only feeds a queue; one coordinator task consumes the queue and
  is the only code that mutates run state or settles the future.
- POSIX: start_new_session=True so the clone leads its own process group
- Windows: CREATE_NEW_PROCESS_GROUP
- A run killed by cancel() is never resolved by the exit path
- Descendants are snapshotted while git runs; leftovers are killed once
  git exits and the runner is released without waiting for their pipes
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import subprocess
from dataclasses import dataclass, field
from typing import Any, Literal

import psutil

from ..errors import (
    CloneInProgressError,
    NonZeroExitError,
    ProcessSpawnError,
    RemoteOrToolError,
)
from ..notifier import NullCloneLogger
from ..parsers import ErrorChunk, ProgressUpdate, classify, to_progress_update
from ..types import CloneLoggerProtocol, CloneTask, NullProgressSink, ProgressSink
from .process_tree import IS_WINDOWS, kill_process_tree, list_descendants

__all__ = [
    "ProcessRunner",
    "LOG_TAG",
]

logger = logging.getLogger(__name__)

LOG_TAG = "Cloning"

# Bytes per pipe read
DEFAULT_READ_SIZE = 4096

# Seconds between descendant snapshots while git runs
TREE_POLL_INTERVAL = 0.2

# Seconds to keep reading pipes once git has exited
EXIT_DRAIN_TIMEOUT = 2.0


@dataclass
class _StreamEvent:
    """One item flowing from a pump or the exit waiter to the coordinator."""

    kind: Literal["chunk", "eof", "exit"]
    stream: str = ""
    text: str = ""
    returncode: int | None = None


@dataclass
class _CloneRun:
    """Per-clone state, owned by the coordinator task.

    Attributes:
        task: The clone being executed
        sink: Progress receiver
        completion: Single-resolution outcome future
        process: Subprocess handle once spawned
        cancelled: Set by ProcessRunner.cancel()
        descendants: Every descendant seen while git was alive, by pid
    """

    task: CloneTask
    sink: ProgressSink
    completion: asyncio.Future[None]
    process: asyncio.subprocess.Process | None = None
    cancelled: bool = False
    descendants: dict[int, psutil.Process] = field(default_factory=dict)


class ProcessRunner:
    """Run one ``git clone`` at a time and report on it.

    Example:
        runner = ProcessRunner(logger=clone_logger)
        task = CloneTask(
            name="ESP-IDF",
            repository="https://github.com/espressif/esp-idf.git",
            branch="release/v5.0",
            install_dir=Path("/opt/esp"),
        )

        completion = runner.start_clone(task, sink)
        try:
            await asyncio.shield(completion)
        except asyncio.CancelledError:
            runner.cancel()
            raise
    """

    def __init__(
        self,
        logger: CloneLoggerProtocol | None = None,
        *,
        terminate_on_error: bool = True,
        read_size: int = DEFAULT_READ_SIZE,
    ) -> None:
        """Initialize the runner.

        Args:
            logger: Log/notification collaborator (no-op when None)
            terminate_on_error: Kill the process tree once an "Error"
                marker has failed the clone
            read_size: Bytes per pipe read
        """
        self._logger: CloneLoggerProtocol = logger if logger is not None else NullCloneLogger()
        self.terminate_on_error = terminate_on_error
        self._read_size = read_size

        self._run: _CloneRun | None = None
        self._process: asyncio.subprocess.Process | None = None
        self._supervisors: set[asyncio.Task[None]] = set()

    @property
    def is_running(self) -> bool:
        """Whether a clone is currently owned by this runner."""
        return self._run is not None

    @property
    def pid(self) -> int | None:
        """PID of the running git process, if spawned."""
        return self._process.pid if self._process is not None else None

    def start_clone(
        self,
        task: CloneTask,
        sink: ProgressSink | None = None,
    ) -> asyncio.Future[None]:
        """Start cloning and return the pending completion future.

        Must be called from a running event loop. Returns immediately.

        Args:
            task: Clone to execute
            sink: Optional progress receiver

        Returns:
            Future resolved with None on success or failed with a CloneError.
            Left pending forever if the clone is cancelled.

        Raises:
            CloneInProgressError: If a clone is already running
        """
        if self._run is not None:
            raise CloneInProgressError(
                f"A clone is already running on this runner ({self._run.task.name})"
            )

        loop = asyncio.get_running_loop()
        run = _CloneRun(
            task=task,
            sink=sink if sink is not None else NullProgressSink(),
            completion=loop.create_future(),
        )
        self._run = run
        supervisor = loop.create_task(self._supervise(run), name=f"clone-{task.name}")
        self._supervisors.add(supervisor)
        supervisor.add_done_callback(self._supervisors.discard)
        return run.completion

    def cancel(self) -> None:
        """Kill the running clone and its whole process tree.

        Idempotent: a no-op when nothing is running. The completion future
        of the cancelled run is left unresolved.
        """
        run = self._run
        if run is None:
            return

        run.cancelled = True
        self._run = None
        self._process = None

        if run.process is not None:
            self._kill_tree(run, run.process)

        message = f"[{run.task.name} Cloning] : Stopped!"
        logger.info(message)
        self._log_info(message)

    async def wait_closed(self) -> None:
        """Wait until every supervised process has been reaped and its pipes closed."""
        if self._supervisors:
            await asyncio.gather(*list(self._supervisors), return_exceptions=True)

    # =========================================================================
    # Coordinator
    # =========================================================================

    async def _supervise(self, run: _CloneRun) -> None:
        task = run.task
        argv = task.build_argv()

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=task.install_dir,
                **self._build_subprocess_kwargs(),
            )
        except Exception as e:
            # OSError for a missing binary, ValueError for NUL bytes in argv
            error = ProcessSpawnError(f"Failed to start {argv[0]}: {e}", argv)
            logger.warning(str(error))
            self._log_error_notify("Cloning error", error)
            self._settle(run, error)
            self._release(run)
            return

        run.process = process
        if self._run is run:
            self._process = process

        logger.debug(
            f"Started clone pid={process.pid} "
            f"argv={' '.join(argv)} cwd={task.install_dir}"
        )

        # cancel() arrived while the process was being created
        if run.cancelled:
            self._kill_tree(run, process)

        queue: asyncio.Queue[_StreamEvent] = asyncio.Queue()
        helpers = [
            asyncio.create_task(self._pump(process.stdout, "stdout", queue)),
            asyncio.create_task(self._pump(process.stderr, "stderr", queue)),
            asyncio.create_task(self._wait_exit(process, queue)),
            asyncio.create_task(self._track_descendants(run, process)),
        ]

        loop = asyncio.get_running_loop()
        open_streams = 2
        drain_deadline: float | None = None
        try:
            while open_streams or drain_deadline is None:
                if drain_deadline is None:
                    event = await queue.get()
                else:
                    try:
                        event = await asyncio.wait_for(
                            queue.get(), max(drain_deadline - loop.time(), 0)
                        )
                    except asyncio.TimeoutError:
                        logger.warning(
                            f"[{task.name}] pipes still open {EXIT_DRAIN_TIMEOUT}s "
                            f"after git exited, closing pid={process.pid}"
                        )
                        break

                if event.kind == "chunk":
                    self._handle_chunk(run, event.text)
                elif event.kind == "eof":
                    open_streams -= 1
                else:
                    self._handle_exit(run, event.returncode)
                    if run.cancelled:
                        break
                    # Helpers left behind by git are killed and the runner
                    # accepts a new clone; output already piped is still read
                    self._kill_tree(run, process)
                    self._release(run)
                    drain_deadline = loop.time() + EXIT_DRAIN_TIMEOUT
        finally:
            for helper in helpers:
                if not helper.done():
                    helper.cancel()
            await asyncio.gather(*helpers, return_exceptions=True)

            if process.returncode is None:
                logger.debug(f"Supervisor exiting with live process pid={process.pid}")
            self._kill_tree(run, process)

            self._release(run)

            logger.debug(
                f"Clone supervisor finished pid={process.pid} "
                f"returncode={process.returncode} cancelled={run.cancelled}"
            )

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        name: str,
        queue: asyncio.Queue[_StreamEvent],
    ) -> None:
        """Forward raw decoded chunks from one pipe, then an EOF marker."""
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            if stream is None:
                return
            while True:
                data = await stream.read(self._read_size)
                if not data:
                    tail = decoder.decode(b"", final=True)
                    if tail:
                        queue.put_nowait(_StreamEvent("chunk", name, text=tail))
                    break
                text = decoder.decode(data)
                if text:
                    queue.put_nowait(_StreamEvent("chunk", name, text=text))
        finally:
            queue.put_nowait(_StreamEvent("eof", name))

    async def _wait_exit(
        self,
        process: asyncio.subprocess.Process,
        queue: asyncio.Queue[_StreamEvent],
    ) -> None:
        returncode = await process.wait()
        queue.put_nowait(_StreamEvent("exit", returncode=returncode))

    async def _track_descendants(
        self,
        run: _CloneRun,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Remember descendants so they can be killed after reparenting."""
        while process.returncode is None:
            for child in list_descendants(process.pid):
                run.descendants.setdefault(child.pid, child)
            await asyncio.sleep(TREE_POLL_INTERVAL)

    def _handle_chunk(self, run: _CloneRun, text: str) -> None:
        """Log a chunk and turn it into an error or a progress update."""
        self._log_info(text)

        if run.cancelled or run.completion.done():
            return

        chunk = classify(text)

        if isinstance(chunk, ErrorChunk):
            self._settle(run, RemoteOrToolError(text))
            process = run.process
            if self.terminate_on_error and process is not None and process.returncode is None:
                logger.warning(
                    f"[{run.task.name}] error marker in output, "
                    f"terminating process tree pid={process.pid}"
                )
                self._kill_tree(run, process)
            return

        update = to_progress_update(chunk)
        if update is not None:
            self._report(run, update)

    def _handle_exit(self, run: _CloneRun, returncode: int | None) -> None:
        if run.cancelled:
            logger.debug(f"[{run.task.name}] exit after cancellation returncode={returncode}")
            return

        if run.completion.done():
            logger.debug(f"[{run.task.name}] exit after outcome settled returncode={returncode}")
            return

        if returncode != 0:
            error = NonZeroExitError(run.task.name, returncode if returncode is not None else -1)
            self._log_info(str(error))
            self._log_error_notify("Cloning error", error)
            self._settle(run, error)
            return

        self._settle(run, None)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _build_subprocess_kwargs() -> dict[str, Any]:
        """Build platform-specific isolation kwargs."""
        if IS_WINDOWS:
            return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
        return {"start_new_session": True}

    @staticmethod
    def _kill_tree(run: _CloneRun, process: asyncio.subprocess.Process) -> None:
        """Kill git (while unreaped) plus every descendant seen so far."""
        kill_process_tree(
            process.pid,
            pgid=None if IS_WINDOWS else process.pid,
            known=list(run.descendants.values()),
            include_root=process.returncode is None,
        )

    @staticmethod
    def _settle(run: _CloneRun, error: BaseException | None) -> bool:
        """Resolve or reject the run's future; only the first call wins."""
        if run.completion.done():
            return False
        if error is None:
            run.completion.set_result(None)
        else:
            run.completion.set_exception(error)
        return True

    def _release(self, run: _CloneRun) -> None:
        """Drop references to ``run`` unless a newer run replaced it."""
        if self._run is run:
            self._run = None
            self._process = None

    def _report(self, run: _CloneRun, update: ProgressUpdate) -> None:
        try:
            run.sink.report(update.message, update.detail)
        except Exception as e:
            logger.warning(f"Progress sink failed: {e}")

    def _log_info(self, text: str) -> None:
        try:
            self._logger.info(text, LOG_TAG)
        except Exception as e:
            logger.debug(f"Clone logger failed: {e}")

    def _log_error_notify(self, text: str, error: BaseException) -> None:
        try:
            self._logger.error_notify(text, error, LOG_TAG)
        except Exception as e:
            logger.debug(f"Clone logger failed: {e}")
