# crawl_bridge/supervisor.py
"""
ProcessSupervisor: owns the spawn / drain / exit lifecycle of one child.

The exit code is advisory. It tells "the process ran" apart from "the
process could not run", never whether the crawl succeeded.

The child is started in its own session, so a forced termination takes down
the whole process group (browser and driver processes included).
"""
from __future__ import annotations

import asyncio
import codecs
import os
import signal
import time
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from crawl_bridge.errors import CrawlTimeoutError, SpawnError
from crawl_bridge.logger import CHILD_LOGGER, get_logger
from crawl_bridge.models import Lifecycle, ProcessHandle, Stage

__all__ = ("ProcessSupervisor", "StreamBuffer")

_CHUNK = 64 * 1024
_REAP_TIMEOUT = 5.0
#: characters kept per stream; the rest is drained and dropped
DEFAULT_OUTPUT_LIMIT = 16 * 1024 * 1024


class StreamBuffer:
    """Accumulates decoded chunks of one stream up to *limit* characters."""

    def __init__(self, limit: int = DEFAULT_OUTPUT_LIMIT) -> None:
        self.limit = limit
        self.size = 0
        self.dropped = 0
        self._chunks: List[str] = []

    def append(self, text: str) -> None:
        room = self.limit - self.size
        if room <= 0:
            self.dropped += len(text)
            return
        kept = text[:room]
        self._chunks.append(kept)
        self.size += len(kept)
        self.dropped += len(text) - len(kept)

    def getvalue(self) -> str:
        value = "".join(self._chunks)
        if self.dropped:
            value += f"\n[... {self.dropped} characters truncated]"
        return value


class ProcessSupervisor:
    """Runs ``[python_executable, *args]`` and reports a finished :class:`ProcessHandle`."""

    def __init__(
        self,
        python_executable: str,
        *,
        python_path: Sequence[os.PathLike | str] = (),
        env: Optional[Mapping[str, str]] = None,
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
    ) -> None:
        self.python_executable = python_executable
        self.python_path = [str(p) for p in python_path]
        self.extra_env = dict(env or {})
        self.output_limit = output_limit
        self.logger = get_logger("supervisor")
        self.child_logger = get_logger(CHILD_LOGGER)

    def _child_env(self) -> dict[str, str]:
        env = dict(os.environ)
        env.update(self.extra_env)
        env.setdefault("PYTHONUNBUFFERED", "1")
        env.setdefault("PYTHONIOENCODING", "utf-8")
        if self.python_path:
            existing = [env["PYTHONPATH"]] if env.get("PYTHONPATH") else []
            env["PYTHONPATH"] = os.pathsep.join(self.python_path + existing)
        return env

    async def run(
        self,
        args: Sequence[str],
        *,
        timeout: Optional[float] = None,
        lifecycle: Optional[Lifecycle] = None,
        cwd: Optional[os.PathLike | str] = None,
    ) -> ProcessHandle:
        """
        Spawn the child, drain both streams and wait for exit.

        Raises SpawnError if the child cannot start and CrawlTimeoutError if
        it outlives *timeout* seconds (its process group is killed first). On
        cancellation the group is killed and the child reaped before re-raising.
        """
        advance: Callable[[Stage], None] = lifecycle.advance if lifecycle else (lambda _s: None)
        argv: List[str] = [self.python_executable, *args]
        handle = ProcessHandle(argv=argv)
        buffers = {"stdout": StreamBuffer(self.output_limit), "stderr": StreamBuffer(self.output_limit)}

        advance(Stage.SPAWNING)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._child_env(),
                cwd=cwd,
                start_new_session=True,
            )
        except OSError as exc:
            raise SpawnError(f"Failed to start Python process: {exc}", argv) from exc

        handle.pid = proc.pid
        advance(Stage.RUNNING)
        self.logger.debug("Spawned pid=%s: %s", proc.pid, " ".join(argv))

        try:
            await asyncio.wait_for(self._drain_and_wait(proc, handle, buffers, advance), timeout=timeout)
        except asyncio.TimeoutError:
            handle.timed_out = True
            await self._kill(proc, handle)
            raise CrawlTimeoutError(
                f"Python process did not finish within {timeout} seconds", handle
            ) from None
        except asyncio.CancelledError:
            await self._kill(proc, handle)
            raise
        finally:
            handle.stdout = buffers["stdout"].getvalue()
            handle.stderr = buffers["stderr"].getvalue()
            handle.duration = time.monotonic() - handle.started_at

        self.logger.info("Python process %s exited with code %s", proc.pid, handle.returncode)
        return handle

    async def _drain_and_wait(
        self,
        proc: asyncio.subprocess.Process,
        handle: ProcessHandle,
        buffers: Dict[str, StreamBuffer],
        advance: Callable[[Stage], None],
    ) -> None:
        out = asyncio.ensure_future(self._pump(proc.stdout, buffers["stdout"], proc.pid, "stdout"))
        err = asyncio.ensure_future(self._pump(proc.stderr, buffers["stderr"], proc.pid, "stderr"))
        try:
            handle.returncode = await proc.wait()
            advance(Stage.DRAINING)
            # exit observed; the pumps still flush whatever is left in the pipes
            await asyncio.gather(out, err)
        finally:
            for task in (out, err):
                task.cancel()

    async def _pump(self, stream: asyncio.StreamReader, buffer: StreamBuffer, pid: int, name: str) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(_CHUNK)
            text = decoder.decode(chunk, final=not chunk)
            if text:
                buffer.append(text)
                self.child_logger.debug("Python %s [%s]: %s", name, pid, text.rstrip())
            if not chunk:
                return

    def _signal_group(self, proc: asyncio.subprocess.Process) -> None:
        try:
            if hasattr(os, "killpg"):
                # the child is the session leader, so its pid is the group id
                os.killpg(proc.pid, signal.SIGKILL)
            else:
                proc.kill()
        except (ProcessLookupError, PermissionError):
            pass

    async def _kill(self, proc: asyncio.subprocess.Process, handle: ProcessHandle) -> None:
        # group members may outlive the leader and keep the pipes open
        self._signal_group(proc)
        try:
            handle.returncode = await asyncio.wait_for(proc.wait(), timeout=_REAP_TIMEOUT)
        except asyncio.TimeoutError:
            self.logger.error("Python process %s did not exit after kill", proc.pid)
        self.logger.warning("Python process %s killed (returncode=%s)", proc.pid, handle.returncode)
