from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from demoreel.errors import ProcessTimeout

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProcessResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str


def resolve_executable(path: str | Path) -> str:
    """Make path-like tool locations absolute; bare names stay on PATH lookup."""

    candidate = Path(path).expanduser()
    if len(candidate.parts) > 1 and not candidate.is_absolute():
        return str(candidate.resolve())
    return str(candidate)


async def run_process(
    argv: Sequence[str],
    *,
    cwd: str | Path | None = None,
    timeout_seconds: float | None = None,
) -> ProcessResult:
    """Run an external tool to completion, capturing both output streams.

    The child gets its own session so a deadline can kill the whole process
    group (renderers spawn the game client as a grandchild). Output read
    before a deadline is kept on the raised ``ProcessTimeout``. Launch errors
    such as a missing binary surface as ``OSError``.
    """

    command = [str(part) for part in argv]
    logger.debug("Launching: %s", " ".join(command))
    proc = await asyncio.create_subprocess_exec(
        *command,
        cwd=str(cwd) if cwd is not None else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=os.name == "posix",
    )

    stdout_chunks: list[bytes] = []
    stderr_chunks: list[bytes] = []
    try:
        await asyncio.wait_for(
            asyncio.gather(
                _drain(proc.stdout, stdout_chunks),
                _drain(proc.stderr, stderr_chunks),
                proc.wait(),
            ),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError:
        _kill_process_group(proc)
        await proc.wait()
        raise ProcessTimeout(
            command,
            timeout_seconds or 0.0,
            stdout=_decode(stdout_chunks),
            stderr=_decode(stderr_chunks),
        ) from None

    return ProcessResult(
        argv=command,
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=_decode(stdout_chunks),
        stderr=_decode(stderr_chunks),
    )


async def _drain(stream: asyncio.StreamReader | None, chunks: list[bytes]) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(65536)
        if not chunk:
            return
        chunks.append(chunk)


def _decode(chunks: list[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")


def _kill_process_group(proc: asyncio.subprocess.Process) -> None:
    # the group outlives its leader, so signal it even after the launcher exited
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        elif proc.returncode is None:
            proc.kill()
    except ProcessLookupError:
        pass
