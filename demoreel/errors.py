from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class DemoReelError(RuntimeError):
    """Base class for highlight pipeline failures."""


class RecorderNotFoundError(DemoReelError):
    def __init__(self, recorder_nick: str) -> None:
        super().__init__(f"Recorder '{recorder_nick}' was not found in the demo user table.")
        self.recorder_nick = recorder_nick


class ParserFailure(DemoReelError):
    def __init__(self, demo_path: str | Path, message: str, stderr: str = "") -> None:
        details = f" Parser stderr: {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"Demo parser failed for {demo_path}: {message}.{details}")
        self.demo_path = Path(demo_path)
        self.stderr = stderr


class ProcessTimeout(DemoReelError):
    def __init__(self, argv: Sequence[str], timeout_seconds: float, stdout: str = "", stderr: str = "") -> None:
        super().__init__(f"{argv[0]} did not finish within {timeout_seconds:g}s and was killed.")
        self.argv = list(argv)
        self.timeout_seconds = timeout_seconds
        self.stdout = stdout
        self.stderr = stderr


class RenderInvocationFailure(DemoReelError):
    def __init__(self, job_index: int, message: str, stderr: str = "", returncode: int | None = None) -> None:
        super().__init__(f"Render job {job_index} failed: {message}")
        self.job_index = job_index
        self.stderr = stderr
        self.returncode = returncode


class TranscodeFailure(DemoReelError):
    def __init__(self, failed_segments: Sequence[Path], total: int) -> None:
        names = ", ".join(path.name for path in failed_segments)
        super().__init__(f"{len(failed_segments)} of {total} conversions failed ({names}); aborting before concatenation.")
        self.failed_segments = list(failed_segments)
        self.total = total


class ConcatenationFailure(DemoReelError):
    def __init__(self, manifest_path: Path, message: str, stderr: str = "") -> None:
        details = f" ffmpeg stderr: {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"Concatenation of {manifest_path} failed: {message}.{details}")
        self.manifest_path = manifest_path
        self.stderr = stderr


class CleanupFailure(DemoReelError):
    """Collected per file during cleanup and logged; never raised to callers."""

    def __init__(self, path: Path, reason: OSError) -> None:
        super().__init__(f"Could not delete {path}: {reason}")
        self.path = path
        self.reason = reason
