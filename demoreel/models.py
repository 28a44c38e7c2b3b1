from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, TypeAlias


@dataclass(frozen=True, slots=True)
class DeathEvent:
    """One death emitted by the demo parser."""

    killer_id: int
    victim_id: int
    tick: int


# A death credited to the recorder that is not a suicide.
Kill: TypeAlias = DeathEvent


@dataclass(frozen=True, slots=True)
class MatchRecord:
    """Parsed demo: header nick, user table and chronological deaths."""

    recorder_nick: str
    users: dict[int, str]
    deaths: tuple[DeathEvent, ...] = ()


@dataclass(frozen=True, slots=True)
class HighlightWindow:
    """A padded tick range covering one or more temporally close kills."""

    index: int
    start_tick: int
    end_tick: int
    kills: tuple[Kill, ...]

    @property
    def tick_range(self) -> tuple[int, int]:
        return (self.start_tick, self.end_tick)


@dataclass(frozen=True, slots=True)
class RenderOutput:
    directory: Path
    basename: str
    extension: str


@dataclass(frozen=True, slots=True)
class RenderJob:
    """One renderer invocation covering one or more tick ranges."""

    index: int
    ranges: tuple[tuple[int, int], ...]
    source_path: Path
    output: RenderOutput


@dataclass(slots=True)
class RenderOutcome:
    job_index: int
    ranges: tuple[tuple[int, int], ...]
    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.returncode == 0


@dataclass(slots=True)
class TranscodeResult:
    source: Path
    target: Path
    returncode: int | None
    stderr: str = ""
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.returncode == 0


@dataclass(slots=True)
class PostProcessResult:
    status: Literal["nothing_to_process", "completed"]
    output_path: Path | None = None
    segment_count: int = 0
    cleanup_failures: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PipelineResult:
    """Summary of one pipeline run over a single demo."""

    demo_path: Path
    kill_count: int
    windows: list[HighlightWindow] = field(default_factory=list)
    render_outcomes: list[RenderOutcome] = field(default_factory=list)
    post_process: PostProcessResult | None = None

    @property
    def render_failures(self) -> list[RenderOutcome]:
        return [outcome for outcome in self.render_outcomes if not outcome.succeeded]
