from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from demoreel.config import Settings
from demoreel.models import HighlightWindow, RenderJob, RenderOutput
from demoreel.process import resolve_executable


def build_render_jobs(
    windows: Sequence[HighlightWindow],
    demo_path: str | Path,
    settings: Settings,
) -> list[RenderJob]:
    """Batch every window into a single renderer invocation.

    The renderer writes one ``<basename><n><ext>`` file per range, numbering
    them in the order the ranges are given, so window order is preserved
    through the segment ordinals.
    """

    if not windows:
        return []

    return [
        RenderJob(
            index=1,
            ranges=tuple(window.tick_range for window in windows),
            source_path=Path(demo_path).expanduser().resolve(),
            output=RenderOutput(
                directory=Path(settings.tools.sdr_dir).expanduser().resolve(),
                basename=settings.render.output_basename,
                extension=settings.render.raw_extension,
            ),
        )
    ]


def format_ranges(ranges: Sequence[tuple[int, int]]) -> str:
    return ",".join(f"{start}:{end}" for start, end in ranges)


def build_renderer_command(job: RenderJob, settings: Settings) -> list[str]:
    render = settings.render
    return [
        resolve_executable(settings.tools.renderer_path),
        "-exepath",
        str(settings.tools.game_executable),
        "-demo",
        str(job.source_path),
        "-launch",
        f"-width {render.width} -height {render.height}",
        "-out",
        job.output.basename,
        "-cmd",
        render.console_commands,
        "-sdrdir",
        str(job.output.directory),
        "-loglevel",
        render.log_level,
        "-ranges",
        format_ranges(job.ranges),
    ]
