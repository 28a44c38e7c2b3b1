from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from demoreel.config import Settings
from demoreel.highlights.clusterer import build_windows_from_settings
from demoreel.highlights.kills import select_kills
from demoreel.models import MatchRecord, PipelineResult
from demoreel.postprocess.segments import process_rendered_segments
from demoreel.render.driver import run_render_jobs
from demoreel.render.jobs import build_render_jobs

logger = logging.getLogger(__name__)


class HighlightPipeline:
    """Kill selection, clustering, rendering and stitching for one demo.

    Holds no state between runs; callers must not point two concurrent runs
    at the same output directory.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def run(self, demo_path: str | Path, record: MatchRecord) -> PipelineResult:
        resolved_demo = Path(demo_path).expanduser().resolve()

        kills = select_kills(record)
        result = PipelineResult(demo_path=resolved_demo, kill_count=len(kills))
        if not kills:
            logger.info("No qualifying kills for %r; skipping render.", record.recorder_nick)
            return result

        result.windows = build_windows_from_settings(kills, self.settings.highlights)
        logger.info("Built %d highlight windows from %d kills.", len(result.windows), len(kills))

        jobs = build_render_jobs(result.windows, resolved_demo, self.settings)
        result.render_outcomes = await run_render_jobs(jobs, self.settings)
        if result.render_failures:
            logger.warning(
                "%d render jobs failed; post-processing whatever segments exist.",
                len(result.render_failures),
            )

        result.post_process = await process_rendered_segments(resolved_demo.stem, self.settings)
        return result


def run_highlight_pipeline(demo_path: str | Path, record: MatchRecord, settings: Settings) -> PipelineResult:
    return asyncio.run(HighlightPipeline(settings).run(demo_path, record))
