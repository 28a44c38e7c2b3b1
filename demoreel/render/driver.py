from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from demoreel.config import Settings
from demoreel.errors import ProcessTimeout, RenderInvocationFailure
from demoreel.models import RenderJob, RenderOutcome
from demoreel.process import run_process
from demoreel.render.jobs import build_renderer_command

logger = logging.getLogger(__name__)


async def run_render_jobs(jobs: Sequence[RenderJob], settings: Settings) -> list[RenderOutcome]:
    """Run renderer jobs one after another and record every outcome.

    The renderer drives a single game client, so jobs never overlap. A failed
    job is recorded and the remaining jobs are still attempted; whether
    anything usable was produced is decided later from the files on disk.
    """

    outcomes: list[RenderOutcome] = []
    for job in jobs:
        outcome = await render_job(job, settings)
        if outcome.succeeded:
            logger.info("Render job %d completed (%d ranges).", job.index, len(job.ranges))
        else:
            logger.error("%s", outcome.error)
        outcomes.append(outcome)

    failed = sum(1 for outcome in outcomes if not outcome.succeeded)
    logger.info("Rendering finished: %d/%d jobs succeeded.", len(outcomes) - failed, len(outcomes))
    return outcomes


async def render_job(job: RenderJob, settings: Settings) -> RenderOutcome:
    command = build_renderer_command(job, settings)
    Path(job.output.directory).mkdir(parents=True, exist_ok=True)
    logger.info("Rendering %d ranges from %s", len(job.ranges), job.source_path.name)

    try:
        result = await run_process(
            command,
            cwd=settings.tools.renderer_workdir,
            timeout_seconds=settings.timeouts.render_seconds,
        )
    except ProcessTimeout as exc:
        failure = RenderInvocationFailure(job.index, str(exc), stderr=exc.stderr)
        return RenderOutcome(
            job_index=job.index,
            ranges=job.ranges,
            returncode=None,
            stdout=exc.stdout,
            stderr=exc.stderr,
            error=str(failure),
        )
    except OSError as exc:
        failure = RenderInvocationFailure(job.index, f"renderer could not be started ({exc})")
        return RenderOutcome(job_index=job.index, ranges=job.ranges, returncode=None, error=str(failure))

    if result.stdout.strip():
        logger.debug("Renderer stdout:\n%s", result.stdout.rstrip())
    if result.stderr.strip():
        logger.debug("Renderer stderr:\n%s", result.stderr.rstrip())

    error = None
    if result.returncode != 0:
        failure = RenderInvocationFailure(
            job.index,
            f"renderer exited with code {result.returncode}: {result.stderr.strip() or 'no error output'}",
            stderr=result.stderr,
            returncode=result.returncode,
        )
        error = str(failure)

    return RenderOutcome(
        job_index=job.index,
        ranges=job.ranges,
        returncode=result.returncode,
        stdout=result.stdout,
        stderr=result.stderr,
        error=error,
    )
