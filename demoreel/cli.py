from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from time import perf_counter
from typing import Any, Callable, TypeVar

import typer

from demoreel.config import Settings, load_settings
from demoreel.highlights.clusterer import build_windows_from_settings
from demoreel.highlights.kills import select_kills
from demoreel.ingest.parser import parse_demo
from demoreel.logging_config import configure_logging
from demoreel.models import HighlightWindow, PipelineResult, PostProcessResult
from demoreel.pipeline import run_highlight_pipeline
from demoreel.postprocess.segments import process_rendered_segments
from demoreel.render.jobs import build_render_jobs, build_renderer_command

app = typer.Typer(help="Render a stitched kill highlight reel from a recorded demo.")
config_app = typer.Typer(help="Configuration commands.")

app.add_typer(config_app, name="config")

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFIG_OPTION = typer.Option(
    Path("configs/default.yaml"),
    "--config",
    "-c",
    envvar="DEMOREEL_CONFIG",
    help="Path to YAML configuration file.",
)


def _run_with_progress(step_index: int, total_steps: int, label: str, work: Callable[[], T]) -> T:
    typer.echo(f"[{step_index}/{total_steps}] {label}...", err=True)
    started_at = perf_counter()
    try:
        result = work()
    except Exception:
        elapsed = perf_counter() - started_at
        typer.echo(f"[{step_index}/{total_steps}] {label} failed after {elapsed:.1f}s", err=True)
        raise
    elapsed = perf_counter() - started_at
    typer.echo(f"[{step_index}/{total_steps}] {label} done in {elapsed:.1f}s", err=True)
    return result


def _bootstrap(config_path: Path) -> Settings:
    settings = load_settings(config_path)
    configure_logging(settings.logging)
    logger.debug("Loaded runtime settings from %s", config_path)
    return settings


def _fail(exc: Exception) -> typer.Exit:
    logger.error("Pipeline failed: %s", exc)
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


@config_app.command("show")
def show_config(config_path: Path = CONFIG_OPTION) -> None:
    """Print resolved runtime configuration."""

    settings = _bootstrap(config_path)
    typer.echo(json.dumps(settings.model_dump(mode="json"), indent=2))


@app.command("parse")
def parse(demo_path: Path, config_path: Path = CONFIG_OPTION) -> None:
    """Run the demo parser and print a short summary of the match data."""

    settings = _bootstrap(config_path)
    try:
        _, record = parse_demo(demo_path, settings)
    except (RuntimeError, ValueError, FileNotFoundError) as exc:
        raise _fail(exc) from exc

    typer.echo(
        json.dumps(
            {
                "recorder": record.recorder_nick,
                "user_count": len(record.users),
                "death_count": len(record.deaths),
            },
            indent=2,
        )
    )


@app.command("plan")
def plan(demo_path: Path, config_path: Path = CONFIG_OPTION) -> None:
    """Show highlight windows and the renderer command without rendering."""

    settings = _bootstrap(config_path)
    try:
        _, record = parse_demo(demo_path, settings)
        kills = select_kills(record)
    except (RuntimeError, ValueError, FileNotFoundError) as exc:
        raise _fail(exc) from exc

    windows = build_windows_from_settings(kills, settings.highlights)
    jobs = build_render_jobs(windows, demo_path, settings)
    typer.echo(
        json.dumps(
            {
                "kill_count": len(kills),
                "windows": [_window_payload(window) for window in windows],
                "render_commands": [build_renderer_command(job, settings) for job in jobs],
            },
            indent=2,
        )
    )


@app.command("run")
def run_pipeline(demo_path: Path, config_path: Path = CONFIG_OPTION) -> None:
    """Parse a demo, render the recorder's kills and stitch one highlight video."""

    settings = _bootstrap(config_path)
    resolved_demo = demo_path.expanduser().resolve()
    total_steps = 2

    try:
        if not resolved_demo.exists():
            raise FileNotFoundError(f"Demo file not found: {resolved_demo}")

        _, record = _run_with_progress(1, total_steps, "Parse demo", lambda: parse_demo(resolved_demo, settings))
        result = _run_with_progress(
            2,
            total_steps,
            "Render highlights",
            lambda: run_highlight_pipeline(resolved_demo, record, settings),
        )
    except (RuntimeError, ValueError, FileNotFoundError) as exc:
        raise _fail(exc) from exc

    typer.echo(json.dumps(_result_payload(result), indent=2))


@app.command("postprocess")
def postprocess(demo_name: str, config_path: Path = CONFIG_OPTION) -> None:
    """Transcode and stitch segments already present in the movies directory."""

    settings = _bootstrap(config_path)
    try:
        result = asyncio.run(process_rendered_segments(demo_name, settings))
    except (RuntimeError, ValueError) as exc:
        raise _fail(exc) from exc

    typer.echo(json.dumps(_post_process_payload(result), indent=2))


@app.command("serve")
def serve(config_path: Path = CONFIG_OPTION) -> None:
    """Start the demo upload endpoint."""

    import uvicorn

    from demoreel.server import create_app

    settings = _bootstrap(config_path)
    uvicorn.run(create_app(settings), host=settings.server.host, port=settings.server.port)


def _window_payload(window: HighlightWindow) -> dict[str, Any]:
    return {
        "index": window.index,
        "start_tick": window.start_tick,
        "end_tick": window.end_tick,
        "kill_ticks": [kill.tick for kill in window.kills],
    }


def _post_process_payload(result: PostProcessResult | None) -> dict[str, Any] | None:
    if result is None:
        return None
    return {
        "status": result.status,
        "output_path": str(result.output_path) if result.output_path else None,
        "segment_count": result.segment_count,
        "cleanup_failures": result.cleanup_failures,
    }


def _result_payload(result: PipelineResult) -> dict[str, Any]:
    return {
        "status": "ok",
        "demo_path": str(result.demo_path),
        "kill_count": result.kill_count,
        "windows": [_window_payload(window) for window in result.windows],
        "render_failures": [outcome.error for outcome in result.render_failures],
        "post_process": _post_process_payload(result.post_process),
    }


if __name__ == "__main__":
    app()
