from __future__ import annotations

import json
import subprocess
from pathlib import Path

from demoreel.config import Settings
from demoreel.errors import ParserFailure
from demoreel.ingest.match_data import parse_match_payload
from demoreel.models import MatchRecord
from demoreel.process import resolve_executable


def parse_demo(demo_path: str | Path, settings: Settings) -> tuple[str, MatchRecord]:
    """Run the demo parser and return its raw payload alongside the typed record."""

    payload = run_parser(demo_path, settings)
    try:
        record = parse_match_payload(payload)
    except json.JSONDecodeError as exc:
        raise ParserFailure(demo_path, f"parser returned invalid JSON ({exc.msg})") from exc
    except ValueError as exc:
        raise ParserFailure(demo_path, str(exc)) from exc
    return payload, record


def run_parser(demo_path: str | Path, settings: Settings) -> str:
    source_path = Path(demo_path).expanduser().resolve()
    if not source_path.exists():
        raise FileNotFoundError(f"Demo file not found: {source_path}")

    command = [resolve_executable(settings.tools.parser_path), str(source_path)]

    try:
        completed = subprocess.run(
            command,
            check=True,
            capture_output=True,
            text=True,
            timeout=settings.timeouts.parser_seconds,
        )
    except FileNotFoundError as exc:
        raise ParserFailure(
            source_path,
            f"parser executable was not found at {settings.tools.parser_path}",
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise ParserFailure(
            source_path,
            f"parser did not finish within {settings.timeouts.parser_seconds:g}s",
        ) from exc
    except subprocess.CalledProcessError as exc:
        raise ParserFailure(
            source_path,
            f"parser exited with code {exc.returncode}",
            stderr=exc.stderr or "",
        ) from exc
    except OSError as exc:
        raise ParserFailure(source_path, f"parser could not be started ({exc})") from exc

    return completed.stdout
