from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

import demoreel.cli as cli
from demoreel.config import Settings
from demoreel.errors import ParserFailure, TranscodeFailure
from demoreel.models import DeathEvent, MatchRecord, PipelineResult, PostProcessResult


def _record() -> MatchRecord:
    return MatchRecord(
        recorder_nick="me",
        users={1: "me", 2: "enemy"},
        deaths=(
            DeathEvent(killer_id=1, victim_id=2, tick=1000),
            DeathEvent(killer_id=1, victim_id=2, tick=5000),
        ),
    )


def test_run_command_prints_clean_error_without_traceback(tmp_path: Path, monkeypatch) -> None:
    demo_path = tmp_path / "match.dem"
    demo_path.write_bytes(b"data")

    monkeypatch.setattr(cli, "_bootstrap", lambda _: Settings())
    monkeypatch.setattr(
        cli,
        "parse_demo",
        lambda *_: (_ for _ in ()).throw(ParserFailure(demo_path, "parser exited with code 3", stderr="bad header")),
    )

    result = CliRunner().invoke(cli.app, ["run", str(demo_path)])

    assert result.exit_code == 1
    assert "[1/2] Parse demo..." in result.output
    assert "[1/2] Parse demo failed" in result.output
    assert "Error: Demo parser failed" in result.output
    assert "bad header" in result.output
    assert "Traceback" not in result.output


def test_run_command_shows_progress_for_all_stages(tmp_path: Path, monkeypatch) -> None:
    demo_path = tmp_path / "match.dem"
    demo_path.write_bytes(b"data")
    captured: dict[str, object] = {}

    def _fake_pipeline(path, record, settings):
        captured["path"] = path
        captured["record"] = record
        return PipelineResult(
            demo_path=path,
            kill_count=2,
            post_process=PostProcessResult(status="completed", output_path=tmp_path / "match-combined.mp4", segment_count=2),
        )

    monkeypatch.setattr(cli, "_bootstrap", lambda _: Settings())
    monkeypatch.setattr(cli, "parse_demo", lambda *_: ("{}", _record()))
    monkeypatch.setattr(cli, "run_highlight_pipeline", _fake_pipeline)

    result = CliRunner().invoke(cli.app, ["run", str(demo_path)])

    assert result.exit_code == 0
    assert "[1/2] Parse demo..." in result.output
    assert "[2/2] Render highlights done" in result.output
    assert '"status": "ok"' in result.output
    assert '"segment_count": 2' in result.output
    assert captured["path"] == demo_path.resolve()
    assert captured["record"] == _record()


def test_run_command_reports_transcode_gate(tmp_path: Path, monkeypatch) -> None:
    demo_path = tmp_path / "match.dem"
    demo_path.write_bytes(b"data")

    def _failing_pipeline(*_):
        raise TranscodeFailure([tmp_path / "movie2.mov"], total=3)

    monkeypatch.setattr(cli, "_bootstrap", lambda _: Settings())
    monkeypatch.setattr(cli, "parse_demo", lambda *_: ("{}", _record()))
    monkeypatch.setattr(cli, "run_highlight_pipeline", _failing_pipeline)

    result = CliRunner().invoke(cli.app, ["run", str(demo_path)])

    assert result.exit_code == 1
    assert "[2/2] Render highlights failed" in result.output
    assert "1 of 3 conversions failed (movie2.mov)" in result.output


def test_run_command_rejects_missing_demo(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(cli, "_bootstrap", lambda _: Settings())

    result = CliRunner().invoke(cli.app, ["run", str(tmp_path / "absent.dem")])

    assert result.exit_code == 1
    assert "Error: Demo file not found" in result.output


def test_plan_command_prints_windows_and_render_command(tmp_path: Path, monkeypatch) -> None:
    demo_path = tmp_path / "match.dem"
    demo_path.write_bytes(b"data")

    monkeypatch.setattr(cli, "_bootstrap", lambda _: Settings())
    monkeypatch.setattr(cli, "parse_demo", lambda *_: ("{}", _record()))

    result = CliRunner().invoke(cli.app, ["plan", str(demo_path)])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["kill_count"] == 2
    assert [(window["start_tick"], window["end_tick"]) for window in payload["windows"]] == [
        (667, 1133),
        (4667, 5133),
    ]
    assert payload["render_commands"][0][-2:] == ["-ranges", "667:1133,4667:5133"]
