from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest

from demoreel.config import Settings
from demoreel.errors import ParserFailure
from demoreel.ingest import parser


def _demo(tmp_path: Path) -> Path:
    demo_path = tmp_path / "match.dem"
    demo_path.write_bytes(b"HL2DEMO")
    return demo_path


def test_run_parser_wraps_missing_binary_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise_missing(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError("parse_demo.exe")

    monkeypatch.setattr(subprocess, "run", _raise_missing)

    with pytest.raises(ParserFailure, match="parser executable was not found"):
        parser.run_parser(_demo(tmp_path), Settings())


def test_run_parser_reports_stderr_on_non_zero_exit(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise_process_error(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        raise subprocess.CalledProcessError(
            returncode=1,
            cmd=["parse_demo.exe"],
            output="",
            stderr="unsupported demo protocol 24",
        )

    monkeypatch.setattr(subprocess, "run", _raise_process_error)

    with pytest.raises(ParserFailure, match="exited with code 1. Parser stderr: unsupported demo protocol 24"):
        parser.run_parser(_demo(tmp_path), Settings())


def test_run_parser_reports_timeout(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise_timeout(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        raise subprocess.TimeoutExpired(cmd=["parse_demo.exe"], timeout=120)

    monkeypatch.setattr(subprocess, "run", _raise_timeout)

    with pytest.raises(ParserFailure, match="did not finish within 120s"):
        parser.run_parser(_demo(tmp_path), Settings())


def test_run_parser_passes_demo_path_as_only_argument(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def _fake_run(command, **kwargs):
        captured["command"] = command
        captured["timeout"] = kwargs["timeout"]
        return subprocess.CompletedProcess(command, 0, stdout='{"ok": true}', stderr="")

    monkeypatch.setattr(subprocess, "run", _fake_run)
    demo = _demo(tmp_path)

    assert parser.run_parser(demo, Settings()) == '{"ok": true}'
    assert captured["command"][1:] == [str(demo.resolve())]
    assert captured["timeout"] == 120.0


def test_run_parser_requires_existing_demo(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="Demo file not found"):
        parser.run_parser(tmp_path / "absent.dem", Settings())


def test_parse_demo_returns_payload_and_record(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    payload = json.dumps(
        {
            "header": {"nick": "me"},
            "users": {"1": {"name": "me"}},
            "deaths": [{"killer": 1, "victim": 2, "tick": 10}],
        }
    )
    monkeypatch.setattr(parser, "run_parser", lambda *_: payload)

    raw, record = parser.parse_demo(_demo(tmp_path), Settings())

    assert raw == payload
    assert record.recorder_nick == "me"
    assert len(record.deaths) == 1


def test_parse_demo_maps_invalid_json_to_parser_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(parser, "run_parser", lambda *_: "Segmentation fault")

    with pytest.raises(ParserFailure, match="invalid JSON"):
        parser.parse_demo(_demo(tmp_path), Settings())
