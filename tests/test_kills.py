from __future__ import annotations

import logging

import pytest

from demoreel.errors import RecorderNotFoundError
from demoreel.highlights.clusterer import build_windows
from demoreel.highlights.kills import resolve_recorder_id, select_kills
from demoreel.models import DeathEvent, MatchRecord


def test_select_kills_keeps_recorder_kills_in_order_and_drops_suicides() -> None:
    record = MatchRecord(
        recorder_nick="me",
        users={1: "me", 2: "enemy", 3: "other"},
        deaths=(
            DeathEvent(killer_id=1, victim_id=2, tick=50),
            DeathEvent(killer_id=2, victim_id=1, tick=60),
            DeathEvent(killer_id=1, victim_id=1, tick=70),
            DeathEvent(killer_id=3, victim_id=2, tick=80),
            DeathEvent(killer_id=1, victim_id=3, tick=90),
        ),
    )

    kills = select_kills(record)

    assert [(kill.victim_id, kill.tick) for kill in kills] == [(2, 50), (3, 90)]


def test_resolve_recorder_id_first_match_wins(caplog: pytest.LogCaptureFixture) -> None:
    record = MatchRecord(recorder_nick="twin", users={8: "twin", 4: "twin"})

    with caplog.at_level(logging.WARNING):
        assert resolve_recorder_id(record) == 8

    assert "matches user ids [8, 4]" in caplog.text


def test_resolve_recorder_id_raises_when_missing() -> None:
    record = MatchRecord(recorder_nick="ghost", users={1: "someone"})

    with pytest.raises(RecorderNotFoundError, match="ghost"):
        resolve_recorder_id(record)


def test_no_kills_is_an_empty_selection() -> None:
    record = MatchRecord(
        recorder_nick="me",
        users={1: "me", 2: "enemy"},
        deaths=(DeathEvent(killer_id=2, victim_id=1, tick=10),),
    )

    assert select_kills(record) == []


def test_single_kill_produces_single_window() -> None:
    kill = DeathEvent(killer_id=1, victim_id=2, tick=1000)
    record = MatchRecord(recorder_nick="me", users={1: "me", 2: "enemy"}, deaths=(kill,))

    windows = build_windows(select_kills(record), gap_ticks=666, lead_ticks=333, trail_ticks=133)

    assert len(windows) == 1
    assert windows[0].kills == (kill,)
