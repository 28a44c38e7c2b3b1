from __future__ import annotations

import json
import logging
from typing import Any

from demoreel.models import DeathEvent, MatchRecord

logger = logging.getLogger(__name__)


def parse_match_payload(payload: str | dict[str, Any]) -> MatchRecord:
    """Convert the parser's JSON document into a MatchRecord."""

    data = json.loads(payload) if isinstance(payload, str) else payload
    if not isinstance(data, dict):
        raise ValueError("Demo payload must be a JSON object.")

    header = data.get("header")
    if not isinstance(header, dict) or not isinstance(header.get("nick"), str):
        raise ValueError("Demo payload is missing header.nick.")

    raw_users = data.get("users", {})
    if not isinstance(raw_users, dict):
        raise ValueError("Demo payload users must be an object keyed by user id.")

    users: dict[int, str] = {}
    for raw_id, entry in raw_users.items():
        user_id = _to_int(raw_id, f"users[{raw_id!r}]")
        if not isinstance(entry, dict) or "name" not in entry:
            raise ValueError(f"users[{raw_id!r}] must be an object with a name.")
        users[user_id] = str(entry["name"])

    raw_deaths = data.get("deaths", [])
    if not isinstance(raw_deaths, list):
        raise ValueError("Demo payload deaths must be an array.")

    deaths: list[DeathEvent] = []
    for idx, row in enumerate(raw_deaths):
        if not isinstance(row, dict):
            raise ValueError(f"deaths[{idx}] must be an object.")
        deaths.append(
            DeathEvent(
                killer_id=_to_int(row.get("killer"), f"deaths[{idx}].killer"),
                victim_id=_to_int(row.get("victim"), f"deaths[{idx}].victim"),
                tick=_to_int(row.get("tick"), f"deaths[{idx}].tick"),
            )
        )

    if any(later.tick < earlier.tick for earlier, later in zip(deaths, deaths[1:])):
        logger.warning("Death events are not in ascending tick order; highlight windows may be split.")

    return MatchRecord(recorder_nick=header["nick"], users=users, deaths=tuple(deaths))


def _to_int(raw_value: Any, location: str) -> int:
    if isinstance(raw_value, bool):
        raise ValueError(f"{location} must be an integer, got {raw_value!r}.")
    try:
        return int(raw_value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{location} must be an integer, got {raw_value!r}.") from exc
