from __future__ import annotations

import logging

from demoreel.errors import RecorderNotFoundError
from demoreel.models import Kill, MatchRecord

logger = logging.getLogger(__name__)


def resolve_recorder_id(record: MatchRecord) -> int:
    """Return the user id whose name matches the demo header nick.

    Names are not unique in the user table; the first match in table order
    wins and any other matches are reported.
    """

    matches = [user_id for user_id, name in record.users.items() if name == record.recorder_nick]
    if not matches:
        raise RecorderNotFoundError(record.recorder_nick)

    if len(matches) > 1:
        logger.warning(
            "Recorder name %r matches user ids %s; using %s.",
            record.recorder_nick,
            matches,
            matches[0],
        )
    return matches[0]


def select_kills(record: MatchRecord) -> list[Kill]:
    recorder_id = resolve_recorder_id(record)
    kills = [
        death
        for death in record.deaths
        if death.killer_id == recorder_id and death.killer_id != death.victim_id
    ]
    logger.info("Recorder %r (id %s) has %d kills.", record.recorder_nick, recorder_id, len(kills))
    return kills
