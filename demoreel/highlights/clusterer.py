from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from demoreel.config import HighlightSettings
from demoreel.models import HighlightWindow, Kill

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TickClock:
    """Converts wall-clock durations into demo ticks."""

    tick_duration_ms: float

    def ticks(self, seconds: float) -> int:
        return int(seconds * 1000 / self.tick_duration_ms)


def build_windows_from_settings(kills: Sequence[Kill], settings: HighlightSettings) -> list[HighlightWindow]:
    clock = TickClock(settings.tick_duration_ms)
    return build_windows(
        kills,
        gap_ticks=clock.ticks(settings.gap_seconds),
        lead_ticks=clock.ticks(settings.lead_seconds),
        trail_ticks=clock.ticks(settings.trail_seconds),
    )


def build_windows(
    kills: Sequence[Kill],
    *,
    gap_ticks: int,
    lead_ticks: int,
    trail_ticks: int,
) -> list[HighlightWindow]:
    """Group kills into padded highlight windows, in tick order.

    ``start_tick`` is the first kill minus the lead, ``end_tick`` the last
    kill plus the trail. Negative paddings count as zero and the start never
    goes below tick 0, so every kill stays inside its window.
    """

    lead = max(lead_ticks, 0)
    trail = max(trail_ticks, 0)

    windows: list[HighlightWindow] = []
    for idx, group in enumerate(group_kills(kills, gap_ticks=gap_ticks), start=1):
        first_tick = group[0].tick
        last_tick = group[-1].tick
        windows.append(
            HighlightWindow(
                index=idx,
                start_tick=max(first_tick - lead, 0),
                end_tick=last_tick + trail,
                kills=tuple(group),
            )
        )

    for window in windows:
        logger.debug(
            "Window %d: ticks %d-%d (%d kills)",
            window.index,
            window.start_tick,
            window.end_tick,
            len(window.kills),
        )
    return windows


def group_kills(kills: Sequence[Kill], *, gap_ticks: int) -> list[list[Kill]]:
    """Partition kills in one left-to-right pass.

    A kill joins the open group while it is less than ``gap_ticks`` after the
    group's most recent kill; the distance is measured from that last member,
    not from the group's first kill.
    """

    groups: list[list[Kill]] = []
    cursor = 0
    while cursor < len(kills):
        group = [kills[cursor]]
        cursor += 1
        while cursor < len(kills) and kills[cursor].tick - group[-1].tick < gap_ticks:
            group.append(kills[cursor])
            cursor += 1
        groups.append(group)
    return groups
