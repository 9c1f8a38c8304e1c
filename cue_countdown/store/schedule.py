"""Cue schedule derivation.

A schedule maps each selected cue id to the number of seconds remaining at
which it fires. It is derived once per run from a snapshot of the selection.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional

log = logging.getLogger(__name__)

BLACKOUT_CUE = "blackout"
GAMEOVER_CUE = "gameover"
BLACKOUT_AT = 60  # one minute left
GAMEOVER_AT = 5

_MINUTES_CUE = re.compile(r"^([0-9]+)min$")


def trigger_time(cue_id: str) -> Optional[int]:
    """Return the trigger offset for a single cue id, or None if unknown."""
    if cue_id == BLACKOUT_CUE:
        return BLACKOUT_AT
    if cue_id == GAMEOVER_CUE:
        return GAMEOVER_AT
    match = _MINUTES_CUE.match(cue_id)
    if match:
        return int(match.group(1)) * 60
    return None


def build_schedule(selection: Iterable[str], total_seconds: int) -> Dict[str, int]:
    """Map selected cue ids to trigger times (seconds remaining).

    Unknown ids are skipped. Entries whose trigger time lies beyond
    ``total_seconds`` are kept; see :func:`unreachable_cues`.
    """
    schedule: Dict[str, int] = {}
    for cue_id in sorted(set(selection)):
        trigger_at = trigger_time(cue_id)
        if trigger_at is None:
            log.debug("Skipping unknown cue id %r", cue_id)
            continue
        schedule[cue_id] = trigger_at
    return schedule


def unreachable_cues(schedule: Dict[str, int], total_seconds: int) -> List[str]:
    """Cue ids whose trigger time can never be observed in a run of this length."""
    return sorted(cue_id for cue_id, trigger_at in schedule.items() if trigger_at > total_seconds)
