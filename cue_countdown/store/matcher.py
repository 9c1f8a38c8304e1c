from typing import Dict, Set


def match_cues(time_remaining: int, schedule: Dict[str, int], fired: Set[str]) -> Set[str]:
    """Return cues that fire at exactly ``time_remaining`` and mark them fired.

    Matching is by equality: a tick that never lands on a cue's trigger time
    never fires it. ``fired`` is updated in place.
    """
    newly_fired: Set[str] = set()
    for cue_id, trigger_at in schedule.items():
        if time_remaining == trigger_at and cue_id not in fired:
            fired.add(cue_id)
            newly_fired.add(cue_id)
    return newly_fired
