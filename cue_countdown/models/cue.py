from pydantic import BaseModel, ConfigDict
from typing import Dict, List


class CueDefinition(BaseModel):
    """A static catalog entry for a cue the operator can select."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str


# Cue options offered on the setup screen.
CUE_OPTIONS: List[CueDefinition] = [
    CueDefinition(id="40min", label="40 Minutes Remaining"),
    CueDefinition(id="30min", label="30 Minutes Remaining"),
    CueDefinition(id="10min", label="10 Minutes Remaining"),
    CueDefinition(id="5min", label="5 Minutes Remaining"),
    CueDefinition(id="blackout", label="Blackout"),
    CueDefinition(id="gameover", label="Game Over"),
]


def cue_labels() -> Dict[str, str]:
    return {cue.id: cue.label for cue in CUE_OPTIONS}
