"""Core data models for transcript classification."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class IntentKind(Enum):
    """What a transcript asks the assistant to do"""
    START = "start"          # Begin a work order from its first step
    RESUME = "resume"        # Continue a work order from saved progress
    RESTART = "restart"      # Discard progress and begin again
    PROCEED = "proceed"      # Current step is done, move on
    QUERY = "query"          # Anything else, answered by the knowledge service

    @property
    def is_work_order_action(self) -> bool:
        return self in (IntentKind.START, IntentKind.RESUME, IntentKind.RESTART)


@dataclass(frozen=True)
class ClassifiedTranscript:
    """A transcript together with the single intent it was classified as."""

    kind: IntentKind
    text: str                              # Original transcript
    work_order_id: Optional[str] = None    # "WO-2024" for work order actions
    rule: Optional[str] = None             # Name of the rule that matched
