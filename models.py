"""
Data model for watched programs and check results
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from errors import CheckErrorKind


class ProgramStatus(Enum):
    UNKNOWN = 'Unknown'
    UNAVAILABLE = 'Unavailable'
    AVAILABLE = 'Available'


@dataclass(frozen=True)
class ProgramConfig:
    id: str
    name: str


@dataclass(frozen=True)
class SessionSlot:
    """One bookable session of a program on a given date"""
    appointment_id: str
    product_name: str
    date: str
    time: str
    open_spots: int


@dataclass(frozen=True)
class AvailabilitySnapshot:
    program_id: str
    open_slot_count: int
    checked_at: datetime
    sessions: List[SessionSlot] = field(default_factory=list)

    def __post_init__(self):
        if self.open_slot_count < 0:
            raise ValueError(f"open_slot_count must be non-negative, got {self.open_slot_count}")

    @property
    def is_available(self) -> bool:
        return self.open_slot_count > 0

    def open_sessions(self) -> List[SessionSlot]:
        return [s for s in self.sessions if s.open_spots > 0]


@dataclass
class ProgramWatch:
    id: str
    display_name: str
    status: ProgramStatus = ProgramStatus.UNKNOWN
    consecutive_failures: int = 0
    last_failure: Optional[CheckErrorKind] = None
    last_checked_at: Optional[datetime] = None
    open_slot_count: int = 0


@dataclass(frozen=True)
class TransitionEvent:
    program_id: str
    display_name: str
    from_status: ProgramStatus
    to_status: ProgramStatus
    checked_at: datetime
    snapshot: Optional[AvailabilitySnapshot] = None
