"""
In-memory availability state for every configured program
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from errors import CheckErrorKind
from models import AvailabilitySnapshot, ProgramConfig, ProgramStatus, ProgramWatch, TransitionEvent

logger = logging.getLogger(__name__)


class StateStore:
    """Owns the ProgramWatch entries; writes must be serialized by the caller"""

    def __init__(self, programs: Iterable[ProgramConfig]):
        self._watches: Dict[str, ProgramWatch] = {}
        for program in programs:
            self._watches[program.id] = ProgramWatch(id=program.id, display_name=program.name)

    def get(self, program_id: str) -> ProgramWatch:
        """Return a copy of the watch entry for a configured program"""
        return replace(self._watches[program_id])

    def all(self) -> List[ProgramWatch]:
        return [replace(w) for w in self._watches.values()]

    def apply(self, snapshot: AvailabilitySnapshot) -> Optional[TransitionEvent]:
        """
        Fold a successful check into the program's state.
        Returns a TransitionEvent only when the program has just become available.
        """
        watch = self._watches[snapshot.program_id]
        previous = watch.status
        current = ProgramStatus.AVAILABLE if snapshot.is_available else ProgramStatus.UNAVAILABLE

        watch.status = current
        watch.consecutive_failures = 0
        watch.last_failure = None
        watch.last_checked_at = snapshot.checked_at
        watch.open_slot_count = snapshot.open_slot_count

        if previous is current:
            return None

        logger.info(f"{watch.display_name} ({watch.id}): {previous.value} -> {current.value}")
        if current is not ProgramStatus.AVAILABLE:
            return None

        return TransitionEvent(
            program_id=watch.id,
            display_name=watch.display_name,
            from_status=previous,
            to_status=current,
            checked_at=snapshot.checked_at,
            snapshot=snapshot,
        )

    def record_failure(self, program_id: str, kind: Optional[CheckErrorKind] = None):
        """Count a failed check; the availability status is left as it was"""
        watch = self._watches[program_id]
        watch.consecutive_failures += 1
        watch.last_failure = kind
