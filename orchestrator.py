"""
Poll-diff-notify loop: fans out availability checks on every tick, folds the
results into the StateStore and alerts on programs that have just opened up.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Tuple, Union

from errors import CheckError, CheckErrorKind, NotifyError, UnexpectedResponseError
from models import AvailabilitySnapshot, TransitionEvent
from scheduler import PollScheduler
from state_store import StateStore

logger = logging.getLogger(__name__)

# Failure kinds that widen a program's check cadence
BACKOFF_KINDS = (CheckErrorKind.NETWORK, CheckErrorKind.RATE_LIMITED)


@dataclass
class TickReport:
    checked: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[Tuple[str, CheckErrorKind]] = field(default_factory=list)
    transitions: List[TransitionEvent] = field(default_factory=list)
    notified: List[str] = field(default_factory=list)
    notify_failed: List[str] = field(default_factory=list)


def backoff_ticks(consecutive_failures: int, threshold: int, cap: int) -> int:
    """Number of ticks to skip after the given run of failures"""
    if consecutive_failures < threshold:
        return 0
    return min(2 ** (consecutive_failures - threshold), cap)


class Orchestrator:
    def __init__(self, client, store: StateStore, dispatcher, max_concurrency: int = 4,
                 backoff_threshold: int = 3, max_backoff_ticks: int = 8):
        self.client = client
        self.store = store
        self.dispatcher = dispatcher
        self.max_concurrency = max_concurrency
        self.backoff_threshold = backoff_threshold
        self.max_backoff_ticks = max_backoff_ticks
        self._skip_remaining: Dict[str, int] = {}

    def run(self, scheduler: PollScheduler):
        """Run one tick per scheduler tick until the scheduler is stopped"""
        for tick in scheduler.ticks():
            logger.info(f"Tick {tick}: checking for open spots...")
            try:
                report = self.run_tick()
            except Exception as e:
                logger.error(f"Error in tick {tick}: {e}", exc_info=True)
                continue

            logger.info(
                f"Tick {tick} done: {len(report.checked)} checked, {len(report.skipped)} backing off, "
                f"{len(report.failed)} failed, {len(report.notified)} notified"
            )

    def run_tick(self) -> TickReport:
        """Check every due program once and wait for all checks and notifications"""
        report = TickReport()

        due = []
        for watch in self.store.all():
            remaining = self._skip_remaining.get(watch.id, 0)
            if remaining > 0:
                self._skip_remaining[watch.id] = remaining - 1
                report.skipped.append(watch.id)
                logger.debug(f"Skipping {watch.display_name} ({watch.id}), {remaining - 1} more ticks of backoff")
            else:
                due.append(watch.id)

        if not due:
            return report

        # Results are consumed here, in the calling thread, so every StateStore
        # write and notification happens one at a time.
        with ThreadPoolExecutor(max_workers=min(self.max_concurrency, len(due))) as executor:
            futures = {executor.submit(self._safe_check, program_id): program_id for program_id in due}
            for future in as_completed(futures):
                program_id = futures[future]
                report.checked.append(program_id)
                outcome = future.result()
                if isinstance(outcome, CheckError):
                    self._handle_failure(program_id, outcome, report)
                else:
                    self._handle_snapshot(outcome, report)

        return report

    def _safe_check(self, program_id: str) -> Union[AvailabilitySnapshot, CheckError]:
        try:
            return self.client.check(program_id)
        except CheckError as e:
            return e
        except Exception as e:
            logger.exception(f"Check crashed for program {program_id}")
            return UnexpectedResponseError(program_id, f"{type(e).__name__}: {e}")

    def _handle_snapshot(self, snapshot: AvailabilitySnapshot, report: TickReport):
        self._skip_remaining.pop(snapshot.program_id, None)
        event = self.store.apply(snapshot)
        if event is None:
            return

        report.transitions.append(event)
        logger.info(f"Spots opened: {event.display_name} ({snapshot.open_slot_count} open)")
        try:
            self.dispatcher.notify(event)
        except NotifyError as e:
            report.notify_failed.append(event.program_id)
            logger.error(f"Notification for {event.display_name} failed ({e.kind}): {e}")
        else:
            report.notified.append(event.program_id)
            logger.info(f"Notification sent for {event.display_name}")

    def _handle_failure(self, program_id: str, error: CheckError, report: TickReport):
        self.store.record_failure(program_id, error.kind)
        report.failed.append((program_id, error.kind))

        watch = self.store.get(program_id)
        logger.warning(
            f"Error checking {watch.display_name}: {error} "
            f"({watch.consecutive_failures} consecutive failures)"
        )

        if error.kind not in BACKOFF_KINDS:
            return
        skip = backoff_ticks(watch.consecutive_failures, self.backoff_threshold, self.max_backoff_ticks)
        if skip:
            self._skip_remaining[program_id] = skip
            logger.info(f"Backing off {watch.display_name} for {skip} ticks")
