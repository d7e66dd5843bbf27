"""
Scheduler — named recurring and one-off events on top of Celery.

Recurring events are persisted in the settings store as
{event_name: {"interval": seconds, "next_run": epoch}}. Celery beat calls
run_due() every tick; each due event is handed to the dispatch callable
(which enqueues a Celery task) and its next_run is advanced past now.
One-off events go straight to dispatch with a countdown.

Callbacks registered with register() are what a dispatched event runs
inside the worker (see fire()).
Version: 1.0.0
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from dsz_sync.core.constants.sync import OPTION_SCHEDULE

logger = logging.getLogger(__name__)


class Scheduler:

    def __init__(
        self,
        store,
        dispatch: Callable[[str, float], Any],
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            store: Settings store holding the schedule
            dispatch: dispatch(event_name, delay_seconds) enqueues the event
            clock: Time source (seconds since epoch)
        """
        self._store = store
        self._dispatch = dispatch
        self._clock = clock
        self._callbacks: Dict[str, Callable[[], Any]] = {}

    def _load(self) -> Dict[str, Dict[str, Any]]:
        return dict(self._store.get(OPTION_SCHEDULE, {}) or {})

    def _save(self, schedule: Dict[str, Dict[str, Any]]) -> None:
        self._store.set(OPTION_SCHEDULE, schedule)

    def register(self, event_name: str, callback: Callable[[], Any]) -> None:
        self._callbacks[event_name] = callback

    def registered_events(self) -> List[str]:
        return sorted(self._callbacks)

    def schedule(self, event_name: str, interval: int, first_run_time: Optional[float] = None) -> float:
        """Schedule a recurring event. Returns its first run time."""
        if interval <= 0:
            raise ValueError("interval must be positive")

        next_run = float(first_run_time if first_run_time is not None else self._clock())
        schedule = self._load()
        schedule[event_name] = {"interval": int(interval), "next_run": next_run}
        self._save(schedule)

        logger.info(f"Event scheduled: {event_name}, interval={interval}s, next_run={next_run}")
        return next_run

    def schedule_single(self, event_name: str, delay: float) -> None:
        """Run event_name once, delay seconds from now."""
        logger.debug(f"Single event dispatched: {event_name}, delay={delay}s")
        self._dispatch(event_name, delay)

    def clear(self, event_name: str) -> None:
        schedule = self._load()
        if schedule.pop(event_name, None) is not None:
            self._save(schedule)
            logger.info(f"Event cleared: {event_name}")

    def next_run(self, event_name: str) -> Optional[float]:
        entry = self._load().get(event_name)
        return entry.get("next_run") if entry else None

    def run_due(self) -> List[str]:
        """Dispatch every due recurring event and advance its next_run."""
        now = self._clock()
        schedule = self._load()
        fired: List[str] = []

        for event_name, entry in list(schedule.items()):
            next_run = float(entry.get("next_run") or 0)
            if next_run > now:
                continue

            self._dispatch(event_name, 0)
            fired.append(event_name)

            interval = int(entry.get("interval") or 0)
            if interval <= 0:
                schedule.pop(event_name)
                continue
            # missed runs are skipped rather than replayed
            while next_run <= now:
                next_run += interval
            entry["next_run"] = next_run

        if fired:
            self._save(schedule)
            logger.info(f"Scheduler tick dispatched: {fired}")
        return fired

    def fire(self, event_name: str) -> Any:
        """Run the callback registered for event_name."""
        callback = self._callbacks.get(event_name)
        if callback is None:
            logger.warning(f"No callback registered for event {event_name}")
            return None
        logger.info(f"Running scheduled event: {event_name}")
        return callback()
