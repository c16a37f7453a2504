"""
Debounced stamp toggling.

Rapid taps on the same (pet, event type, day) stamp are collapsed into a
single toggle that runs once the taps have been quiet for ``delay`` seconds.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

from .events import EventService, ToggleResult

logger = logging.getLogger(__name__)

StampKey = Tuple[str, str, str]


class StampDebouncer:
    """Cancellable timers keyed by stamp identity."""

    def __init__(
        self,
        events: EventService,
        delay: float = 0.1,
        on_result: Optional[Callable[[StampKey, ToggleResult], None]] = None,
    ):
        self.events = events
        self.delay = delay
        self.on_result = on_result
        self._timers: Dict[StampKey, threading.Timer] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key_for(pet_id: str, event_type_id: str, date: str) -> StampKey:
        return (pet_id, event_type_id, date[:10])

    def request(self, pet_id: str, event_type_id: str, date: str) -> StampKey:
        """Schedule a toggle, replacing any toggle still waiting for the same key."""
        key = self.key_for(pet_id, event_type_id, date)
        timer = threading.Timer(self.delay, self._fire, args=(key,))
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(key, None)
            if previous is not None:
                previous.cancel()
            self._timers[key] = timer
        timer.start()
        return key

    def _fire(self, key: StampKey) -> Optional[ToggleResult]:
        with self._lock:
            # A replaced or cancelled timer may still fire once
            if self._timers.get(key) is not threading.current_thread():
                return None
            del self._timers[key]
        return self._toggle(key)

    def _toggle(self, key: StampKey) -> Optional[ToggleResult]:
        try:
            result = self.events.toggle_stamp(*key)
        except Exception as e:
            logger.error(f"Stamp toggle failed for {key}: {e}")
            return None
        if self.on_result:
            try:
                self.on_result(key, result)
            except Exception as e:
                logger.error(f"Error in stamp result callback: {e}")
        return result

    def pending(self) -> int:
        with self._lock:
            return len(self._timers)

    def cancel(self, key: StampKey) -> bool:
        """Drop a waiting toggle. Returns False when nothing was waiting."""
        with self._lock:
            timer = self._timers.pop(key, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def cancel_all(self) -> int:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        return len(timers)

    def flush(self) -> List[ToggleResult]:
        """Run every waiting toggle now instead of after the quiet period."""
        with self._lock:
            pending = list(self._timers.items())
            self._timers.clear()
        results = []
        for key, timer in pending:
            timer.cancel()
            result = self._toggle(key)
            if result is not None:
                results.append(result)
        return results
