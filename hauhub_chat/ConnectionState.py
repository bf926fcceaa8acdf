"""
ConnectionState - Observable connection state machine.

ChatTransport owns one instance and drives it through the connection
lifecycle. Observers are notified with (old_state, new_state) so callers
and tests can follow transitions without depending on timers.

State mutations are protected by threading.Lock.

State Machine:
- idle -> connecting, closed
- connecting -> open, reconnecting, failed, closed
- open -> reconnecting, closed
- reconnecting -> connecting, failed, closed
- failed -> connecting, closed
- closed -> (terminal state)
"""
import logging
import threading
from typing import Callable, Dict, List, Set

logger = logging.getLogger(__name__)


class ConnectionState:
    """
    Manages connection state with observer pattern.

    Attributes:
        _state: Current state ('idle', 'connecting', 'open', 'reconnecting', 'failed', 'closed')
        _lock: Thread lock for state mutations
        _observers: Observers receiving (old_state, new_state)
    """

    # Valid state transitions
    _VALID_TRANSITIONS: Dict[str, Set[str]] = {
        'idle': {'connecting', 'closed'},
        'connecting': {'open', 'reconnecting', 'failed', 'closed'},
        'open': {'reconnecting', 'closed'},
        'reconnecting': {'connecting', 'failed', 'closed'},
        'failed': {'connecting', 'closed'},
        'closed': set()
    }

    def __init__(self):
        self._state = 'idle'
        self._lock = threading.Lock()
        self._observers: List[Callable[[str, str], None]] = []

    def get_state(self) -> str:
        """
        Get current state (thread-safe).

        Returns:
            Current state string
        """
        with self._lock:
            return self._state

    def is_open(self) -> bool:
        return self.get_state() == 'open'

    def set_state(self, new_state: str) -> None:
        """
        Set new state and notify observers (thread-safe).

        Args:
            new_state: New state to transition to

        Raises ValueError
        """
        with self._lock:
            old_state = self._state

            if new_state not in self._VALID_TRANSITIONS[old_state]:
                raise ValueError(
                    f"Invalid state transition: {old_state} -> {new_state}"
                )

            self._state = new_state

        logger.debug("ConnectionState: %s -> %s", old_state, new_state)

        # Notify observers outside the lock to avoid deadlocks
        self._notify_observers(old_state, new_state)

    def register_observer(self, observer: Callable[[str, str], None]) -> None:
        """
        Args:
            observer: Callable that receives (old_state, new_state)
        """
        with self._lock:
            self._observers.append(observer)

    def _notify_observers(self, old_state: str, new_state: str) -> None:
        with self._lock:
            observers = list(self._observers)

        for observer in observers:
            try:
                observer(old_state, new_state)
            except Exception:
                logger.exception("ConnectionState: observer failed on %s -> %s", old_state, new_state)
