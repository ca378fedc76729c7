"""In-memory digest subscriber store."""

import threading


class SubscriberStore:
    """Thread-safe set of chat IDs subscribed to the daily digest.

    Membership only grows; nothing is persisted across restarts.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._chat_ids: set[int] = set()

    def add(self, chat_id: int) -> bool:
        """Add a subscriber. Returns True if it was not already present."""
        with self._lock:
            if chat_id in self._chat_ids:
                return False
            self._chat_ids.add(chat_id)
            return True

    def snapshot(self) -> list[int]:
        """Copy of the current membership, safe to iterate while others subscribe."""
        with self._lock:
            return list(self._chat_ids)

    def __contains__(self, chat_id: int) -> bool:
        with self._lock:
            return chat_id in self._chat_ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._chat_ids)
