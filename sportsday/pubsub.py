"""Per-collection publish/subscribe channels.

A subscriber always receives the *full* current record set of its collection
(narrowed by its filters), never a diff: once on subscribe and again after
every committed mutation of that collection, until it cancels.
"""

import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from flask import current_app

Records = List[Dict[str, Any]]
Reader = Callable[[str, Optional[Dict[str, Any]]], Records]


class Subscription:
    def __init__(self, bus: 'ChangeBus', collection: str, callback: Callable[[Records], None],
                 filters: Optional[Dict[str, Any]] = None):
        self._bus = bus
        self.collection = collection
        self.callback = callback
        self.filters = dict(filters) if filters else None
        self.active = True

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self._bus._remove(self)

    def deliver(self, records: Records) -> None:
        if not self.active:
            return
        try:
            self.callback(records)
        except Exception:
            current_app.logger.exception(
                f"[subscriber-error] collection={self.collection} filters={self.filters}"
            )


class ChangeBus:
    def __init__(self, reader: Reader):
        self._reader = reader
        self._lock = threading.Lock()
        self._subs: Dict[str, List[Subscription]] = defaultdict(list)

    def subscribe(self, collection: str, callback: Callable[[Records], None],
                  filters: Optional[Dict[str, Any]] = None, initial: bool = True) -> Subscription:
        # Read first so a bad collection/filter fails before registering
        records = self._reader(collection, filters) if initial else None
        sub = Subscription(self, collection, callback, filters)
        with self._lock:
            self._subs[collection].append(sub)
        if records is not None:
            sub.deliver(records)
        return sub

    def publish(self, collection: str) -> None:
        with self._lock:
            subs = list(self._subs.get(collection, ()))
        for sub in subs:
            if not sub.active:
                continue
            # The mutation has already committed; a failed re-read only costs this push
            try:
                records = self._reader(collection, sub.filters)
            except Exception:
                current_app.logger.exception(
                    f"[publish-error] collection={collection} filters={sub.filters}"
                )
                continue
            sub.deliver(records)

    def subscriber_count(self, collection: str) -> int:
        with self._lock:
            return len(self._subs.get(collection, ()))

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(sub.collection)
            if subs and sub in subs:
                subs.remove(sub)
