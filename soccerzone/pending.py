from __future__ import annotations

import json
import logging
from typing import Iterable

from soccerzone.domain import PendingSelection
from soccerzone.storage import PENDING_BOOKING_KEY, KeyValueStore

logger = logging.getLogger(__name__)


class PendingSelectionStore:
    """At most one pending selection, last write wins."""

    def __init__(self, store: KeyValueStore, key: str = PENDING_BOOKING_KEY) -> None:
        self._store = store
        self._key = key

    def save(self, date: str, start_times: Iterable[str], return_to: str) -> PendingSelection:
        pending = PendingSelection(date=date, start_times=tuple(start_times), return_to=return_to)
        self._store.set(self._key, json.dumps(pending.to_dict()))
        logger.info("Saved pending selection: date=%s slots=%d", date, len(pending.start_times))
        return pending

    def load(self) -> PendingSelection | None:
        raw = self._store.get(self._key)
        if raw is None:
            return None

        try:
            return PendingSelection.from_dict(json.loads(raw))
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too.
            logger.warning("Dropping malformed pending selection (%s)", e)
            self.clear()
            return None

    def load_for(self, date: str) -> PendingSelection | None:
        pending = self.load()
        if pending is None or pending.date != date:
            return None
        return pending

    def clear(self) -> None:
        self._store.delete(self._key)
