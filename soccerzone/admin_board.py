from __future__ import annotations

import logging
from typing import Any

from soccerzone.api_client import SoccerZoneClient
from soccerzone.domain import BoardState, FetchError, Slot, SoccerZoneError, ValidationError

logger = logging.getLogger(__name__)


class AdminSlotBoard:
    """Staff variant of the slot board: books on behalf of a walk-in paying cash."""

    def __init__(self, client: SoccerZoneClient) -> None:
        self._client = client
        self.state = BoardState.IDLE
        self.date: str | None = None
        self.slots: list[Slot] = []
        self.selected: set[str] = set()
        self.error = ""

    def load(self, date: str) -> None:
        self.date = date
        self.state = BoardState.LOADING
        self.error = ""
        try:
            self.slots = self._client.get_slots(date)
            self.state = BoardState.LOADED
        except FetchError as e:
            self.slots = []
            self.state = BoardState.ERROR
            self.error = str(e)
            logger.error("Failed to load slots for %s (%s)", date, e)

    def toggle(self, start_time: str) -> bool:
        if start_time in self.selected:
            self.selected.discard(start_time)
        else:
            self.selected.add(start_time)
        return start_time in self.selected

    def submit(self, *, user_email: str | None = None, team_name: str | None = None) -> Any:
        if self.state is BoardState.SUBMITTING:
            raise ValidationError("A booking is already in progress")
        if self.date is None:
            raise ValidationError("No date selected")
        if not self.selected:
            raise ValidationError("Please select at least one time slot")
        if user_email and "@" not in user_email:
            raise ValidationError("Invalid email format")

        self.state = BoardState.SUBMITTING
        start_times = sorted(self.selected)
        try:
            result = self._client.admin_book_cash(
                self.date,
                start_times,
                user_email=user_email or None,
                team_name=team_name or None,
            )
        except SoccerZoneError as e:
            self.state = BoardState.ERROR
            self.error = str(e)
            raise

        logger.info("Cash booking recorded: date=%s slots=%s team=%s", self.date, start_times, team_name or "-")
        self.selected = set()
        self.load(self.date)
        return result
