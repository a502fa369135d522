from __future__ import annotations

import logging

from soccerzone.api_client import SoccerZoneClient
from soccerzone.domain import (
    ApiError,
    AuthError,
    BoardState,
    FetchError,
    Slot,
    ValidationError,
)
from soccerzone.pending import PendingSelectionStore
from soccerzone.session import SessionGate

logger = logging.getLogger(__name__)


class SlotBoard:
    """Slots for one date, the user's selection, and the booking submit.

    A selection made while signed out is parked in the pending store and
    restored the next time the board is loaded for the same date. The pending
    entry is dropped only after a confirmed booking or an explicit edit
    (toggling a slot, changing the date).
    """

    def __init__(
        self,
        client: SoccerZoneClient,
        session: SessionGate,
        pending: PendingSelectionStore,
        *,
        return_to: str = "/bookings",
    ) -> None:
        self._client = client
        self._session = session
        self._pending = pending
        self.return_to = return_to

        self.state = BoardState.IDLE
        self.date: str | None = None
        self.slots: list[Slot] = []
        self.selected: set[str] = set()
        self.error: str = ""
        self.login_prompt = False
        self.last_submit_ok = False

    @property
    def available_count(self) -> int:
        return sum(1 for s in self.slots if s.is_available)

    @property
    def total_count(self) -> int:
        return len(self.slots)

    @property
    def total_amount(self) -> float:
        return sum(s.amount for s in self.slots if s.start_time in self.selected)

    def selected_start_times(self) -> list[str]:
        return sorted(self.selected)

    def load(self, date: str) -> None:
        if date != self.date:
            # A selection never carries over to another date.
            self.selected = set()
        self.date = date
        self.state = BoardState.LOADING
        self.error = ""
        self.login_prompt = False

        try:
            self.slots = self._client.get_slots(date)
            self.state = BoardState.LOADED
            logger.info("Slots for %s: total=%d available=%d", date, self.total_count, self.available_count)
        except FetchError as e:
            self.slots = []
            self.state = BoardState.ERROR
            self.error = str(e)
            logger.error("Failed to load slots for %s (%s)", date, e)
        except AuthError as e:
            self._session.clear()
            self.slots = []
            self.state = BoardState.ERROR
            self.error = str(e)
            self.login_prompt = True
            logger.info("Stored token rejected while loading slots (%s)", e)
        finally:
            pending = self._pending.load_for(date)
            if pending is not None:
                restored = set(pending.start_times)
                if self.state is BoardState.LOADED:
                    restored &= {s.start_time for s in self.slots if s.is_available}
                self.selected = restored
                logger.info("Restored %d pending slot(s) for %s", len(self.selected), date)

    def change_date(self, date: str) -> None:
        self._pending.clear()
        self.selected = set()
        self.load(date)

    def refresh(self) -> None:
        if self.date is None:
            raise ValidationError("No date selected")
        self.load(self.date)

    def toggle(self, start_time: str) -> bool:
        """Select or deselect a slot. Returns whether it is selected afterwards."""
        if self.state is BoardState.SUBMITTING:
            raise ValidationError("A booking is already in progress")

        slot = next((s for s in self.slots if s.start_time == start_time), None)
        if slot is None or not slot.is_available:
            return start_time in self.selected

        # A manual edit replaces whatever was carried over from before login.
        self._pending.clear()

        if start_time in self.selected:
            self.selected.discard(start_time)
        else:
            self.selected.add(start_time)

        self.error = ""
        self.login_prompt = False
        return start_time in self.selected

    def submit(self) -> str | None:
        """Book the selected slots. Returns the payment URL on success.

        Returns None when the user has to log in first; `login_prompt` is set
        and the selection is saved for after the login.
        """
        if self.state is BoardState.SUBMITTING:
            raise ValidationError("A booking is already in progress")
        if self.date is None:
            raise ValidationError("No date selected")
        if not self.selected:
            self.error = "Please select at least one time slot"
            raise ValidationError(self.error)

        self.state = BoardState.SUBMITTING
        self.error = ""
        self.login_prompt = False
        self.last_submit_ok = False
        start_times = self.selected_start_times()

        if not self._session.is_authenticated:
            self._block_on_auth(start_times)
            return None

        try:
            payment_url = self._client.create_booking(self.date, start_times)
        except AuthError as e:
            logger.info("Booking needs a fresh login (%s)", e)
            self._session.clear()
            self._block_on_auth(start_times)
            return None
        except (ApiError, FetchError) as e:
            # Keep the selection so the user can adjust it and retry.
            self.state = BoardState.ERROR
            self.error = str(e) or "Unable to complete booking. Please try again."
            logger.error("Booking failed for %s (%s: %s)", self.date, type(e).__name__, e)
            return None

        self._pending.clear()
        self.selected = set()
        self.last_submit_ok = True
        logger.info("Booked %d slot(s) for %s", len(start_times), self.date)
        self.load(self.date)
        return payment_url

    def _block_on_auth(self, start_times: list[str]) -> None:
        assert self.date is not None
        self._pending.save(self.date, start_times, self.return_to)
        self.state = BoardState.BLOCKED_ON_AUTH
        self.login_prompt = True
