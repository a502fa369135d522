from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True, order=True)
class Slot:
    """A bookable time interval on a given date.

    Owned by the backend; the client only keeps the copy from the last fetch.
    """

    start_time: str  # HH:MM
    end_time: str
    amount: float
    status: str  # available | booked
    date: str = ""  # YYYY-MM-DD
    id: str | None = None

    @property
    def is_available(self) -> bool:
        return self.status == "available"

    @classmethod
    def from_api(cls, raw: dict[str, Any], *, date: str = "") -> Slot:
        return cls(
            start_time=str(raw["startTime"]),
            end_time=str(raw.get("endTime", "")),
            amount=float(raw.get("amount") or 0),
            status=str(raw.get("status", "booked")).lower(),
            date=str(raw.get("date") or date)[:10],
            id=str(raw["_id"]) if raw.get("_id") is not None else None,
        )


@dataclass(frozen=True)
class PendingSelection:
    """Slots chosen while signed out, kept until the user can submit them."""

    date: str
    start_times: tuple[str, ...]
    return_to: str = "/bookings"

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "startTimes": list(self.start_times),
            "returnTo": self.return_to,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> PendingSelection:
        if not isinstance(raw, dict):
            raise ValueError("Pending selection must be an object")
        date = raw.get("date")
        if not isinstance(date, str) or not date:
            raise ValueError("Pending selection has no date")
        start_times = raw.get("startTimes")
        if not isinstance(start_times, list) or not all(isinstance(t, str) for t in start_times):
            raise ValueError("Pending selection startTimes must be a list of strings")
        return_to = raw.get("returnTo") or "/bookings"
        return cls(date=date, start_times=tuple(start_times), return_to=str(return_to))


class Role(str, Enum):
    # Display hint only. The backend decides what a token may do.
    GUEST = "guest"
    USER = "user"
    ADMIN = "admin"


class BoardState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    SUBMITTING = "submitting"
    BLOCKED_ON_AUTH = "blocked_on_auth"
    ERROR = "error"


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str
    role: str = "user"
    created_at: str = ""

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> User:
        return cls(
            id=str(raw.get("_id") or raw.get("id") or ""),
            name=str(raw.get("name") or ""),
            email=str(raw.get("email") or ""),
            role=str(raw.get("role") or "user"),
            created_at=str(raw.get("createdAt") or ""),
        )


@dataclass(frozen=True)
class Booking:
    booking_id: str
    total_amount: float
    status: str
    created_at: str
    slots: tuple[Slot, ...] = ()
    user_name: str | None = None
    user_email: str | None = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> Booking:
        # An unpopulated reference comes back as a bare id string.
        user = raw.get("user")
        if not isinstance(user, dict):
            user = {}
        return cls(
            booking_id=str(raw.get("bookingId") or raw.get("_id") or ""),
            total_amount=float(raw.get("totalAmount") or 0),
            status=str(raw.get("status") or "pending").lower(),
            created_at=str(raw.get("createdAt") or ""),
            slots=tuple(Slot.from_api(s) for s in raw.get("slots") or [] if "startTime" in s),
            user_name=user.get("name"),
            user_email=user.get("email"),
        )


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    message: str
    ticket_id: str | None = None
    slots: tuple[Slot, ...] = field(default_factory=tuple)


class SoccerZoneError(RuntimeError):
    """Base for failures scoped to a single user action."""


class ValidationError(SoccerZoneError):
    """Rejected locally, before any network call."""


class FetchError(SoccerZoneError):
    """Network failure or a response we could not make sense of."""


class AuthError(SoccerZoneError):
    """The backend refused our credential. Caller should drop it and ask to log in."""


class ApiError(SoccerZoneError):
    """The backend answered with an error status that is not an auth failure."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BookingRejected(ApiError):
    """A booking request was refused, typically because a slot was taken meanwhile."""
