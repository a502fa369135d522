from __future__ import annotations

import logging
from typing import Any, Iterable

import httpx

from soccerzone.config import Settings
from soccerzone.domain import (
    ApiError,
    AuthError,
    Booking,
    BookingRejected,
    FetchError,
    PaymentResult,
    Slot,
    User,
)
from soccerzone.session import SessionGate

logger = logging.getLogger(__name__)

_AUTH_MARKERS = ("token", "unauthorized")


def _looks_like_auth_failure(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _AUTH_MARKERS)


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _expect_object(data: Any, path: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise FetchError(f"Unexpected payload from {path}")
    return data


_MALFORMED = (KeyError, TypeError, ValueError, AttributeError)


def normalize_slots(data: Any, *, date: str = "") -> list[Slot]:
    """The backend returns either a bare list or {"slots": [...]}; always give back a list."""
    if isinstance(data, dict):
        data = data.get("slots")
    if not isinstance(data, list):
        raise FetchError("Unexpected slots payload")

    try:
        return [Slot.from_api(item, date=date) for item in data]
    except _MALFORMED as e:
        raise FetchError(f"Malformed slot in payload ({type(e).__name__}: {e})") from e


def _user_with_bookings(user: Any, data: dict[str, Any], path: str) -> dict[str, Any]:
    try:
        return {
            "user": User.from_api(user),
            "bookings": [Booking.from_api(b) for b in data.get("bookings") or []],
            "summary": data.get("summary") or {},
        }
    except _MALFORMED as e:
        raise FetchError(f"Malformed user data from {path} ({type(e).__name__}: {e})") from e


class SoccerZoneClient:
    """Thin wrapper over the SoccerZone REST API.

    Sends the stored bearer token when there is one and turns error responses
    into the exceptions from soccerzone.domain. Nothing is retried here.
    """

    def __init__(
        self,
        settings: Settings,
        session: SessionGate,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._session = session
        self._http = httpx.Client(
            base_url=settings.api_base_url,
            timeout=settings.request_timeout_seconds,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> SoccerZoneClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        error_cls: type[ApiError] = ApiError,
        default_error: str = "Request failed",
        **kwargs: Any,
    ) -> Any:
        headers = {}
        token = self._session.token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            r = self._http.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error("%s %s failed (%s: %s)", method, path, type(e).__name__, e)
            raise FetchError(f"Could not reach the server ({type(e).__name__})") from e

        data = _json_or_none(r)

        if r.is_error:
            message = ""
            if isinstance(data, dict):
                message = str(data.get("message") or "")
            logger.warning("%s %s -> %s %s", method, path, r.status_code, message)

            if r.status_code == 401 or _looks_like_auth_failure(message):
                raise AuthError(message or "Unauthorized")
            raise error_cls(message or default_error, status_code=r.status_code)

        if data is None:
            raise FetchError(f"Unexpected non-JSON response from {path}")
        return data

    # ------------------------------------------------------------------
    # Slots and bookings
    # ------------------------------------------------------------------

    def get_slots(self, date: str) -> list[Slot]:
        try:
            data = self._request("GET", "/slots", params={"date": date})
        except ApiError as e:
            raise FetchError("Unable to load available slots. Please try again.") from e
        return normalize_slots(data, date=date)

    def create_booking(self, date: str, start_times: Iterable[str]) -> str | None:
        """Returns the payment URL to send the user to."""
        data = self._request(
            "POST",
            "/bookings",
            params={"date": date},
            json={"startTimes": list(start_times)},
            error_cls=BookingRejected,
            default_error="Booking failed",
        )
        payment_url = data.get("paymentUrl") if isinstance(data, dict) else None
        return str(payment_url) if payment_url else None

    def admin_book_cash(
        self,
        date: str,
        start_times: Iterable[str],
        *,
        user_email: str | None = None,
        team_name: str | None = None,
    ) -> Any:
        body: dict[str, Any] = {"startTimes": list(start_times)}
        if user_email:
            body["userEmail"] = user_email
        if team_name:
            body["teamName"] = team_name

        return self._request(
            "POST",
            "/bookings/admin/book-cash",
            params={"date": date},
            json=body,
            error_cls=BookingRejected,
            default_error="Booking failed",
        )

    def list_bookings(self) -> list[Booking]:
        data = self._request("GET", "/bookings/all")
        if isinstance(data, dict):
            data = data.get("bookings") or data.get("data") or []
        try:
            return [Booking.from_api(b) for b in data]
        except _MALFORMED as e:
            raise FetchError(f"Malformed booking in payload ({type(e).__name__}: {e})") from e

    def verify_payment(self, reference: str) -> PaymentResult:
        data = _expect_object(
            self._request("POST", "/bookings/verify-payment", json={"reference": reference}),
            "/bookings/verify-payment",
        )
        payload = data.get("data") or {}
        return PaymentResult(
            success=bool(data.get("success")),
            message=str(data.get("message") or ""),
            ticket_id=payload.get("ticketId"),
            slots=tuple(Slot.from_api(s) for s in payload.get("slots") or []),
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def list_users(self) -> list[User]:
        data = self._request("GET", "/users")
        if isinstance(data, dict):
            data = data.get("users") or []
        try:
            return [User.from_api(u) for u in data]
        except _MALFORMED as e:
            raise FetchError(f"Malformed user in payload ({type(e).__name__}: {e})") from e

    def get_user(self, user_id: str) -> dict[str, Any]:
        """User with their bookings and spending summary."""
        data = _expect_object(self._request("GET", f"/users/{user_id}"), "/users")
        return _user_with_bookings(data.get("user") or data, data, "/users")

    def get_profile(self) -> dict[str, Any]:
        data = _expect_object(self._request("GET", "/auth/profile"), "/auth/profile")
        return _user_with_bookings(data.get("user") or {}, data, "/auth/profile")

    def update_profile(self, user_id: str, fields: dict[str, Any]) -> Any:
        return self._request("PATCH", f"/users/profile/{user_id}", json=fields)

    def create_user(self, *, name: str, email: str, phone: str, password: str, role: str = "user") -> Any:
        return self._request(
            "POST",
            "/users",
            json={"name": name, "email": email, "phone": phone, "password": password, "role": role},
        )

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def login(self, identifier: str, password: str) -> str:
        data = self._request(
            "POST",
            "/auth/login",
            json={"identifier": identifier, "password": password},
            default_error="Something went wrong",
        )
        token = _expect_object(data, "/auth/login").get("token")
        if not token:
            raise FetchError("Login response did not include a token")
        self._session.store_token(str(token))
        logger.info("Logged in as %s", identifier)
        return str(token)

    def register(self, *, name: str, email: str, phone: str, password: str) -> Any:
        data = self._request(
            "POST",
            "/auth/register",
            json={"name": name, "email": email, "phone": phone, "password": password},
            default_error="Something went wrong",
        )
        if isinstance(data, dict) and data.get("token"):
            self._session.store_token(str(data["token"]))
        return data

    def reset_password(self, token: str, password: str) -> Any:
        return self._request(
            "POST",
            "/auth/reset-password",
            json={"token": token, "password": password},
            default_error="Failed to reset password",
        )
