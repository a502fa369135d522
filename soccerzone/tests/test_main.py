from __future__ import annotations

import json
from unittest.mock import patch

import httpx

import main
from soccerzone.api_client import SoccerZoneClient
from soccerzone.config import Settings
from soccerzone.pending import PendingSelectionStore
from soccerzone.session import SessionGate
from soccerzone.storage import JsonFileStore

SLOTS = [
    {"startTime": "09:00", "endTime": "10:00", "amount": 15000, "status": "available"},
    {"startTime": "10:00", "endTime": "11:00", "amount": 15000, "status": "available"},
]


def _backend(posts: list[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/slots"):
            return httpx.Response(200, json={"slots": SLOTS})
        if request.url.path.endswith("/auth/login"):
            return httpx.Response(200, json={"token": "fresh-token"})
        if request.url.path.endswith("/bookings"):
            posts.append(request)
            return httpx.Response(200, json={"paymentUrl": "https://pay.example/abc"})
        return httpx.Response(404, json={"message": "not found"})

    return handler


def _build_app(settings: Settings, handler):
    def build(_: Settings) -> main.App:
        store = JsonFileStore(settings.storage_file)
        session = SessionGate(store)
        return main.App(
            settings=settings,
            session=session,
            pending=PendingSelectionStore(store),
            client=SoccerZoneClient(settings, session, transport=httpx.MockTransport(handler)),
        )

    return build


def test_booking_survives_login_between_runs(tmp_path, capsys) -> None:
    settings = Settings(api_base_url="https://api.test/api", storage_file=str(tmp_path / "state.json"))
    posts: list[httpx.Request] = []
    handler = _backend(posts)

    with (
        patch("main.load_settings", return_value=settings),
        patch("main.build_app", side_effect=_build_app(settings, handler)),
        patch("main.webbrowser.open") as open_browser,
    ):
        # Signed out: the selection is parked and the user is asked to log in.
        assert main.main(["book", "--date", "2025-06-01", "09:00", "10:00"]) == 1
        assert "Please log in" in capsys.readouterr().out
        state = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))
        assert json.loads(state["pendingBooking"]) == {
            "date": "2025-06-01",
            "startTimes": ["09:00", "10:00"],
            "returnTo": "/bookings",
        }
        assert posts == []

        assert main.main(["login", "a@b.c", "--password", "pw"]) == 0
        assert "saved selection for 2025-06-01" in capsys.readouterr().out

        # Resume without repeating the date or the slots.
        assert main.main(["book"]) == 0
        assert "https://pay.example/abc" in capsys.readouterr().out

    (post,) = posts
    assert post.url.params["date"] == "2025-06-01"
    assert json.loads(post.content) == {"startTimes": ["09:00", "10:00"]}
    open_browser.assert_called_once_with("https://pay.example/abc")
    state = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))
    assert "pendingBooking" not in state


def test_expected_failure_prints_message_and_exits_1(tmp_path, capsys) -> None:
    settings = Settings(api_base_url="https://api.test/api", storage_file=str(tmp_path / "state.json"))

    with (
        patch("main.load_settings", return_value=settings),
        patch("main.build_app", side_effect=_build_app(settings, _backend([]))),
    ):
        assert main.main(["book", "--date", "2025-06-01"]) == 1

    assert "Please select at least one time slot" in capsys.readouterr().out


def test_whoami_for_guest(tmp_path, capsys) -> None:
    settings = Settings(storage_file=str(tmp_path / "state.json"))

    with patch("main.load_settings", return_value=settings):
        assert main.main(["whoami"]) == 0

    assert capsys.readouterr().out.strip() == "guest (/login)"


def test_reset_password_mismatch_is_rejected_locally(tmp_path, capsys) -> None:
    settings = Settings(storage_file=str(tmp_path / "state.json"))

    with (
        patch("main.load_settings", return_value=settings),
        patch("main.SoccerZoneClient.reset_password") as reset_password,
    ):
        assert main.main(["reset-password", "--token", "t", "--password", "a", "--confirm", "b"]) == 1

    reset_password.assert_not_called()
    assert "Passwords do not match." in capsys.readouterr().out


def test_failed_login_keeps_the_stored_session(tmp_path, capsys) -> None:
    settings = Settings(api_base_url="https://api.test/api", storage_file=str(tmp_path / "state.json"))
    JsonFileStore(settings.storage_file).set("token", "still-valid")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/auth/login"):
            return httpx.Response(401, json={"message": "Invalid credentials"})
        return httpx.Response(400, json={"message": "Invalid or expired token"})

    with (
        patch("main.load_settings", return_value=settings),
        patch("main.build_app", side_effect=_build_app(settings, handler)),
    ):
        assert main.main(["login", "a@b.c", "--password", "wrong"]) == 1
        assert main.main(["reset-password", "--token", "old", "--password", "n", "--confirm", "n"]) == 1

    out = capsys.readouterr().out
    assert "Invalid credentials" in out
    assert "Invalid or expired token" in out
    assert "log in again" not in out
    assert JsonFileStore(settings.storage_file).get("token") == "still-valid"


def test_rejected_token_on_a_signed_in_command_is_cleared(tmp_path, capsys) -> None:
    settings = Settings(api_base_url="https://api.test/api", storage_file=str(tmp_path / "state.json"))
    JsonFileStore(settings.storage_file).set("token", "expired")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "Unauthorized"})

    with (
        patch("main.load_settings", return_value=settings),
        patch("main.build_app", side_effect=_build_app(settings, handler)),
    ):
        assert main.main(["users"]) == 1

    assert "Please log in again." in capsys.readouterr().out
    assert JsonFileStore(settings.storage_file).get("token") is None


def test_malformed_admin_payload_exits_1_without_traceback(tmp_path, capsys) -> None:
    settings = Settings(api_base_url="https://api.test/api", storage_file=str(tmp_path / "state.json"))
    JsonFileStore(settings.storage_file).set("token", "t")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/bookings/all"):
            return httpx.Response(200, json={"bookings": [{"user": "64abc", "totalAmount": "lots"}]})
        return httpx.Response(200, json={"users": []})

    with (
        patch("main.load_settings", return_value=settings),
        patch("main.build_app", side_effect=_build_app(settings, handler)),
    ):
        assert main.main(["admin-stats"]) == 1

    assert "Malformed" in capsys.readouterr().out
