from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_API_URL = "https://soccerzone-backend.onrender.com/api"


def _parse_api_url(raw: str) -> str:
    url = raw.strip().rstrip("/")
    if not url:
        raise RuntimeError("SOCCERZONE_API_URL is empty. Provide the backend base URL.")
    if not url.startswith(("http://", "https://")):
        raise RuntimeError(f"Invalid SOCCERZONE_API_URL value: {raw!r}. Expected an http(s) URL.")
    return url


def _parse_timeout(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid REQUEST_TIMEOUT_SECONDS value: {raw!r}. Expected a number.") from e

    if value <= 0:
        raise RuntimeError("REQUEST_TIMEOUT_SECONDS must be > 0")
    return value


@dataclass(frozen=True)
class Settings:
    api_base_url: str = DEFAULT_API_URL

    # Where the token and the pending selection live between runs
    storage_file: str = "soccerzone_state.json"

    request_timeout_seconds: float = 20.0

    # Page the user goes back to after logging in
    return_to: str = "/bookings"

    # Where downloaded tickets are written
    ticket_dir: str = "."


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    return Settings(
        api_base_url=_parse_api_url(os.getenv("SOCCERZONE_API_URL", DEFAULT_API_URL)),
        storage_file=os.getenv("STORAGE_FILE", "soccerzone_state.json"),
        request_timeout_seconds=_parse_timeout(os.getenv("REQUEST_TIMEOUT_SECONDS", "20")),
        return_to=os.getenv("RETURN_TO", "/bookings"),
        ticket_dir=os.getenv("TICKET_DIR", "."),
    )
