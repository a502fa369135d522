from __future__ import annotations

from jose import JWTError, jwt

from soccerzone.domain import Role
from soccerzone.storage import TOKEN_KEY, KeyValueStore

_ADMIN_ROLES = {"admin", "superadmin", "super-admin"}


class SessionGate:
    """Reads the stored bearer token. No network calls.

    The role it reports is decoded without verifying the signature and is only
    good for choosing what to show. The backend checks the token for real.
    """

    def __init__(self, store: KeyValueStore, key: str = TOKEN_KEY) -> None:
        self._store = store
        self._key = key

    @property
    def token(self) -> str | None:
        return self._store.get(self._key) or None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def store_token(self, token: str) -> None:
        self._store.set(self._key, token)

    def clear(self) -> None:
        self._store.delete(self._key)

    def role(self) -> Role:
        token = self.token
        if token is None:
            return Role.GUEST

        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            return Role.USER

        if str(claims.get("role", "")).lower() in _ADMIN_ROLES:
            return Role.ADMIN
        return Role.USER

    def home_path(self) -> str:
        role = self.role()
        if role is Role.ADMIN:
            return "/admin"
        if role is Role.USER:
            return "/dashboard"
        return "/login"
