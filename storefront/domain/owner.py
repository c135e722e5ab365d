"""Identity of whoever owns a cart or wishlist."""

from __future__ import annotations

import re
import secrets
import uuid
from dataclasses import dataclass

_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]{22,128}$")


@dataclass(frozen=True, slots=True)
class Actor:
    """Opaque caller identity supplied by the auth layer."""

    user_id: uuid.UUID | None = None
    scopes: tuple[str, ...] = ()

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_admin(self) -> bool:
        return "admin" in self.scopes


ANONYMOUS = Actor()


@dataclass(frozen=True, slots=True)
class CartOwner:
    """Either an authenticated user or a guest session, never both."""

    user_id: uuid.UUID | None = None
    session_token: str | None = None

    def __post_init__(self) -> None:
        if (self.user_id is None) == (self.session_token is None):
            raise ValueError("CartOwner requires exactly one of user_id or session_token")

    @classmethod
    def authenticated(cls, user_id: uuid.UUID) -> "CartOwner":
        return cls(user_id=user_id)

    @classmethod
    def guest(cls, session_token: str) -> "CartOwner":
        return cls(session_token=session_token)

    @property
    def is_guest(self) -> bool:
        return self.session_token is not None


def new_session_token(num_bytes: int) -> str:
    return secrets.token_urlsafe(num_bytes)


def is_well_formed_token(token: str | None) -> bool:
    return bool(token) and _TOKEN_PATTERN.match(token) is not None


def resolve_owner(actor: Actor, session_token: str | None) -> CartOwner | None:
    """Authenticated identity wins over any guest token.

    Returns None when the caller is anonymous and carries no usable token; a
    fresh guest token is issued on the next mutation.
    """
    if actor.user_id is not None:
        return CartOwner.authenticated(actor.user_id)
    if is_well_formed_token(session_token):
        return CartOwner.guest(session_token)
    return None
