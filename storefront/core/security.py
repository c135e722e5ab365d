"""Verification of actor tokens issued by the external auth service.

Tokens are only decoded here; signing lives with the identity provider. The
current ``SECRET_KEY`` is tried first, then each rotated-out key.
"""

from __future__ import annotations

import uuid
from typing import Any

from jose import JWTError, jwt

from storefront.core.config import settings
from storefront.domain.owner import Actor


def _verification_keys() -> list[str]:
    keys = [settings.SECRET_KEY, *settings.SECRET_KEY_FALLBACKS]
    return list(dict.fromkeys(key for key in keys if key))


def decode_access_token(token: str) -> dict[str, Any]:
    algorithm = settings.JWT_ALGORITHM
    if jwt.get_unverified_header(token).get("alg") != algorithm:
        raise JWTError("Token signed with unexpected algorithm")

    error: JWTError | None = None
    for key in _verification_keys():
        try:
            payload = jwt.decode(token, key, algorithms=[algorithm])
            break
        except JWTError as exc:
            error = exc
    else:
        raise error or JWTError("No verification key configured")

    if payload.get("type", "access") != "access":
        raise JWTError("Invalid token type")
    return payload


def actor_from_token(token: str) -> Actor:
    """``sub`` is the user id; ``scopes`` may be a list or a space separated string."""
    payload = decode_access_token(token)
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError as exc:
        raise JWTError("Invalid subject") from exc
    scopes = payload.get("scopes") or []
    if isinstance(scopes, str):
        scopes = scopes.split()
    return Actor(user_id=user_id, scopes=tuple(scopes))
