# storefront/api/deps.py
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.security import actor_from_token
from storefront.db.operations import commit_async, rollback_async
from storefront.db.session_async import get_async_db
from storefront.domain.owner import ANONYMOUS, Actor
from storefront.services import identity_service


OAUTH_SCOPES = {
    "admin": "Store administration: zones, coupons and order status.",
}

# Tokens are issued by the identity provider; this service only verifies them.
oauth2_scheme_optional = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/token",
    scopes=OAUTH_SCOPES,
    auto_error=False,
)


@dataclass(frozen=True, slots=True)
class Shopper:
    actor: Actor
    cart_token: str | None = None
    wishlist_token: str | None = None


async def get_current_actor(token: str | None = Depends(oauth2_scheme_optional)) -> Actor:
    """Caller identity; a missing or unverifiable token means anonymous."""
    if not token:
        return ANONYMOUS
    try:
        return actor_from_token(token)
    except JWTError:
        return ANONYMOUS


def require_user(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor


def require_admin(actor: Actor = Depends(require_user)) -> Actor:
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions",
            headers={"WWW-Authenticate": 'Bearer scope="admin"'},
        )
    return actor


def set_guest_cookie(response: Response, name: str, token: str) -> None:
    # re-sent on every guest response so the lifetime keeps rolling
    response.set_cookie(
        key=name,
        value=token,
        max_age=settings.guest_session_max_age_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
        path="/",
    )


def _clear_cookie(response: Response, name: str) -> None:
    response.delete_cookie(key=name, path="/", httponly=True, samesite="lax", secure=settings.COOKIE_SECURE)


async def get_shopper(
    request: Request,
    response: Response,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_async_db),
) -> Shopper:
    """Actor plus any guest tokens the client carries.

    An authenticated request that still carries guest tokens folds the guest
    cart and wishlist into the account and drops the cookies.
    """
    cart_token = request.headers.get(settings.CART_SESSION_HEADER) or request.cookies.get(
        settings.CART_SESSION_COOKIE
    )
    wishlist_token = request.cookies.get(settings.WISHLIST_SESSION_COOKIE)

    if actor.is_authenticated and (cart_token or wishlist_token):
        try:
            await identity_service.merge_guest_into_user(
                db, actor.user_id, cart_token=cart_token, wishlist_token=wishlist_token
            )
            await commit_async(db)
        except Exception:
            await rollback_async(db)
            raise
        if request.cookies.get(settings.CART_SESSION_COOKIE):
            _clear_cookie(response, settings.CART_SESSION_COOKIE)
        if wishlist_token:
            _clear_cookie(response, settings.WISHLIST_SESSION_COOKIE)
        return Shopper(actor=actor)

    return Shopper(actor=actor, cart_token=cart_token, wishlist_token=wishlist_token)
