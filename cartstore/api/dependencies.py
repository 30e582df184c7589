# cartstore/api/dependencies.py
from typing import NamedTuple, Optional

from fastapi import Header, Request

from cartstore.domain.errors import OwnerRequiredError
from cartstore.repos.cart_repo import CartRepo
from cartstore.services.cart_service import CartService


class Owner(NamedTuple):
    user_id: Optional[str]
    session_id: Optional[str]


def get_owner(
    x_user_id: Optional[str] = Header(default=None),
    x_session_id: Optional[str] = Header(default=None),
) -> Owner:
    """Cart owner from X-User-ID / X-Session-ID; one of them is required."""
    if not x_user_id and not x_session_id:
        raise OwnerRequiredError("Either user ID or session ID is required")
    return Owner(user_id=x_user_id or None, session_id=x_session_id or None)


def get_cart_service(request: Request) -> CartService:
    # one redis client per process, owned by the app lifespan
    state = request.app.state
    return CartService(CartRepo(state.redis), state.product_client)
