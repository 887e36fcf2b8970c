"""
FastAPI dependencies for identities and services.

Authentication itself happens upstream: an auth middleware stores the
signed-in account on ``request.state.user_id`` (and ``request.state.admin_id``
for staff). Guests are identified by the cart session cookie, which is
issued on first use.
"""

import secrets
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopcore.cache.redis_client import RedisClient, get_redis_client
from shopcore.core.config import Settings, get_settings
from shopcore.core.logging import get_logger, set_actor
from shopcore.database.connection import get_session_factory
from shopcore.services.audit import ActivityRecorder
from shopcore.services.cart import (
    CartStores,
    Identity,
    PersistentCartStore,
    SessionCartStore,
)
from shopcore.services.catalog import CatalogReader
from shopcore.services.inventory import StockLedger
from shopcore.services.orders import (
    OrderAssembler,
    OrderRepository,
    OrderStatusMachine,
)

logger = get_logger(__name__)

SESSION_COOKIE_NAME = "cart_session_id"
SESSION_HEADER_NAME = "X-Cart-Session"

_activity_recorder = ActivityRecorder()


def _set_session_cookie(response: Response, session_id: str, max_age: int) -> None:
    """
    Set session cookie in response.

    Args:
        response: FastAPI response object
        session_id: Session identifier to set
        max_age: Cookie lifetime in seconds
    """
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_id,
        max_age=max_age,
        httponly=True,
        secure=True,
        samesite="lax",
    )


def get_guest_session_id(request: Request) -> Optional[str]:
    """Guest cart session from cookie or header, if any."""
    return request.cookies.get(SESSION_COOKIE_NAME) or request.headers.get(
        SESSION_HEADER_NAME
    )


async def get_current_identity(
    request: Request,
    response: Response,
    settings: Annotated[Settings, Depends(get_settings)],
) -> Identity:
    """
    Resolve the cart owner of the request.

    Returns the signed-in account when there is one, else the guest
    session. A new guest session is issued when the request has none.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        identity = Identity.user(str(user_id))
    else:
        session_id = get_guest_session_id(request)
        if not session_id:
            session_id = secrets.token_urlsafe(32)
            _set_session_cookie(response, session_id, settings.guest_cart_ttl_seconds)
            logger.info("Created new cart session")
        identity = Identity.guest(session_id)

    set_actor(identity.actor_ref)
    return identity


async def get_current_user_identity(
    identity: Annotated[Identity, Depends(get_current_identity)],
) -> Identity:
    """
    Require a signed-in account.

    Raises:
        HTTPException: 401 if the request is anonymous
    """
    if not identity.is_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return identity


async def get_admin_actor(request: Request) -> str:
    """
    Require a staff member and return their actor reference.

    Raises:
        HTTPException: 403 if the request is not made by staff
    """
    admin_id = getattr(request.state, "admin_id", None)
    if not admin_id:
        logger.warning("Access denied: admin required", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    actor = f"admin:{admin_id}"
    set_actor(actor)
    return actor


def get_db_session_factory() -> async_sessionmaker[AsyncSession]:
    return get_session_factory()


async def get_redis() -> RedisClient:
    return await get_redis_client()


def get_activity_recorder() -> ActivityRecorder:
    return _activity_recorder


SessionFactory = Annotated[
    async_sessionmaker[AsyncSession], Depends(get_db_session_factory)
]


def get_catalog_reader(session_factory: SessionFactory) -> CatalogReader:
    return CatalogReader(session_factory)


def get_stock_ledger(
    session_factory: SessionFactory,
    settings: Annotated[Settings, Depends(get_settings)],
) -> StockLedger:
    return StockLedger(session_factory, settings)


def get_cart_stores(
    session_factory: SessionFactory,
    redis_client: Annotated[RedisClient, Depends(get_redis)],
    catalog: Annotated[CatalogReader, Depends(get_catalog_reader)],
    ledger: Annotated[StockLedger, Depends(get_stock_ledger)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CartStores:
    return CartStores(
        guest_store=SessionCartStore(redis_client, catalog, ledger, settings),
        account_store=PersistentCartStore(session_factory, catalog, ledger, settings),
        ledger=ledger,
    )


def get_order_assembler(
    session_factory: SessionFactory,
    carts: Annotated[CartStores, Depends(get_cart_stores)],
    catalog: Annotated[CatalogReader, Depends(get_catalog_reader)],
    ledger: Annotated[StockLedger, Depends(get_stock_ledger)],
    activity: Annotated[ActivityRecorder, Depends(get_activity_recorder)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> OrderAssembler:
    return OrderAssembler(session_factory, carts, catalog, ledger, activity, settings)


def get_order_status_machine(
    session_factory: SessionFactory,
    ledger: Annotated[StockLedger, Depends(get_stock_ledger)],
    activity: Annotated[ActivityRecorder, Depends(get_activity_recorder)],
) -> OrderStatusMachine:
    return OrderStatusMachine(session_factory, ledger, activity)


def get_order_repository(session_factory: SessionFactory) -> OrderRepository:
    return OrderRepository(session_factory)


# Type aliases for dependency injection
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
CurrentUserIdentity = Annotated[Identity, Depends(get_current_user_identity)]
AdminActor = Annotated[str, Depends(get_admin_actor)]
Carts = Annotated[CartStores, Depends(get_cart_stores)]
Ledger = Annotated[StockLedger, Depends(get_stock_ledger)]
Assembler = Annotated[OrderAssembler, Depends(get_order_assembler)]
StatusMachine = Annotated[OrderStatusMachine, Depends(get_order_status_machine)]
Orders = Annotated[OrderRepository, Depends(get_order_repository)]
