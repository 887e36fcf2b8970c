"""
Shopping cart API router.

Serves the cart of the current identity: the signed-in account or the guest
session identified by the cart session cookie. Service errors are turned
into JSON error responses by the application's exception handlers.
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Request, status

from shopcore.api.deps import Carts, CurrentIdentity, CurrentUserIdentity, get_guest_session_id
from shopcore.core.logging import get_logger
from shopcore.schemas.cart import AddToCartRequest, CartResponse, UpdateCartItemRequest
from shopcore.services.cart import CartLineKey, CartStores, CartView, Identity

logger = get_logger(__name__)

router = APIRouter(prefix="/cart", tags=["cart"])


def _respond(carts: CartStores, view: CartView) -> CartResponse:
    return CartResponse.from_view(view, carts.totals(view))


@router.get(
    "",
    response_model=CartResponse,
    summary="Get cart",
    description="Get the current cart priced from the live catalog",
)
async def get_cart(identity: CurrentIdentity, carts: Carts) -> CartResponse:
    """
    Get the cart of the current identity.

    Returns an empty cart when none exists.
    """
    return _respond(carts, await carts.get(identity))


@router.delete(
    "",
    response_model=CartResponse,
    summary="Clear cart",
)
async def clear_cart(identity: CurrentIdentity, carts: Carts) -> CartResponse:
    """Remove every item from the cart."""
    return _respond(carts, await carts.clear(identity))


@router.post(
    "/items",
    response_model=CartResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add item to cart",
    description="Add a product variant to the cart, merging with an existing line",
)
async def add_to_cart(
    request: AddToCartRequest,
    identity: CurrentIdentity,
    carts: Carts,
) -> CartResponse:
    """
    Add an item to the cart.

    Raises:
        404 if the product or variant is unknown, 409 if out of stock,
        422 if the quantity is not positive
    """
    view = await carts.add_item(
        identity, request.product_id, request.variant_id, request.quantity
    )
    return _respond(carts, view)


@router.patch(
    "/items/{product_id}/{variant_id}",
    response_model=CartResponse,
    summary="Update cart item",
    description="Set the quantity of a cart line; zero removes the line",
)
async def update_cart_item(
    product_id: UUID,
    variant_id: UUID,
    request: UpdateCartItemRequest,
    identity: CurrentIdentity,
    carts: Carts,
) -> CartResponse:
    view = await carts.update_item(
        identity, CartLineKey(product_id, variant_id), request.quantity
    )
    return _respond(carts, view)


@router.delete(
    "/items/{product_id}/{variant_id}",
    response_model=CartResponse,
    summary="Remove cart item",
)
async def remove_cart_item(
    product_id: UUID,
    variant_id: UUID,
    identity: CurrentIdentity,
    carts: Carts,
) -> CartResponse:
    view = await carts.remove_item(identity, CartLineKey(product_id, variant_id))
    return _respond(carts, view)


@router.post(
    "/merge",
    response_model=CartResponse,
    summary="Merge guest cart",
    description="Move the guest session cart into the signed-in account cart",
)
async def merge_guest_cart(
    http_request: Request,
    identity: CurrentUserIdentity,
    carts: Carts,
) -> CartResponse:
    """
    Merge the guest cart into the account cart after login.

    Raises:
        400 if the request carries no guest cart session
    """
    session_id = get_guest_session_id(http_request)
    if not session_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No guest cart session to merge",
        )

    view = await carts.merge_into_account(Identity.guest(session_id), identity)
    return _respond(carts, view)
