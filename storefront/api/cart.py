from fastapi import APIRouter, Depends, HTTPException
from typing import Optional
import logging

from storefront.api.dependencies import get_cart_store, get_catalog, get_shopper_session
from storefront.core.catalog_client import CatalogClient
from storefront.core.pricing import format_price
from storefront.schemas.cart import BillingDetails, CartItemAdd, CartItemDecrease, CartReplace, CartResponse
from storefront.services.cart import CartReconciler, CartStore
from storefront.services.shopper_session import ShopperSession

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cart", tags=["cart"])


def build_cart_response(store: CartStore, notice: Optional[str] = None) -> CartResponse:
    """Cart as the cart view renders it. Used by every cart route."""
    return CartResponse(
        items=store.items,
        total=store.total,
        formatted_total=format_price(store.total),
        item_count=store.item_count,
        notice=notice
    )


async def saved_cart_response(
    shopper: ShopperSession,
    store: CartStore,
    notice: Optional[str] = None
) -> CartResponse:
    await shopper.save_cart()
    return build_cart_response(store, notice)


@router.get("", response_model=CartResponse)
async def get_cart(store: CartStore = Depends(get_cart_store)):
    """
    Get current shopping cart.
    The quantity-limit notice is not kept between requests; it comes back
    only with the response of the change that triggered it.
    """
    return build_cart_response(store)


@router.put("", response_model=CartResponse)
async def replace_cart(
    data: CartReplace,
    store: CartStore = Depends(get_cart_store),
    shopper: ShopperSession = Depends(get_shopper_session)
):
    """Replace the whole cart (items and billing details)."""
    store.replace(data.items, data.billing_details)
    return await saved_cart_response(shopper, store)


@router.post("/add", response_model=CartResponse)
async def add_to_cart(
    item: CartItemAdd,
    store: CartStore = Depends(get_cart_store),
    shopper: ShopperSession = Depends(get_shopper_session)
):
    """Add item to cart. Quantities over the per-item limit are clipped and reported as a notice."""
    store.add_item(item)
    return await saved_cart_response(shopper, store, store.take_notice())


@router.post("/items/{product_id}/increase", response_model=CartResponse)
async def increase_item(
    product_id: str,
    store: CartStore = Depends(get_cart_store),
    shopper: ShopperSession = Depends(get_shopper_session),
    catalog: CatalogClient = Depends(get_catalog)
):
    """Add one unit, checked against live stock."""
    reconciler = await CartReconciler.from_catalog(store, catalog)
    try:
        reconciler.increase(product_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Item not in cart")
    return await saved_cart_response(shopper, store, store.take_notice())


@router.post("/items/{product_id}/decrease", response_model=CartResponse)
async def decrease_item(
    product_id: str,
    data: Optional[CartItemDecrease] = None,
    store: CartStore = Depends(get_cart_store),
    shopper: ShopperSession = Depends(get_shopper_session)
):
    """
    Remove units from a line, never below one.
    Without a quantity this is the cart view's minus button: one unit, only while above one.
    """
    if data and data.quantity:
        store.decrease_item(product_id, data.quantity)
    else:
        try:
            CartReconciler(store, {}).decrease(product_id)
        except KeyError:
            raise HTTPException(status_code=404, detail="Item not in cart")
    return await saved_cart_response(shopper, store)


@router.delete("/remove/{product_id}", response_model=CartResponse)
async def remove_from_cart(
    product_id: str,
    store: CartStore = Depends(get_cart_store),
    shopper: ShopperSession = Depends(get_shopper_session)
):
    """Remove item from cart."""
    store.remove_item(product_id)
    return await saved_cart_response(shopper, store)


@router.post("/clear", response_model=CartResponse)
async def clear_cart(
    store: CartStore = Depends(get_cart_store),
    shopper: ShopperSession = Depends(get_shopper_session)
):
    """Clear entire cart."""
    store.clear()
    return await saved_cart_response(shopper, store)


@router.put("/billing", response_model=CartResponse)
async def set_billing_details(
    details: BillingDetails,
    store: CartStore = Depends(get_cart_store),
    shopper: ShopperSession = Depends(get_shopper_session)
):
    """Cache billing details alongside the cart."""
    store.set_billing_details(details)
    return await saved_cart_response(shopper, store)
