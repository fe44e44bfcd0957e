"""
Turn a cart snapshot into an order record.

Everything here is pure: the caller supplies the items, billing details,
main SKUs fetched from the catalog and the payment outcome, and gets back
an immutable OrderRecord. Timestamps are left for the store to assign.
"""
import time
import uuid
from decimal import Decimal
from typing import List, Mapping, Optional, Sequence

from storefront.core.config import settings
from storefront.core.pricing import cart_total, line_total
from storefront.schemas.cart import NO_SKU, BillingDetails, CartLineItem
from storefront.schemas.order import (
    AddressDetails,
    OrderLineItem,
    OrderRecord,
    OrderStatus,
    SizeVariants,
)


def generate_order_id() -> str:
    """Time-ordered, collision-resistant order id: ``ORD-<epoch ms>-<12 hex>``."""
    return f"ORD-{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}"


def resolve_sku(item: CartLineItem, sku_map: Mapping[str, str]) -> str:
    """Catalog main SKU, else the line's own SKU unless it is the sentinel, else the product id."""
    if sku_map.get(item.id):
        return sku_map[item.id]
    if item.sku and item.sku != NO_SKU:
        return item.sku
    return item.id


def build_size_variants(item: CartLineItem) -> Optional[SizeVariants]:
    if not any([item.stock, item.weight, item.width, item.height, item.color, item.size]):
        return None
    return SizeVariants(
        # The variant's own SKU, not the resolved one.
        sku=item.sku if item.sku != NO_SKU else None,
        stock=item.stock or None,
        weight=item.weight or None,
        width=item.width or None,
        height=item.height or None,
    )


def compose_line(item: CartLineItem, sku_map: Mapping[str, str]) -> OrderLineItem:
    return OrderLineItem(
        product_id=item.id,
        name=item.display_title,
        price=item.price,
        quantity=item.quantity,
        sku=resolve_sku(item, sku_map),
        brand_name=item.brand_name or None,
        category=item.category or None,
        color=item.color or None,
        size=item.size or None,
        images=list(item.images or []),
        size_variants=build_size_variants(item),
        total_amount=line_total(item.price, item.quantity),
    )


def compose_address(billing: BillingDetails, state: str = None) -> AddressDetails:
    return AddressDetails(
        full_name=billing.full_name,
        address_line1=billing.address,
        city=billing.city,
        postal_code=billing.pincode,
        state=state or settings.DEFAULT_SHIPPING_STATE,
    )


def order_total(items: Sequence[CartLineItem]) -> Decimal:
    return cart_total(items)


def compose_order(
    items: Sequence[CartLineItem],
    billing: BillingDetails,
    sku_map: Mapping[str, str],
    payment_method: str,
    status: OrderStatus = OrderStatus.PENDING,
    payment_id: Optional[str] = None,
    user_id: str = "",
    order_id: str = None,
) -> OrderRecord:
    """Build the order record for ``items`` exactly as they were shown to the user."""
    return OrderRecord(
        order_id=order_id or generate_order_id(),
        user_id=user_id,
        order_status=status,
        total_amount=order_total(items),
        payment_method=payment_method,
        payment_id=payment_id,
        phone_number=billing.phone,
        shipping_charges=Decimal("0"),
        address_details=compose_address(billing),
        products=[compose_line(item, sku_map) for item in items],
    )


def merge_buy_now(items: Sequence[CartLineItem], product: CartLineItem, quantity: int = 1) -> List[CartLineItem]:
    """
    Checkout snapshot with a "buy now" product folded in.

    A line with the same id and SKU absorbs the quantity; otherwise the
    product is appended. The input sequence is left untouched.
    """
    merged = [item.model_copy(deep=True) for item in items]
    existing = next((i for i in merged if i.id == product.id and i.sku == product.sku), None)
    if existing:
        existing.quantity += quantity
    else:
        merged.append(product.model_copy(deep=True, update={"quantity": quantity}))
    return merged
