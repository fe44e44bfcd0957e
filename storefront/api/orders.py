from fastapi import APIRouter, Depends, HTTPException
import logging

from storefront.api.dependencies import get_current_user_id, get_document_store
from storefront.db.documents import DocumentStore
from storefront.schemas.order import OrderListResponse, OrderRecord
from storefront.services.orders import OrderRepository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.get("", response_model=OrderListResponse)
async def list_orders(
    user_id: str = Depends(get_current_user_id),
    store: DocumentStore = Depends(get_document_store)
):
    """List the signed-in user's orders, newest first."""
    orders = await OrderRepository(store).list_for_user(user_id)
    return OrderListResponse(orders=orders, total=len(orders))


@router.get("/{order_id}", response_model=OrderRecord)
async def get_order(
    order_id: str,
    user_id: str = Depends(get_current_user_id),
    store: DocumentStore = Depends(get_document_store)
):
    """Get single order detail."""
    order = await OrderRepository(store).get(user_id, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order
