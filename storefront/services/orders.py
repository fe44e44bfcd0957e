import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from storefront.core.errors import PersistenceFailure
from storefront.db.documents import DocumentStore, SERVER_TIMESTAMP
from storefront.schemas.order import OrderRecord, OrderSummary, OrderSummaryItem, ShippingSummary

logger = logging.getLogger(__name__)


def orders_collection(user_id: str) -> str:
    return f"users/{user_id}/orders"


def format_order_date(value: Any) -> str:
    """``2026-10-18T09:30:00+00:00`` -> ``18 Oct 2026``; anything unparseable -> ``N/A``."""
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str) and value:
        try:
            moment = datetime.fromisoformat(value)
        except ValueError:
            return "N/A"
    else:
        return "N/A"
    return f"{moment.day} {moment.strftime('%b %Y')}"


def _amount(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value is not None else Decimal("0")
    except InvalidOperation:
        return Decimal("0")


def summarize_order(doc_id: str, data: Dict[str, Any]) -> OrderSummary:
    """Shape a stored order document for the order-history view."""
    address = data.get("addressDetails") or {}
    street = ", ".join(p for p in [address.get("addressLine1"), address.get("city"), address.get("postalCode")] if p)

    return OrderSummary(
        id=doc_id,
        order_id=data.get("orderId"),
        status=data.get("orderStatus") or "Processing",
        date=format_order_date(data.get("orderDate")),
        total=_amount(data.get("totalAmount")),
        payment_method=data.get("paymentMethod") or "N/A",
        shipping_address=ShippingSummary(
            name=address.get("fullName") or data.get("name") or "N/A",
            address=street or data.get("address") or "N/A",
            phone=data.get("phoneNumber") or "N/A",
        ),
        items=[
            OrderSummaryItem(
                name=p.get("name"),
                quantity=p.get("quantity") or 0,
                price=_amount(p.get("price")),
            )
            for p in data.get("products") or []
        ],
    )


class OrderRepository:
    """Append-only order persistence under ``users/{uid}/orders``."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def create(self, user_id: str, order: OrderRecord) -> str:
        document = order.to_document()
        document["createdAt"] = SERVER_TIMESTAMP
        document["orderDate"] = SERVER_TIMESTAMP
        try:
            doc_id = await self.store.add(orders_collection(user_id), document)
        except SQLAlchemyError as e:
            logger.error(f"Failed to save order {order.order_id} for user {user_id}: {str(e)}")
            raise PersistenceFailure("Failed to save order details to the database. Please try again.")

        logger.info(f"Order saved: id={doc_id}, order_id={order.order_id}, user={user_id}")
        return doc_id

    async def list_for_user(self, user_id: str) -> List[OrderSummary]:
        rows = await self.store.query(orders_collection(user_id), order_by="orderDate", descending=True)
        return [summarize_order(doc_id, data) for doc_id, data in rows]

    async def get(self, user_id: str, doc_id: str) -> Optional[OrderRecord]:
        data = await self.store.get(f"{orders_collection(user_id)}/{doc_id}")
        if data is None:
            return None
        return OrderRecord.model_validate(data)
