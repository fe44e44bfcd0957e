import enum
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from storefront.schemas.base import DocumentModel
from storefront.schemas.cart import BillingDetails, VariantValue

CASH_ON_DELIVERY = "Cash on Delivery"


class OrderStatus(str, enum.Enum):
    PENDING = "Pending"
    PAID = "Paid"


class SizeVariants(DocumentModel):
    sku: Optional[str] = None
    stock: Optional[int] = None
    weight: Optional[VariantValue] = None
    width: Optional[VariantValue] = None
    height: Optional[VariantValue] = None


class OrderLineItem(DocumentModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    name: str
    price: Decimal
    quantity: int
    sku: str
    brand_name: Optional[str] = None
    category: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    images: List[str] = []
    size_variants: Optional[SizeVariants] = Field(None, alias="sizevariants")
    total_amount: Decimal


class AddressDetails(DocumentModel):
    full_name: str
    address_line1: str
    city: str
    postal_code: str
    state: str


class OrderRecord(DocumentModel):
    model_config = ConfigDict(frozen=True)

    order_id: str
    user_id: str
    order_status: OrderStatus
    total_amount: Decimal
    payment_method: str
    payment_id: Optional[str] = None
    phone_number: str = ""
    shipping_charges: Decimal = Decimal("0")
    created_at: Optional[datetime] = None
    order_date: Optional[datetime] = None
    address_details: AddressDetails
    products: List[OrderLineItem]

    def to_document(self) -> Dict[str, Any]:
        document = self.model_dump(mode="json", by_alias=True)
        for product in document["products"]:
            if product.get("sizevariants") is None:
                product.pop("sizevariants", None)
        return document


class OrderConfirmation(DocumentModel):
    order_id: str
    payment_method: str
    total: str
    items_count: int
    billing_details: BillingDetails


class ShippingSummary(DocumentModel):
    name: str
    address: str
    phone: str


class OrderSummaryItem(DocumentModel):
    name: Optional[str] = None
    quantity: int = 0
    price: Decimal = Decimal("0")


class OrderSummary(DocumentModel):
    id: str
    order_id: Optional[str] = None
    status: str
    date: str
    total: Decimal
    payment_method: str
    shipping_address: ShippingSummary
    items: List[OrderSummaryItem]


class OrderListResponse(DocumentModel):
    orders: List[OrderSummary]
    total: int
