from decimal import Decimal
from typing import List, Optional, Union

from pydantic import AliasChoices, Field

from storefront.schemas.base import DocumentModel

NO_SKU = "N/A"

VariantValue = Union[int, float, str]


class CartLineItem(DocumentModel):
    id: str
    title: str = ""
    name: Optional[str] = None
    price: Decimal = Field(ge=0)
    image: Optional[str] = None
    quantity: int = Field(1, ge=1)

    # Variant attributes carried over from the product page
    sku: str = Field(NO_SKU, validation_alias=AliasChoices("sku", "SKU", "product_sku", "skuCode"))
    color: Optional[str] = None
    size: Optional[str] = None
    stock: Optional[int] = None
    weight: Optional[VariantValue] = None
    width: Optional[VariantValue] = None
    height: Optional[VariantValue] = None
    category: Optional[str] = None
    brand_name: Optional[str] = None
    images: List[str] = []

    @property
    def display_title(self) -> str:
        return self.title or self.name or "Unnamed Product"

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


class BillingDetails(DocumentModel):
    full_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    pincode: str = ""


REQUIRED_BILLING_FIELDS = ["fullName", "email", "phone", "address", "city", "pincode"]


class PersistedCart(DocumentModel):
    """The durable part of the cart; ``errorId`` is never stored."""

    items: List[CartLineItem] = []
    billing_details: BillingDetails = BillingDetails()


class CartState(PersistedCart):
    error_id: Optional[str] = None


class CartItemAdd(CartLineItem):
    """Product snapshot posted by the product page; ``quantity`` is the requested amount."""


class CartItemDecrease(DocumentModel):
    quantity: Optional[int] = Field(None, ge=1)


class CartReplace(DocumentModel):
    items: List[CartLineItem] = []
    billing_details: BillingDetails = BillingDetails()


class CartResponse(DocumentModel):
    items: List[CartLineItem]
    total: Decimal
    formatted_total: str
    item_count: int
    notice: Optional[str] = None
