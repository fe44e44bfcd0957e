import enum
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field

from storefront.schemas.base import DocumentModel
from storefront.schemas.cart import BillingDetails, CartLineItem
from storefront.schemas.order import OrderConfirmation


class CheckoutState(str, enum.Enum):
    IDLE = "Idle"
    VALIDATING = "Validating"
    AWAITING_CONFIRMATION = "AwaitingConfirmation"
    AWAITING_PAYMENT = "AwaitingPayment"
    SAVING = "Saving"
    DONE = "Done"
    ERROR = "Error"


class PaymentChoice(str, enum.Enum):
    COD = "cod"
    GATEWAY = "razorpay"


class BuyNowItem(DocumentModel):
    product: CartLineItem
    quantity: int = Field(1, ge=1)


class CheckoutRequest(DocumentModel):
    billing_details: BillingDetails
    payment_method: PaymentChoice = PaymentChoice.GATEWAY
    buy_now: Optional[BuyNowItem] = None


class CheckoutContext(DocumentModel):
    """Everything the orchestrator needs to resume between requests."""

    state: CheckoutState = CheckoutState.IDLE
    payment_method: Optional[PaymentChoice] = None
    billing_details: BillingDetails = BillingDetails()
    items: List[CartLineItem] = []
    sku_map: Dict[str, str] = {}
    total_amount: Decimal = Decimal("0")
    payment_handle_id: Optional[str] = None
    gateway_order_id: Optional[str] = None
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    error: Optional[str] = None


class PaymentInitiation(DocumentModel):
    handle_id: str
    key: str
    gateway_order_id: Optional[str] = None
    amount: int
    currency: str
    name: str
    description: str
    prefill: Dict[str, str] = {}
    notes: Dict[str, str] = {}


class PaymentCallback(DocumentModel):
    handle_id: str
    payment_id: Optional[str] = None
    signature: Optional[str] = None
    error: Optional[str] = None


class CheckoutResponse(DocumentModel):
    state: CheckoutState
    items: List[CartLineItem] = []
    billing_details: BillingDetails = BillingDetails()
    total: Decimal
    formatted_total: str
    item_count: int
    error: Optional[str] = None
    payment: Optional[PaymentInitiation] = None
    confirmation: Optional[OrderConfirmation] = None
