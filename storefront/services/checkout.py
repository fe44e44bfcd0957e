"""
Checkout state machine.

    Idle -> Validating -> AwaitingConfirmation -> Saving -> Done   (cash on delivery)
    Idle -> Validating -> AwaitingPayment      -> Saving -> Done   (payment gateway)

Any step may land in Error. The orchestrator's progress lives in a
CheckoutContext so the web layer can keep it in the session between
requests. The cart is cleared only after the order has been stored.
"""
import logging
from typing import Optional

from storefront.core.catalog_client import CatalogClient
from storefront.core.config import settings
from storefront.core.errors import (
    BillingValidationError,
    CheckoutStateError,
    PaymentGatewayFailure,
    PersistenceFailure,
)
from storefront.core.payment_gateway import RazorpayGateway
from storefront.core.pricing import format_price, to_minor_units
from storefront.db.documents import DocumentStore
from storefront.schemas.cart import REQUIRED_BILLING_FIELDS, BillingDetails
from storefront.schemas.checkout import (
    BuyNowItem,
    CheckoutContext,
    CheckoutState,
    PaymentChoice,
    PaymentInitiation,
)
from storefront.schemas.order import CASH_ON_DELIVERY, OrderConfirmation, OrderStatus
from storefront.services.cart import CartStore
from storefront.services.order_composer import compose_order, merge_buy_now, order_total
from storefront.services.orders import OrderRepository
from storefront.services.profile import prefill_billing_details, save_billing_details

logger = logging.getLogger(__name__)


def missing_billing_field(details: BillingDetails) -> Optional[str]:
    """First required billing field that is empty, by its form name."""
    values = details.model_dump(by_alias=True)
    for field in REQUIRED_BILLING_FIELDS:
        if not str(values.get(field) or "").strip():
            return field
    return None


class CheckoutOrchestrator:
    def __init__(
        self,
        cart: CartStore,
        store: DocumentStore,
        catalog: CatalogClient,
        gateway: RazorpayGateway,
        user_id: str,
        context: CheckoutContext = None
    ):
        self.cart = cart
        self.store = store
        self.orders = OrderRepository(store)
        self.catalog = catalog
        self.gateway = gateway
        self.user_id = user_id
        self.context = context or CheckoutContext()

    @property
    def state(self) -> CheckoutState:
        return self.context.state

    def _transition(self, state: CheckoutState, error: str = None) -> None:
        logger.info(f"Checkout {self.user_id}: {self.context.state.value} -> {state.value}")
        self.context.state = state
        self.context.error = error

    def _require(self, *states: CheckoutState) -> None:
        if self.context.state not in states:
            raise CheckoutStateError(
                f"Cannot do that while checkout is {self.context.state.value}."
            )

    async def _snapshot(self, buy_now: Optional[BuyNowItem]) -> None:
        items = self.cart.items
        if buy_now:
            items = merge_buy_now(items, buy_now.product, buy_now.quantity)
        self.context.items = items
        self.context.sku_map = await self.catalog.resolve_skus(item.id for item in items)
        self.context.total_amount = order_total(items)

    async def start(self, buy_now: BuyNowItem = None) -> CheckoutContext:
        """Prepare the checkout form: item snapshot, SKUs, total and prefilled billing details."""
        if self.context.state in (CheckoutState.SAVING, CheckoutState.AWAITING_PAYMENT):
            raise CheckoutStateError(f"Checkout is already {self.context.state.value}.")

        await self._snapshot(buy_now)
        self.context.billing_details = await prefill_billing_details(
            self.store, self.user_id, self.cart.billing_details
        )
        self._transition(CheckoutState.IDLE)
        return self.context

    async def submit(
        self,
        billing: BillingDetails,
        payment_method: PaymentChoice,
        buy_now: BuyNowItem = None
    ) -> CheckoutContext:
        """Validate the form, save billing details and branch on the payment method."""
        self._require(
            CheckoutState.IDLE,
            CheckoutState.ERROR,
            CheckoutState.DONE,
            CheckoutState.AWAITING_CONFIRMATION,
            CheckoutState.AWAITING_PAYMENT,
        )
        if self.context.payment_id:
            raise CheckoutStateError("Payment already received; the order is still being saved.")
        if self.context.payment_handle_id:
            self.gateway.cancel(self.context.payment_handle_id)
            self.context.payment_handle_id = None

        self._transition(CheckoutState.VALIDATING)
        self.context.billing_details = billing
        self.context.payment_method = payment_method
        self.context.gateway_order_id = None
        self.context.payment_id = None
        self.context.order_id = None

        field = missing_billing_field(billing)
        if field:
            error = BillingValidationError(field)
            self._transition(CheckoutState.ERROR, error.message)
            raise error

        await self._snapshot(buy_now)
        if not self.context.items:
            self._transition(CheckoutState.ERROR, "Your cart is empty.")
            raise CheckoutStateError("Your cart is empty.")

        self.cart.set_billing_details(billing)
        await save_billing_details(self.store, self.user_id, billing)

        if payment_method == PaymentChoice.COD:
            self._transition(CheckoutState.AWAITING_CONFIRMATION)
            return self.context

        try:
            handle = await self.gateway.initiate(
                amount=to_minor_units(self.context.total_amount),
                currency=settings.CURRENCY,
                notes={"address": billing.address, "pincode": billing.pincode},
            )
        except PaymentGatewayFailure as e:
            self._transition(CheckoutState.ERROR, e.message)
            raise

        self.context.payment_handle_id = handle.handle_id
        self.context.gateway_order_id = handle.gateway_order_id
        self._transition(CheckoutState.AWAITING_PAYMENT)
        return self.context

    def payment_request(self) -> PaymentInitiation:
        """What the browser needs to open the gateway's payment form."""
        self._require(CheckoutState.AWAITING_PAYMENT)
        billing = self.context.billing_details
        return PaymentInitiation(
            handle_id=self.context.payment_handle_id,
            key=self.gateway.key_id,
            gateway_order_id=self.context.gateway_order_id,
            amount=to_minor_units(self.context.total_amount),
            currency=settings.CURRENCY,
            name=settings.SHOP_NAME,
            description="Purchase Checkout",
            prefill={"name": billing.full_name, "email": billing.email, "contact": billing.phone},
            notes={"address": billing.address, "pincode": billing.pincode},
        )

    async def _save_order(
        self,
        payment_method: str,
        status: OrderStatus,
        payment_id: Optional[str],
        resume_state: CheckoutState
    ) -> OrderConfirmation:
        self._transition(CheckoutState.SAVING)
        order = compose_order(
            self.context.items,
            self.context.billing_details,
            self.context.sku_map,
            payment_method=payment_method,
            status=status,
            payment_id=payment_id,
            user_id=self.user_id,
        )
        try:
            await self.orders.create(self.user_id, order)
        except PersistenceFailure as e:
            self._transition(resume_state, e.message)
            raise

        self.cart.clear()
        self.context.order_id = order.order_id
        self._transition(CheckoutState.DONE)
        return OrderConfirmation(
            order_id=order.order_id,
            payment_method=payment_method,
            total=format_price(order.total_amount),
            items_count=len(self.context.items),
            billing_details=self.context.billing_details,
        )

    async def confirm(self) -> OrderConfirmation:
        """The user confirmed the cash-on-delivery order."""
        self._require(CheckoutState.AWAITING_CONFIRMATION)
        return await self._save_order(
            CASH_ON_DELIVERY,
            OrderStatus.PENDING,
            None,
            CheckoutState.AWAITING_CONFIRMATION,
        )

    def accept_payment(self, payment_id: str, signature: str = None) -> None:
        """
        Record a payment reported for a handle the gateway no longer holds,
        e.g. after a restart. The payment is checked against the gateway order
        kept in the context; ``complete_payment`` then stores the order.
        """
        self._require(CheckoutState.AWAITING_PAYMENT)
        self.context.payment_handle_id = None
        if not payment_id or not self.gateway.verify_payment(self.context.gateway_order_id, payment_id, signature):
            logger.error(f"Unverifiable payment for checkout {self.user_id}: payment={payment_id}")
            self._transition(CheckoutState.ERROR, "Payment verification failed.")
            raise PaymentGatewayFailure("Payment verification failed.", payment_id=payment_id)

        logger.info(f"Payment accepted without a live handle: user={self.user_id}, payment={payment_id}")
        self.context.payment_id = payment_id

    async def complete_payment(self, timeout: Optional[float] = None) -> OrderConfirmation:
        """
        Wait for the gateway's outcome, then store the order as Paid.

        A payment that succeeded but whose order could not be stored keeps its
        payment id, so calling this again only retries the save.
        """
        self._require(CheckoutState.AWAITING_PAYMENT)

        if not self.context.payment_id:
            try:
                self.context.payment_id = await self.gateway.wait(
                    self.context.payment_handle_id,
                    timeout if timeout is not None else settings.PAYMENT_TIMEOUT_SECONDS,
                )
            except PaymentGatewayFailure as e:
                self.context.payment_handle_id = None
                self._transition(CheckoutState.ERROR, e.message)
                raise
            self.context.payment_handle_id = None

        return await self._save_order(
            settings.PAYMENT_GATEWAY_NAME,
            OrderStatus.PAID,
            self.context.payment_id,
            CheckoutState.AWAITING_PAYMENT,
        )

    def cancel(self) -> CheckoutContext:
        """Back out of confirmation or payment; neither the cart nor any order is touched."""
        self._require(CheckoutState.AWAITING_CONFIRMATION, CheckoutState.AWAITING_PAYMENT, CheckoutState.ERROR)
        if self.context.payment_id:
            raise CheckoutStateError("Payment already received; the order is still being saved.")
        if self.context.payment_handle_id:
            self.gateway.cancel(self.context.payment_handle_id)
            self.context.payment_handle_id = None
        self._transition(CheckoutState.IDLE)
        return self.context
