from fastapi import APIRouter, Depends
from typing import Optional
import logging

from storefront.api.dependencies import (
    get_cart_store,
    get_catalog,
    get_current_user_id,
    get_document_store,
    get_gateway,
    get_shopper_session,
)
from storefront.core.catalog_client import CatalogClient
from storefront.core.errors import CheckoutStateError, PaymentGatewayFailure
from storefront.core.payment_gateway import RazorpayGateway
from storefront.core.pricing import format_price
from storefront.db.documents import DocumentStore
from storefront.schemas.checkout import (
    BuyNowItem,
    CheckoutRequest,
    CheckoutResponse,
    CheckoutState,
    PaymentCallback,
    PaymentInitiation,
)
from storefront.schemas.order import OrderConfirmation
from storefront.services.cart import CartStore
from storefront.services.checkout import CheckoutOrchestrator
from storefront.services.shopper_session import ShopperSession

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/checkout", tags=["checkout"])


async def get_orchestrator(
    user_id: str = Depends(get_current_user_id),
    shopper: ShopperSession = Depends(get_shopper_session),
    cart: CartStore = Depends(get_cart_store),
    store: DocumentStore = Depends(get_document_store),
    catalog: CatalogClient = Depends(get_catalog),
    gateway: RazorpayGateway = Depends(get_gateway)
) -> CheckoutOrchestrator:
    context = await shopper.load_checkout()
    return CheckoutOrchestrator(cart, store, catalog, gateway, user_id, context)


async def save_progress(shopper: ShopperSession, orchestrator: CheckoutOrchestrator):
    """Store the checkout context and any cart change made along the way."""
    await shopper.save_cart()
    await shopper.save_checkout(orchestrator.context)


def build_checkout_response(
    orchestrator: CheckoutOrchestrator,
    payment: Optional[PaymentInitiation] = None,
    confirmation: Optional[OrderConfirmation] = None
) -> CheckoutResponse:
    context = orchestrator.context
    return CheckoutResponse(
        state=context.state,
        items=context.items,
        billing_details=context.billing_details,
        total=context.total_amount,
        formatted_total=format_price(context.total_amount),
        item_count=len(context.items),
        error=context.error,
        payment=payment,
        confirmation=confirmation
    )


@router.get("", response_model=CheckoutResponse)
async def start_checkout(
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
    shopper: ShopperSession = Depends(get_shopper_session)
):
    """Checkout form data: items, total and billing details prefilled from the profile."""
    try:
        await orchestrator.start()
    finally:
        await save_progress(shopper, orchestrator)
    return build_checkout_response(orchestrator)


@router.post("/buy-now", response_model=CheckoutResponse)
async def start_buy_now(
    buy_now: BuyNowItem,
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
    shopper: ShopperSession = Depends(get_shopper_session)
):
    """Checkout form data for the cart plus a product bought directly from its page."""
    try:
        await orchestrator.start(buy_now)
    finally:
        await save_progress(shopper, orchestrator)
    return build_checkout_response(orchestrator)


@router.post("", response_model=CheckoutResponse)
async def submit_checkout(
    data: CheckoutRequest,
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
    shopper: ShopperSession = Depends(get_shopper_session)
):
    """
    Submit the checkout form.
    1. Validate billing details
    2. Save them to the user profile
    3. Cash on delivery: wait for confirmation. Gateway: return the payment request.
    """
    try:
        await orchestrator.submit(data.billing_details, data.payment_method, data.buy_now)
    finally:
        await save_progress(shopper, orchestrator)

    payment = None
    if orchestrator.state == CheckoutState.AWAITING_PAYMENT:
        payment = orchestrator.payment_request()
    return build_checkout_response(orchestrator, payment=payment)


@router.post("/confirm", response_model=CheckoutResponse)
async def confirm_cash_on_delivery(
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
    shopper: ShopperSession = Depends(get_shopper_session)
):
    """Place the cash-on-delivery order after the user confirmed it."""
    try:
        confirmation = await orchestrator.confirm()
    finally:
        await save_progress(shopper, orchestrator)
    return build_checkout_response(orchestrator, confirmation=confirmation)


@router.post("/payment", response_model=CheckoutResponse)
async def payment_callback(
    data: PaymentCallback,
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
    shopper: ShopperSession = Depends(get_shopper_session),
    gateway: RazorpayGateway = Depends(get_gateway)
):
    """
    Gateway handler callback: record the payment outcome and store the paid order.
    A payment whose handle this process no longer holds (restart, another
    worker, expiry) is checked against the gateway order kept in the context.
    """
    context = orchestrator.context
    try:
        if context.payment_id is None:
            if context.payment_handle_id != data.handle_id:
                raise CheckoutStateError("This payment does not belong to the current checkout.")
            if data.handle_id in gateway.handles:
                if data.payment_id and not data.error:
                    gateway.resolve(data.handle_id, data.payment_id, data.signature)
                else:
                    try:
                        gateway.reject(data.handle_id, data.error or "Payment was not completed.")
                    except PaymentGatewayFailure:
                        logger.warning(f"Payment failure reported for a finished payment: {data.handle_id}")
            elif data.payment_id and not data.error:
                orchestrator.accept_payment(data.payment_id, data.signature)

        confirmation = await orchestrator.complete_payment()
    finally:
        await save_progress(shopper, orchestrator)
    return build_checkout_response(orchestrator, confirmation=confirmation)


@router.post("/cancel", response_model=CheckoutResponse)
async def cancel_checkout(
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
    shopper: ShopperSession = Depends(get_shopper_session)
):
    """Close the confirmation or payment step without placing an order."""
    try:
        orchestrator.cancel()
    finally:
        await save_progress(shopper, orchestrator)
    return build_checkout_response(orchestrator)
