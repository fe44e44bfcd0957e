import pytest

from storefront.schemas.checkout import CheckoutContext, CheckoutState
from storefront.services.shopper_session import SESSION_ID_KEY, ShopperSession, ensure_session_id


def test_session_id_is_minted_once():
    session = {}

    first = ensure_session_id(session)

    assert session[SESSION_ID_KEY] == first
    assert ensure_session_id(session) == first


@pytest.mark.asyncio
async def test_cart_round_trips_through_document_store(document_store, item):
    shopper = ShopperSession(document_store, "sid-1")
    cart = await shopper.load_cart()
    cart.add_item(item("X", quantity=2, image="https://cdn.example.com/x.jpg"))

    assert await shopper.save_cart() is True

    restored = await ShopperSession(document_store, "sid-1").load_cart()
    assert restored.get_item("X").quantity == 2
    assert restored.get_item("X").image == "https://cdn.example.com/x.jpg"
    assert (await ShopperSession(document_store, "sid-2").load_cart()).items == []


@pytest.mark.asyncio
async def test_unchanged_cart_is_not_written(document_store, item):
    shopper = ShopperSession(document_store, "sid-1")
    cart = await shopper.load_cart()

    assert await shopper.save_cart() is False
    assert await document_store.get(shopper.cart_path) is None

    cart.add_item(item("X"))
    await shopper.save_cart()
    assert await shopper.save_cart() is False


@pytest.mark.asyncio
async def test_checkout_context_round_trip(document_store, item):
    shopper = ShopperSession(document_store, "sid-1")
    context = CheckoutContext(state=CheckoutState.AWAITING_PAYMENT, items=[item("X")], gateway_order_id="order_1")

    await shopper.save_checkout(context)
    restored = await ShopperSession(document_store, "sid-1").load_checkout()

    assert restored.state == CheckoutState.AWAITING_PAYMENT
    assert restored.gateway_order_id == "order_1"
    assert [i.id for i in restored.items] == ["X"]


@pytest.mark.asyncio
async def test_unreadable_checkout_state_is_discarded(document_store):
    await document_store.set("checkouts/sid-1", {"state": "Teleporting"})

    context = await ShopperSession(document_store, "sid-1").load_checkout()

    assert context.state == CheckoutState.IDLE
