import json
import pytest
from decimal import Decimal

from storefront.core.errors import StockInsufficient, StockUnavailable
from storefront.schemas.cart import BillingDetails, CartLineItem
from storefront.services.cart import CartReconciler, CartStore


def test_add_new_item(cart, item):
    cart.add_item(item("A", quantity=2))

    state = cart.get_state()
    assert len(state.items) == 1
    assert state.items[0].quantity == 2
    assert state.error_id is None


def test_quantity_never_leaves_bounds(cart, item):
    for _ in range(12):
        cart.add_item(item("A"), 1)
        quantity = cart.get_item("A").quantity
        assert 1 <= quantity <= 5


def test_merge_up_to_ceiling_does_not_flag(cart, item):
    cart.add_item(item("A", quantity=3))
    cart.add_item(item("A", quantity=2))

    assert cart.get_item("A").quantity == 5
    assert cart.error_id is None


def test_merge_past_ceiling_clamps_and_flags(cart, item):
    cart.add_item(item("A", quantity=4))
    cart.add_item(item("A", quantity=3))

    assert cart.get_item("A").quantity == 5
    assert cart.error_id == "A"


def test_new_item_over_ceiling_is_clamped(cart, item):
    cart.add_item(item("A"), 9)

    assert cart.get_item("A").quantity == 5
    assert cart.error_id is None


def test_decrease_by_quantity_floors_at_one(cart, item):
    cart.add_item(item("A", quantity=3))

    cart.decrease_item("A", 10)

    assert cart.get_item("A").quantity == 1


def test_decrease_without_quantity_removes(cart, item):
    cart.add_item(item("A", quantity=3))

    cart.decrease_item("A")

    assert cart.get_item("A") is None


def test_decrease_missing_item_is_noop(cart, storage):
    cart.decrease_item("missing", 1)

    assert cart.items == []
    assert storage == {}


def test_remove_deletes_regardless_of_quantity(cart, item):
    cart.add_item(item("A", quantity=5))
    cart.add_item(item("B", quantity=1))

    cart.remove_item("A")

    assert [i.id for i in cart.items] == ["B"]


def test_clear_twice(cart, item):
    cart.add_item(item("A", quantity=4))
    cart.add_item(item("A", quantity=4))
    cart.set_billing_details(BillingDetails(full_name="Asha"))

    cart.clear()
    first = cart.get_state()
    cart.clear()
    second = cart.get_state()

    assert first == second
    assert first.items == []
    assert first.error_id is None
    assert first.billing_details == BillingDetails()


def test_round_trip_persistence_resets_error(storage, item):
    cart = CartStore(storage)
    cart.add_item(item("A", price="99.50", quantity=4, color="Red", images=["a.jpg"]))
    cart.add_item(item("A", quantity=4))
    cart.set_billing_details(BillingDetails(full_name="Asha", city="Mysuru", pincode="570001"))
    assert cart.error_id == "A"

    reloaded = CartStore(storage)

    assert reloaded.items == cart.items
    assert reloaded.billing_details == cart.billing_details
    assert reloaded.error_id is None


def test_persisted_record_excludes_error_id(cart, storage, item):
    cart.add_item(item("A", quantity=5))
    cart.add_item(item("A"))

    persisted = json.loads(storage["shoppingCart"])

    assert set(persisted) == {"items", "billingDetails"}


def test_acknowledge_error_is_not_persisted(cart, storage, item):
    cart.add_item(item("A", quantity=5))
    cart.add_item(item("A"))
    before = storage["shoppingCart"]

    assert cart.acknowledge_error() == "A"
    assert cart.error_id is None
    assert storage["shoppingCart"] == before


def test_unreadable_storage_falls_back_to_empty_cart():
    cart = CartStore({"shoppingCart": "{not json"})

    assert cart.items == []
    assert cart.error_id is None


def test_invalid_persisted_items_fall_back_to_empty_cart():
    cart = CartStore({"shoppingCart": json.dumps({"items": [{"id": "A", "price": -1}]})})

    assert cart.items == []


def test_subscribers_are_notified(cart, item):
    seen = []
    unsubscribe = cart.subscribe(lambda state: seen.append(len(state.items)))

    cart.add_item(item("A"))
    cart.add_item(item("B"))
    unsubscribe()
    cart.clear()

    assert seen == [1, 2]


def test_replace_clears_error(cart, item):
    cart.add_item(item("A", quantity=5))
    cart.add_item(item("A"))

    cart.replace([item("B", quantity=2)], BillingDetails(email="a@example.com"))

    assert [i.id for i in cart.items] == ["B"]
    assert cart.error_id is None
    assert cart.billing_details.email == "a@example.com"


def test_take_notice_reports_and_acknowledges(cart, item):
    cart.add_item(item("A", quantity=5))
    cart.add_item(item("A"))

    notice = cart.take_notice()

    assert notice == 'We\'re sorry! You\'ve reached the maximum allowed stock for "Product A".'
    assert cart.error_id is None
    assert cart.take_notice() is None


def test_alternate_sku_keys_are_accepted():
    line = CartLineItem.model_validate({"id": "A", "title": "A", "price": 10, "skuCode": "VAR-7"})
    assert line.sku == "VAR-7"

    line = CartLineItem.model_validate({"id": 42, "title": "A", "price": 10})
    assert line.id == "42"
    assert line.sku == "N/A"


def test_total(cart, item):
    cart.add_item(item("A", price="100", quantity=2))
    cart.add_item(item("B", price="250", quantity=1))

    assert cart.total == Decimal("450")
    assert cart.item_count == 2


def test_increase_out_of_stock(cart, item):
    cart.add_item(item("A"))
    reconciler = CartReconciler(cart, {"A": 0})

    with pytest.raises(StockUnavailable, match="currently out of stock"):
        reconciler.increase("A")
    assert cart.get_item("A").quantity == 1


def test_increase_limited_by_stock(cart, item):
    cart.add_item(item("A", quantity=2))
    reconciler = CartReconciler(cart, {"A": 2})

    with pytest.raises(StockInsufficient) as exc_info:
        reconciler.increase("A")

    assert exc_info.value.message == 'Only 2 units available in stock for "Product A".'
    assert cart.get_item("A").quantity == 2


def test_increase_single_unit_message(cart, item):
    cart.add_item(item("A"))

    with pytest.raises(StockInsufficient, match="Only 1 unit available"):
        CartReconciler(cart, {"A": 1}).increase("A")


def test_increase_within_stock(cart, item):
    cart.add_item(item("A", quantity=2))

    CartReconciler(cart, {"A": 8}).increase("A")

    assert cart.get_item("A").quantity == 3


def test_increase_still_bound_by_ceiling(cart, item):
    cart.add_item(item("A", quantity=5))

    CartReconciler(cart, {"A": 50}).increase("A")

    assert cart.get_item("A").quantity == 5
    assert cart.error_id == "A"


def test_increase_unknown_stock_counts_as_zero(cart, item):
    cart.add_item(item("A"))

    with pytest.raises(StockUnavailable):
        CartReconciler(cart, {}).increase("A")


def test_reconciler_decrease_keeps_last_unit(cart, item):
    cart.add_item(item("A", quantity=2))
    reconciler = CartReconciler(cart, {})

    reconciler.decrease("A")
    reconciler.decrease("A")

    assert cart.get_item("A").quantity == 1


def test_reconciler_missing_item(cart):
    with pytest.raises(KeyError):
        CartReconciler(cart, {"A": 3}).increase("A")


@pytest.mark.asyncio
async def test_reconciler_from_catalog(cart, catalog, item):
    cart.add_item(item("P1", quantity=3))
    cart.add_item(item("X"))

    reconciler = await CartReconciler.from_catalog(cart, catalog)

    assert reconciler.stock_levels == {"P1": 3, "X": 10}
    with pytest.raises(StockInsufficient):
        reconciler.increase("P1")
