import re
from decimal import Decimal

from storefront.schemas.cart import BillingDetails
from storefront.schemas.order import CASH_ON_DELIVERY, OrderStatus
from storefront.services.order_composer import (
    compose_order,
    generate_order_id,
    merge_buy_now,
    resolve_sku,
)

BILLING = BillingDetails(
    full_name="Asha Rao",
    email="asha@example.com",
    phone="9876543210",
    address="12 MG Road",
    city="Bengaluru",
    pincode="560001",
)


def test_sku_prefers_catalog_main_sku(item):
    assert resolve_sku(item("P1", sku="N/A"), {"P1": "MAIN-SKU"}) == "MAIN-SKU"


def test_sku_falls_back_to_variant_sku(item):
    assert resolve_sku(item("P2", sku="VAR-7"), {}) == "VAR-7"


def test_sku_falls_back_to_product_id(item):
    assert resolve_sku(item("P3", sku="N/A"), {}) == "P3"


def test_total_matches_cart_sum(item):
    items = [item("a", price="100", quantity=2), item("b", price="250", quantity=1)]

    order = compose_order(items, BILLING, {}, CASH_ON_DELIVERY)

    assert order.total_amount == Decimal("450")
    assert [p.total_amount for p in order.products] == [Decimal("200"), Decimal("250")]


def test_order_fields(item):
    order = compose_order(
        [item("X", price="500")],
        BILLING,
        {},
        "Razorpay",
        status=OrderStatus.PAID,
        payment_id="pay_123",
        user_id="user-1",
    )

    assert order.order_status == OrderStatus.PAID
    assert order.payment_method == "Razorpay"
    assert order.payment_id == "pay_123"
    assert order.user_id == "user-1"
    assert order.phone_number == "9876543210"
    assert order.shipping_charges == Decimal("0")
    assert order.created_at is None
    assert order.address_details.full_name == "Asha Rao"
    assert order.address_details.address_line1 == "12 MG Road"
    assert order.address_details.postal_code == "560001"
    assert order.address_details.state == "Karnataka"


def test_line_without_variant_data_has_no_size_variants(item):
    order = compose_order([item("A", sku="VAR-1")], BILLING, {}, CASH_ON_DELIVERY)
    document = order.to_document()

    assert order.products[0].size_variants is None
    assert "sizevariants" not in document["products"][0]
    assert document["products"][0]["brandName"] is None


def test_size_variants_keep_the_variant_sku(item):
    line = item("P1", sku="VAR-9", size="XL", weight="500g")

    order = compose_order([line], BILLING, {"P1": "MAIN-SKU"}, CASH_ON_DELIVERY)
    product = order.to_document()["products"][0]

    assert product["sku"] == "MAIN-SKU"
    assert product["sizevariants"] == {
        "sku": "VAR-9",
        "stock": None,
        "weight": "500g",
        "width": None,
        "height": None,
    }


def test_size_variants_sentinel_sku_becomes_null(item):
    order = compose_order([item("P3", color="Blue", stock=4)], BILLING, {}, CASH_ON_DELIVERY)

    variants = order.products[0].size_variants
    assert variants.sku is None
    assert variants.stock == 4
    assert order.products[0].sku == "P3"


def test_name_falls_back(item):
    line = item("A").model_copy(update={"title": "", "name": "Legacy Name"})
    unnamed = item("B").model_copy(update={"title": ""})

    order = compose_order([line, unnamed], BILLING, {}, CASH_ON_DELIVERY)

    assert [p.name for p in order.products] == ["Legacy Name", "Unnamed Product"]


def test_order_document_uses_stored_field_names(item):
    document = compose_order([item("A", images=["1.jpg"])], BILLING, {}, CASH_ON_DELIVERY).to_document()

    assert document["orderStatus"] == "Pending"
    assert document["paymentMethod"] == "Cash on Delivery"
    assert document["addressDetails"]["addressLine1"] == "12 MG Road"
    assert document["products"][0]["productId"] == "A"
    assert document["products"][0]["images"] == ["1.jpg"]


def test_order_ids_are_unique():
    ids = {generate_order_id() for _ in range(200)}

    assert len(ids) == 200
    assert all(re.fullmatch(r"ORD-\d{13}-[0-9a-f]{12}", i) for i in ids)


def test_buy_now_merges_matching_line(item):
    cart_items = [item("A", quantity=2, sku="S1")]

    merged = merge_buy_now(cart_items, item("A", sku="S1"), 3)

    assert [(i.id, i.quantity) for i in merged] == [("A", 5)]
    assert cart_items[0].quantity == 2


def test_buy_now_appends_other_variant(item):
    merged = merge_buy_now([item("A", sku="S1")], item("A", sku="S2"), 1)

    assert [(i.id, i.sku) for i in merged] == [("A", "S1"), ("A", "S2")]
