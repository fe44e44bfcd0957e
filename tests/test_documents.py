import pytest

from storefront.db.documents import SERVER_TIMESTAMP, split_path


@pytest.mark.asyncio
async def test_set_and_get(document_store):
    await document_store.set("users/u1", {"name": "Asha", "phone": "1"})

    assert await document_store.get("users/u1") == {"name": "Asha", "phone": "1"}
    assert await document_store.get("users/u2") is None


@pytest.mark.asyncio
async def test_set_merge_is_deep(document_store):
    await document_store.set("users/u1", {"name": "Asha", "shipping_address": {"city": "Mysuru", "pincode": "570001"}})

    await document_store.set("users/u1", {"phone": "9", "shipping_address": {"city": "Bengaluru"}}, merge=True)

    assert await document_store.get("users/u1") == {
        "name": "Asha",
        "phone": "9",
        "shipping_address": {"city": "Bengaluru", "pincode": "570001"},
    }


@pytest.mark.asyncio
async def test_set_without_merge_replaces(document_store):
    await document_store.set("users/u1", {"name": "Asha"})
    await document_store.set("users/u1", {"phone": "9"})

    assert await document_store.get("users/u1") == {"phone": "9"}


@pytest.mark.asyncio
async def test_add_assigns_id_and_timestamps(document_store):
    doc_id = await document_store.add("users/u1/orders", {"orderId": "ORD-1", "createdAt": SERVER_TIMESTAMP})

    stored = await document_store.get(f"users/u1/orders/{doc_id}")
    assert stored["orderId"] == "ORD-1"
    assert isinstance(stored["createdAt"], str)


@pytest.mark.asyncio
async def test_query_orders_by_field(document_store):
    await document_store.add("users/u1/orders", {"n": 1, "orderDate": "2026-10-01T10:00:00+00:00"})
    await document_store.add("users/u1/orders", {"n": 2, "orderDate": "2026-10-03T10:00:00+00:00"})
    await document_store.add("users/u1/orders", {"n": 3})
    await document_store.add("users/u2/orders", {"n": 4})

    rows = await document_store.query("users/u1/orders", order_by="orderDate", descending=True)

    assert [data["n"] for _, data in rows] == [2, 1, 3]


def test_split_path():
    assert split_path("users/u1/orders/o9") == ("users/u1/orders", "o9")
    with pytest.raises(ValueError):
        split_path("users/u1/orders")
