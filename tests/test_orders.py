import pytest

import bills
import catalog
import orders
from errors import NotFound, ValidationError


def test_create_order_snapshots_prices_and_names(table, menu):
    order = orders.create_order(table.id, [
        {"item_id": menu["burger"].id, "quantity": 2},
        {"item_id": menu["soda"].id, "quantity": 1},
    ])

    assert order.status == "pending"
    assert order.table_name == "Table 7"
    assert [(l.item_name, l.quantity, l.unit_price) for l in order.items] == [
        ("Burger", 2, 12.5),
        ("Soda", 1, 3.75),
    ]
    assert order.total == 28.75
    assert len({l.id for l in order.items}) == 2


def test_create_order_marks_table_occupied(table, menu):
    orders.create_order(table.id, [{"item_id": menu["pasta"].id, "quantity": 1}])
    assert catalog.get_table(table.id).status == "occupied"


def test_later_catalog_changes_do_not_touch_existing_orders(table, menu):
    order = orders.create_order(table.id, [{"item_id": menu["burger"].id, "quantity": 1}])

    catalog.update_item(menu["burger"].id, {"price": 99, "name": "Deluxe Burger"})
    catalog.update_table(table.id, {"number": 12})

    stored = orders.get_order(order.id)
    assert stored.items[0].unit_price == 12.5
    assert stored.items[0].item_name == "Burger"
    assert stored.table_name == "Table 7"
    assert stored.total == 12.5


def test_unknown_items_are_dropped(table, menu):
    order = orders.create_order(table.id, [
        {"item_id": menu["soda"].id, "quantity": 2},
        {"item_id": "5f0000000000000000000000", "quantity": 3},
        {"item_id": "not-an-id", "quantity": 1},
    ])
    assert [l.item_name for l in order.items] == ["Soda"]
    assert order.total == 7.5


def test_create_order_requires_existing_table(menu):
    with pytest.raises(NotFound):
        orders.create_order("5f0000000000000000000000", [{"item_id": menu["soda"].id, "quantity": 1}])
    assert orders.list_orders() == []


def test_create_order_rejects_empty_lines(table):
    with pytest.raises(ValidationError):
        orders.create_order(table.id, [])


def test_create_order_rejects_non_positive_quantity(table, menu):
    with pytest.raises(ValidationError):
        orders.create_order(table.id, [{"item_id": menu["soda"].id, "quantity": 0}])
    assert orders.list_orders() == []


@pytest.mark.parametrize("quantity", [1.5, "2", True])
def test_create_order_rejects_non_integer_quantity(table, menu, quantity):
    with pytest.raises(ValidationError):
        orders.create_order(table.id, [{"item_id": menu["soda"].id, "quantity": quantity}])
    assert orders.list_orders() == []


def test_status_changes_are_unrestricted(make_order, menu):
    order = make_order([(menu["soda"], 1)], status="delivered")
    for status in ("pending", "cancelled", "ready", "preparing", "delivered"):
        order = orders.update_order_status(order.id, status)
        assert order.status == status


def test_status_update_refreshes_updated_at(make_order, menu):
    order = make_order([(menu["soda"], 1)], status="pending")
    updated = orders.update_order_status(order.id, "preparing")
    assert updated.updated_at > order.updated_at
    assert updated.created_at == order.created_at


def test_status_update_rejects_unknown_status(make_order, menu):
    order = make_order([(menu["soda"], 1)])
    with pytest.raises(ValidationError):
        orders.update_order_status(order.id, "eaten")


def test_status_update_of_missing_order():
    with pytest.raises(NotFound):
        orders.update_order_status("5f0000000000000000000000", "ready")


def test_delete_order(make_order, menu):
    order = make_order([(menu["soda"], 1)])
    orders.delete_order(order.id)
    with pytest.raises(NotFound):
        orders.get_order(order.id)
    with pytest.raises(NotFound):
        orders.delete_order(order.id)


def test_deleting_a_billed_order_leaves_the_bill_copy(make_order, menu):
    order = make_order([(menu["pasta"], 1)])
    bill = bills.create_bill([order.id])

    orders.delete_order(order.id)

    assert bills.get_bill(bill.id).order_ids == [order.id]


def test_list_orders_newest_first_and_filtered(make_order, menu, table):
    other = catalog.create_table(number=8)
    first = make_order([(menu["soda"], 1)], status="pending")
    second = make_order([(menu["soda"], 2)], status="ready", table_id=other.id)
    third = make_order([(menu["soda"], 3)], status="ready")

    assert [o.id for o in orders.list_orders()] == [third.id, second.id, first.id]
    assert [o.id for o in orders.list_orders(table_id=table.id)] == [third.id, first.id]
    assert [o.id for o in orders.list_orders(status="ready")] == [third.id, second.id]
    assert [o.id for o in orders.list_orders(limit=1)] == [third.id]


def test_billable_orders_are_ready_or_delivered_and_unbilled(make_order, menu):
    pending = make_order([(menu["soda"], 1)], status="pending")
    preparing = make_order([(menu["soda"], 1)], status="preparing")
    ready = make_order([(menu["soda"], 1)], status="ready")
    delivered = make_order([(menu["soda"], 1)], status="delivered")
    cancelled = make_order([(menu["soda"], 1)], status="cancelled")

    billable = {o.id for o in orders.list_billable_orders()}
    assert billable == {ready.id, delivered.id}
    assert not billable & {pending.id, preparing.id, cancelled.id}


def test_billed_orders_leave_the_billable_pool_even_when_paid(make_order, menu):
    paid_order = make_order([(menu["soda"], 1)])
    open_order = make_order([(menu["burger"], 1)])
    loose_order = make_order([(menu["pasta"], 1)])

    paid_bill = bills.create_bill([paid_order.id])
    bills.update_payment_status(paid_bill.id, "paid", "card")
    bills.create_bill([open_order.id])

    assert [o.id for o in orders.list_billable_orders()] == [loose_order.id]
