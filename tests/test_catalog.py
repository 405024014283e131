from datetime import datetime, timedelta, timezone

import pytest

import catalog
from errors import NotFound, ValidationError


def test_table_crud():
    table = catalog.create_table(number=3, capacity=2)
    assert table.status == "available"
    assert table.display_name == "Table 3"

    catalog.set_table_status(table.id, "reserved")
    assert catalog.get_table(table.id).status == "reserved"

    updated = catalog.update_table(table.id, {"capacity": 6, "number": None})
    assert (updated.number, updated.capacity) == (3, 6)

    catalog.delete_table(table.id)
    assert catalog.get_table(table.id) is None
    with pytest.raises(NotFound):
        catalog.set_table_status(table.id, "available")


def test_tables_sorted_by_number():
    for n in (5, 1, 3):
        catalog.create_table(number=n)
    assert [t.number for t in catalog.list_tables()] == [1, 3, 5]


def test_items_carry_their_type_name(menu):
    items = {i.name: i for i in catalog.list_items()}
    assert items["Burger"].type_name == "Mains"
    assert items["Soda"].type_name == "Drinks"

    loose = catalog.create_item("Special", 9)
    assert loose.type_name == "Unknown"


def test_available_items_only(menu):
    catalog.update_item(menu["pasta"].id, {"available": False})
    assert {i.name for i in catalog.list_items(available_only=True)} == {"Burger", "Soda"}


def test_negative_price_rejected(menu):
    with pytest.raises(ValidationError):
        catalog.create_item("Refund", -1)
    with pytest.raises(ValidationError):
        catalog.update_item(menu["soda"].id, {"price": -2})


def test_get_catalog_item_handles_bad_ids():
    assert catalog.get_catalog_item("5f0000000000000000000000") is None
    assert catalog.get_catalog_item("nope") is None


def test_item_type_crud():
    item_type = catalog.create_item_type("Desserts", "Sweet things")
    renamed = catalog.update_item_type(item_type.id, {"name": "Puddings", "description": None})
    assert (renamed.name, renamed.description) == ("Puddings", "Sweet things")
    catalog.delete_item_type(item_type.id)
    with pytest.raises(NotFound):
        catalog.delete_item_type(item_type.id)


def test_expense_crud_and_range():
    early = catalog.create_expense(10, "Rent", datetime(2026, 10, 1, tzinfo=timezone.utc))
    late = catalog.create_expense(20, "Utilities", datetime(2026, 10, 10, tzinfo=timezone.utc))

    assert [e.id for e in catalog.list_expenses()] == [late.id, early.id]
    in_range = catalog.list_expenses(
        datetime(2026, 10, 1, tzinfo=timezone.utc),
        datetime(2026, 10, 10, tzinfo=timezone.utc),
    )
    assert [e.id for e in in_range] == [early.id]

    updated = catalog.update_expense(early.id, {"amount": 15, "description": "Deposit"})
    assert (updated.amount, updated.description, updated.category) == (15, "Deposit", "Rent")

    catalog.delete_expense(late.id)
    assert [e.id for e in catalog.list_expenses()] == [early.id]


def test_expense_range_is_filtered_by_the_store(monkeypatch):
    september = catalog.create_expense(10, "Rent", datetime(2026, 9, 30, 22, 0, tzinfo=timezone.utc))
    october = catalog.create_expense(20, "Utilities", datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc))
    real_get_documents = catalog.get_documents
    filters = []

    def recording_get_documents(collection_name, filter_dict=None, **kwargs):
        filters.append(filter_dict)
        return real_get_documents(collection_name, filter_dict, **kwargs)

    monkeypatch.setattr(catalog, "get_documents", recording_get_documents)
    midnight = datetime(2026, 10, 1, 2, 0, tzinfo=timezone(timedelta(hours=2)))

    assert [e.id for e in catalog.list_expenses(start=midnight)] == [october.id]
    assert [e.id for e in catalog.list_expenses(end=midnight)] == [september.id]
    assert len(catalog.list_expenses()) == 2
    assert filters == [
        {"date": {"$gte": datetime(2026, 10, 1)}},
        {"date": {"$lt": datetime(2026, 10, 1)}},
        {},
    ]


def test_expense_category_must_be_known():
    with pytest.raises(ValidationError):
        catalog.create_expense(5, "Snacks", datetime(2026, 10, 1, tzinfo=timezone.utc))


def test_update_missing_expense():
    with pytest.raises(NotFound):
        catalog.update_expense("5f0000000000000000000000", {"amount": 1})
