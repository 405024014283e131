from datetime import datetime, timedelta, timezone

import mongomock
import pytest

import catalog
import database
import orders


class Clock:
    """Store clock that moves one second forward on every read."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        current = self.now
        self.now += timedelta(seconds=1)
        return current


@pytest.fixture(autouse=True)
def db(monkeypatch):
    mock_db = mongomock.MongoClient()["restaurant_test"]
    monkeypatch.setattr(database, "db", None)
    database.init_db(mock_db)
    return mock_db


@pytest.fixture(autouse=True)
def clock(monkeypatch):
    clock = Clock(datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc))
    monkeypatch.setattr(database, "now_utc", clock)
    return clock


@pytest.fixture(autouse=True)
def fresh_feed(monkeypatch):
    monkeypatch.setattr(orders.order_feed, "_subscribers", {})


@pytest.fixture
def table():
    return catalog.create_table(number=7, capacity=4)


@pytest.fixture
def menu():
    mains = catalog.create_item_type("Mains")
    drinks = catalog.create_item_type("Drinks")
    return {
        "burger": catalog.create_item("Burger", 12.5, type_id=mains.id),
        "soda": catalog.create_item("Soda", 3.75, type_id=drinks.id),
        "pasta": catalog.create_item("Pasta", 20, type_id=mains.id),
    }


@pytest.fixture
def make_order(table):
    def _make(lines, status="ready", table_id=None):
        order = orders.create_order(
            table_id or table.id,
            [{"item_id": item.id, "quantity": qty} for item, qty in lines],
        )
        if status != "pending":
            order = orders.update_order_status(order.id, status)
        return order
    return _make
