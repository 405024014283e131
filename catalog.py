"""
Catalog: tables, item types, menu items and expenses.

Plain CRUD over one collection each. The order and bill modules only need
get_catalog_item, get_table and set_table_status from here; the financial
summary reads list_expenses.
"""

import logging
from datetime import datetime
from typing import List, Optional

import config
from database import (
    as_utc,
    create_document,
    date_range,
    delete_document,
    get_document_by_id,
    get_documents,
    update_document,
)
from errors import NotFound, ValidationError
from schemas import Expense, ItemType, MenuItem, Table

logger = logging.getLogger(__name__)

TABLES = "table"
ITEM_TYPES = "itemtype"
ITEMS = "menuitem"
EXPENSES = "expense"


def _changes(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


def _require_update(collection_name: str, kind: str, id_str: str, data: dict) -> None:
    if not update_document(collection_name, id_str, data):
        raise NotFound(kind, id_str)


def _require_delete(collection_name: str, kind: str, id_str: str) -> None:
    if not delete_document(collection_name, id_str):
        raise NotFound(kind, id_str)

# -----------------------------
# Tables
# -----------------------------

def list_tables() -> List[Table]:
    return [Table(**d) for d in get_documents(TABLES, sort=[("number", 1)])]


def get_table(table_id: str) -> Optional[Table]:
    doc = get_document_by_id(TABLES, table_id)
    return Table(**doc) if doc else None


def create_table(number: int, capacity: int = 4, status: str = "available", qr_path: Optional[str] = None) -> Table:
    table = Table(number=number, capacity=capacity, status=status, qr_path=qr_path)
    table_id = create_document(TABLES, table.model_dump(exclude={"created_at", "updated_at"}))
    return get_table(table_id)


def update_table(table_id: str, data: dict) -> Table:
    _require_update(TABLES, "Table", table_id, _changes(data))
    return get_table(table_id)


def set_table_status(table_id: str, status: str) -> None:
    _require_update(TABLES, "Table", table_id, {"status": status})
    logger.info("Table %s is now %s", table_id, status)


def delete_table(table_id: str) -> None:
    _require_delete(TABLES, "Table", table_id)

# -----------------------------
# Item types
# -----------------------------

def list_item_types() -> List[ItemType]:
    return [ItemType(**d) for d in get_documents(ITEM_TYPES, sort=[("name", 1)])]


def create_item_type(name: str, description: Optional[str] = None) -> ItemType:
    type_id = create_document(ITEM_TYPES, {"name": name, "description": description})
    return ItemType(**get_document_by_id(ITEM_TYPES, type_id))


def update_item_type(type_id: str, data: dict) -> ItemType:
    _require_update(ITEM_TYPES, "Item type", type_id, _changes(data))
    return ItemType(**get_document_by_id(ITEM_TYPES, type_id))


def delete_item_type(type_id: str) -> None:
    _require_delete(ITEM_TYPES, "Item type", type_id)

# -----------------------------
# Menu items
# -----------------------------

def _with_type_names(docs: List[dict]) -> List[MenuItem]:
    names = {t.id: t.name for t in list_item_types()}
    return [MenuItem(**{**d, "type_name": names.get(d.get("type_id"), "Unknown")}) for d in docs]


def list_items(available_only: bool = False) -> List[MenuItem]:
    filt = {"available": True} if available_only else {}
    return _with_type_names(get_documents(ITEMS, filt, sort=[("name", 1)]))


def get_catalog_item(item_id: str) -> Optional[MenuItem]:
    doc = get_document_by_id(ITEMS, item_id)
    return MenuItem(**doc) if doc else None


def create_item(name: str, price: float, type_id: Optional[str] = None,
                description: Optional[str] = None, available: bool = True) -> MenuItem:
    if price < 0:
        raise ValidationError("Item price must not be negative")
    item_id = create_document(ITEMS, {
        "name": name,
        "description": description,
        "price": price,
        "type_id": type_id,
        "available": available,
    })
    return _with_type_names([get_document_by_id(ITEMS, item_id)])[0]


def update_item(item_id: str, data: dict) -> MenuItem:
    data = _changes(data)
    data.pop("type_name", None)
    if data.get("price", 0) < 0:
        raise ValidationError("Item price must not be negative")
    _require_update(ITEMS, "Item", item_id, data)
    return _with_type_names([get_document_by_id(ITEMS, item_id)])[0]


def delete_item(item_id: str) -> None:
    _require_delete(ITEMS, "Item", item_id)

# -----------------------------
# Expenses
# -----------------------------

def _expense(doc: dict) -> Expense:
    doc["date"] = as_utc(doc["date"])
    return Expense(**doc)


def _check_category(category: str) -> None:
    if category not in config.EXPENSE_CATEGORIES:
        raise ValidationError(f"Unknown expense category {category!r}")


def list_expenses(start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[Expense]:
    """Expenses dated in [start, end), newest first."""
    docs = get_documents(EXPENSES, date_range("date", start, end), sort=[("date", -1)])
    return [_expense(d) for d in docs]


def create_expense(amount: float, category: str, date: datetime, description: str = "") -> Expense:
    if amount < 0:
        raise ValidationError("Expense amount must not be negative")
    _check_category(category)
    expense_id = create_document(EXPENSES, {
        "amount": amount,
        "category": category,
        "description": description,
        "date": as_utc(date),
    })
    return _expense(get_document_by_id(EXPENSES, expense_id))


def update_expense(expense_id: str, data: dict) -> Expense:
    data = _changes(data)
    if "category" in data:
        _check_category(data["category"])
    if data.get("amount", 0) < 0:
        raise ValidationError("Expense amount must not be negative")
    if "date" in data:
        data["date"] = as_utc(data["date"])
    _require_update(EXPENSES, "Expense", expense_id, data)
    return _expense(get_document_by_id(EXPENSES, expense_id))


def delete_expense(expense_id: str) -> None:
    _require_delete(EXPENSES, "Expense", expense_id)
