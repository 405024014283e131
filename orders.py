"""
Orders: priced snapshots of menu selections for a table.

Item names, unit prices and the table name are copied into the order when
it is created and never re-read from the catalog afterwards. After
creation only the status changes.
"""

import logging
from typing import Dict, Iterable, List, Optional

from catalog import get_catalog_item, get_table, set_table_status
from database import (
    create_document,
    delete_document,
    get_document_by_id,
    get_documents,
    money,
    new_id,
    update_document,
)
from errors import NotFound, ValidationError
from feed import OrderFeed
from schemas import BILLABLE_ORDER_STATUSES, ORDER_STATUSES, Order, OrderLine

logger = logging.getLogger(__name__)

ORDERS = "order"
BILLS = "bill"


def list_orders(table_id: Optional[str] = None, status: Optional[str] = None, limit: Optional[int] = None) -> List[Order]:
    filt = {}
    if table_id:
        filt["table_id"] = table_id
    if status:
        filt["status"] = status
    return [Order(**d) for d in get_documents(ORDERS, filt, limit=limit, sort=[("created_at", -1)])]


order_feed = OrderFeed(lambda limit: list_orders(limit=limit))


def get_order(order_id: str) -> Order:
    doc = get_document_by_id(ORDERS, order_id)
    if not doc:
        raise NotFound("Order", order_id)
    return Order(**doc)


def order_total(lines: Iterable[OrderLine]) -> float:
    return float(sum((money(line.unit_price) * line.quantity for line in lines), money(0)))


def create_order(table_id: str, lines: List[Dict]) -> Order:
    """
    Price ``lines`` ({"item_id", "quantity"}) against the catalog and store the order.

    Lines whose item no longer exists are dropped. The table is marked occupied.
    """
    if not lines:
        raise ValidationError("An order needs at least one item")
    for line in lines:
        quantity = line.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError(f"Quantity for item {line['item_id']} must be a whole number")
        if quantity < 1:
            raise ValidationError(f"Quantity for item {line['item_id']} must be positive")

    table = get_table(table_id)
    if table is None:
        raise NotFound("Table", table_id)

    items = []
    for line in lines:
        item = get_catalog_item(line["item_id"])
        if item is None:
            logger.warning("Dropping unknown item %s from order for %s", line["item_id"], table.display_name)
            continue
        items.append(OrderLine(
            id=new_id(),
            item_id=item.id,
            item_name=item.name,
            quantity=line["quantity"],
            unit_price=float(money(item.price)),
        ))

    order_doc = {
        "table_id": table.id,
        "table_name": table.display_name,
        "status": "pending",
        "items": [i.model_dump() for i in items],
        "total": order_total(items),
    }
    order_id = create_document(ORDERS, order_doc)
    logger.info("Order %s created for %s: %d line(s), total %.2f",
                order_id, table.display_name, len(items), order_doc["total"])

    set_table_status(table.id, "occupied")
    order_feed.publish()
    return get_order(order_id)


def update_order_status(order_id: str, status: str) -> Order:
    # Any status may follow any other
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Unknown order status {status!r}")
    if not update_document(ORDERS, order_id, {"status": status}):
        raise NotFound("Order", order_id)
    logger.info("Order %s is now %s", order_id, status)
    order_feed.publish()
    return get_order(order_id)


def delete_order(order_id: str) -> None:
    # Bills keep their own embedded copy of the order
    if not delete_document(ORDERS, order_id):
        raise NotFound("Order", order_id)
    logger.info("Order %s deleted", order_id)
    order_feed.publish()


def billed_order_ids() -> set:
    ids = set()
    for bill in get_documents(BILLS):
        ids.update(o["id"] for o in bill.get("orders", []))
    return ids


def list_billable_orders() -> List[Order]:
    """Ready or delivered orders that are not part of any bill yet, paid or not."""
    billed = billed_order_ids()
    return [
        o for o in list_orders()
        if o.status in BILLABLE_ORDER_STATUSES and o.id not in billed
    ]
