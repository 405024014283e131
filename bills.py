"""
Bills: payable aggregations of one or more orders.

Totals are always derived from the embedded orders:

    subtotal = sum(order.total)
    total    = subtotal - discount_amount + tax
    tax      = (subtotal - discount_amount) * config.TAX_RATE

A paid bill can no longer be discounted or merged. Merging creates a new
bill from the union of orders (customer details from the first bill,
no discount) and then deletes the source bills one by one.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

import config
import database
from catalog import set_table_status
from database import (
    create_document,
    date_range,
    delete_document,
    get_document_by_id,
    get_documents,
    get_documents_by_ids,
    money,
    update_document,
)
from errors import NotFound, PartialFailure, StoreError, ValidationError
from orders import ORDERS, billed_order_ids
from schemas import BILLABLE_ORDER_STATUSES, Bill, Order

logger = logging.getLogger(__name__)

BILLS = "bill"
DISCOUNT_TYPES = ("percentage", "flat")
PAYMENT_STATUSES = ("pending", "paid")
PAYMENT_METHODS = ("cash", "card", "online")

# -----------------------------
# Arithmetic
# -----------------------------

def compute_subtotal(orders: Iterable[Order]) -> Decimal:
    return sum((money(o.total) for o in orders), money(0))


def compute_discount(subtotal: Decimal, discount_type: str, value: float) -> Tuple[Decimal, Decimal]:
    """Return (discount_amount, discount_percent) for a discount of ``value``."""
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"Unknown discount type {discount_type!r}")
    value = Decimal(str(value))
    if not value.is_finite():
        raise ValidationError("Discount must be a finite number")
    if value <= 0:
        raise ValidationError("Discount must be greater than zero")
    if discount_type == "percentage":
        if value > 100:
            raise ValidationError("Percentage discount cannot exceed 100")
        return money(subtotal * value / 100), value
    # A flat discount never takes the bill below zero
    return min(money(value), subtotal), Decimal(0)


def compute_totals(subtotal: Decimal, discount_amount: Decimal, tax_rate: Optional[float] = None) -> Tuple[Decimal, Decimal]:
    """Return (tax, total)."""
    if tax_rate is None:
        tax_rate = config.TAX_RATE
    taxable = subtotal - discount_amount
    tax = money(taxable * Decimal(str(tax_rate)))
    return tax, taxable + tax

# -----------------------------
# Queries
# -----------------------------

def list_bills() -> List[Bill]:
    return [Bill(**d) for d in get_documents(BILLS, sort=[("created_at", -1)])]


def list_paid_bills(start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[Bill]:
    """Paid bills whose paid_at falls in [start, end)."""
    filt = {"payment_status": "paid", **date_range("paid_at", start, end)}
    return [Bill(**d) for d in get_documents(BILLS, filt, sort=[("paid_at", 1)])]


def get_bill(bill_id: str) -> Bill:
    doc = get_document_by_id(BILLS, bill_id)
    if not doc:
        raise NotFound("Bill", bill_id)
    return Bill(**doc)

# -----------------------------
# Lifecycle
# -----------------------------

def _release_tables(orders: List[Order]) -> None:
    for table_id in dict.fromkeys(o.table_id for o in orders):
        try:
            set_table_status(table_id, "available")
        except NotFound:
            logger.warning("Table %s no longer exists, not releasing it", table_id)
        except StoreError as e:
            # The bill is already stored; a table left occupied is freed by hand
            logger.error("Could not release table %s: %s", table_id, e)


def _create_bill(orders: List[Order], customer_name: str, customer_phone: str) -> Bill:
    subtotal = compute_subtotal(orders)
    tax, total = compute_totals(subtotal, Decimal(0))
    bill_id = create_document(BILLS, {
        "orders": [o.model_dump() for o in orders],
        "customer_name": customer_name,
        "customer_phone": customer_phone,
        "subtotal": float(subtotal),
        "discount_type": "percentage",
        "discount_value": 0.0,
        "discount_percent": 0.0,
        "discount_amount": 0.0,
        "tax": float(tax),
        "total": float(total),
        "payment_status": "pending",
        "payment_method": None,
        "paid_at": None,
    })
    logger.info("Bill %s created for %d order(s), total %.2f", bill_id, len(orders), total)
    _release_tables(orders)
    return get_bill(bill_id)


def create_bill(order_ids: List[str], customer_name: str = "", customer_phone: str = "") -> Bill:
    """Bill the given orders. Each must be ready or delivered and not on any other bill."""
    order_ids = list(dict.fromkeys(order_ids))
    if not order_ids:
        raise ValidationError("A bill needs at least one order")

    docs = get_documents_by_ids(ORDERS, order_ids)
    for order_id in order_ids:
        if order_id not in docs:
            raise NotFound("Order", order_id)
    orders = [Order(**docs[i]) for i in order_ids]

    billed = billed_order_ids()
    for order in orders:
        if order.id in billed:
            raise ValidationError(f"Order {order.id} is already on a bill")
        if order.status not in BILLABLE_ORDER_STATUSES:
            raise ValidationError(f"Order {order.id} is {order.status}, only ready or delivered orders can be billed")

    return _create_bill(orders, customer_name, customer_phone)


def _require_pending(bill: Bill, action: str) -> None:
    if bill.payment_status != "pending":
        raise ValidationError(f"Bill {bill.id} is already paid and cannot be {action}")


def apply_discount(bill_id: str, discount_type: str, value: float) -> Bill:
    """Replace the bill's discount. Discounts never stack."""
    bill = get_bill(bill_id)
    _require_pending(bill, "discounted")

    subtotal = money(bill.subtotal)
    discount_amount, discount_percent = compute_discount(subtotal, discount_type, value)
    tax, total = compute_totals(subtotal, discount_amount)
    update_document(BILLS, bill_id, {
        "discount_type": discount_type,
        "discount_value": float(value),
        "discount_percent": float(discount_percent),
        "discount_amount": float(discount_amount),
        "tax": float(tax),
        "total": float(total),
    })
    logger.info("Bill %s discounted by %.2f (%s %s)", bill_id, discount_amount, discount_type, value)
    return get_bill(bill_id)


def update_payment_status(bill_id: str, status: str, method: Optional[str] = None) -> Bill:
    if status not in PAYMENT_STATUSES:
        raise ValidationError(f"Unknown payment status {status!r}")
    if method is not None and method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method {method!r}")

    bill = get_bill(bill_id)
    patch = {"payment_status": status}
    if method is not None:
        patch["payment_method"] = method

    if status == "paid":
        if (method or bill.payment_method) is None:
            raise ValidationError("A payment method is required to mark a bill paid")
        if bill.payment_status == "paid" and bill.paid_at is not None:
            patch["paid_at"] = bill.paid_at
        else:
            patch["paid_at"] = database.now_utc()
    else:
        # The payment method is kept when a bill goes back to pending
        patch["paid_at"] = None

    update_document(BILLS, bill_id, patch)
    logger.info("Bill %s payment status %s (%s)", bill_id, status, patch.get("payment_method", bill.payment_method))
    return get_bill(bill_id)


def delete_bill(bill_id: str) -> None:
    if not delete_document(BILLS, bill_id):
        raise NotFound("Bill", bill_id)
    logger.info("Bill %s deleted", bill_id)


def _delete_with_retry(bill_id: str) -> bool:
    for attempt in range(1, config.MERGE_DELETE_ATTEMPTS + 1):
        try:
            delete_document(BILLS, bill_id)
            return True
        except StoreError as e:
            logger.warning("Deleting merged bill %s failed (attempt %d/%d): %s",
                           bill_id, attempt, config.MERGE_DELETE_ATTEMPTS, e)
    logger.error("Giving up on deleting merged bill %s", bill_id)
    return False


def merge_bills(bill_ids: List[str]) -> Bill:
    """
    Merge pending bills into a new one and delete the originals.

    Nothing is written unless every bill exists and is pending. If the new
    bill is stored but some originals cannot be deleted, PartialFailure is
    raised carrying the new bill and the ids that are still around.
    """
    bill_ids = list(dict.fromkeys(bill_ids))
    if len(bill_ids) < 2:
        raise ValidationError("At least two bills are needed for a merge")

    bills = [get_bill(bill_id) for bill_id in bill_ids]
    for bill in bills:
        _require_pending(bill, "merged")

    orders = [order for bill in bills for order in bill.orders]
    first = bills[0]
    merged = _create_bill(orders, first.customer_name, first.customer_phone)

    failed = [bill.id for bill in bills if not _delete_with_retry(bill.id)]
    if failed:
        raise PartialFailure(merged, failed)

    logger.info("Merged bills %s into %s", ", ".join(bill_ids), merged.id)
    return merged
