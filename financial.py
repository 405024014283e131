"""
Financial summary: income, expenses and net figures for today and this month.

"Today" is the local calendar day of ``now``. "This month" runs from the
first of the month at midnight up to ``now``, so later days of the current
month are never counted. Income defaults to paid bills, dated by when they
were paid; any callable with the same shape can be passed instead.
"""

import calendar
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from bills import list_paid_bills
from catalog import list_expenses
from database import as_utc, money
from errors import ValidationError

logger = logging.getLogger(__name__)

# (start, end) -> [(when, amount), ...] for entries in [start, end)
IncomeSource = Callable[[datetime, datetime], List[Tuple[datetime, float]]]


def paid_bill_income(start: datetime, end: datetime) -> List[Tuple[datetime, float]]:
    return [(as_utc(bill.paid_at), bill.total) for bill in list_paid_bills(start, end)]


def _local_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now().astimezone()
    if now.tzinfo is None:
        raise ValidationError("now must be timezone aware")
    return now


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(now: datetime) -> datetime:
    return start_of_day(now).replace(day=1)


def _total(amounts: Iterable[float]) -> Decimal:
    return sum((money(a) for a in amounts), money(0))


def _window(start: datetime, end: datetime, income_source: IncomeSource) -> Tuple[Decimal, Decimal]:
    income = _total(amount for _, amount in income_source(start, end))
    expenses = _total(e.amount for e in list_expenses(start, end))
    return income, expenses


def get_financial_summary(now: Optional[datetime] = None, income_source: IncomeSource = paid_bill_income) -> Dict[str, float]:
    now = _local_now(now)
    today = start_of_day(now)
    today_income, today_expenses = _window(today, today + timedelta(days=1), income_source)
    monthly_income, monthly_expenses = _window(start_of_month(now), now, income_source)
    logger.debug("Financial summary at %s: today %s/%s, month %s/%s",
                 now.isoformat(), today_income, today_expenses, monthly_income, monthly_expenses)

    return {
        "today_income": float(today_income),
        "today_expenses": float(today_expenses),
        "today_net_income": float(today_income - today_expenses),
        "monthly_income": float(monthly_income),
        "monthly_expenses": float(monthly_expenses),
        "monthly_net_income": float(monthly_income - monthly_expenses),
    }


def get_monthly_financial_data(now: Optional[datetime] = None, income_source: IncomeSource = paid_bill_income) -> List[Dict]:
    """One row per calendar day of the current month, oldest first."""
    now = _local_now(now)
    first = start_of_month(now)
    days_in_month = calendar.monthrange(now.year, now.month)[1]
    end = first + timedelta(days=days_in_month)

    rows: Dict[date, Dict[str, Decimal]] = {
        (first + timedelta(days=i)).date(): {"income": money(0), "expenses": money(0)}
        for i in range(days_in_month)
    }

    def bucket(when: datetime) -> Optional[Dict[str, Decimal]]:
        return rows.get(as_utc(when).astimezone(now.tzinfo).date())

    for when, amount in income_source(first, end):
        row = bucket(when)
        if row is not None:
            row["income"] += money(amount)
    for expense in list_expenses(first, end):
        row = bucket(expense.date)
        if row is not None:
            row["expenses"] += money(expense.amount)

    return [
        {
            "date": day.isoformat(),
            "income": float(row["income"]),
            "expenses": float(row["expenses"]),
            "net_income": float(row["income"] - row["expenses"]),
        }
        for day, row in sorted(rows.items())
    ]
