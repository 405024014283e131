"""
Errors raised by the back-office core.

HTTP status mapping lives in main.py.
"""

from typing import Any, List


class RestaurantError(Exception):
    """Base class for every error the core raises on purpose."""


class NotFound(RestaurantError):
    def __init__(self, kind: str, id_str: str):
        self.kind = kind
        self.id = id_str
        super().__init__(f"{kind} {id_str} not found")


class ValidationError(RestaurantError):
    pass


class StoreError(RestaurantError):
    pass


class PartialFailure(RestaurantError):
    """A merged bill was created but some source bills could not be deleted."""

    def __init__(self, bill: Any, failed_bill_ids: List[str]):
        self.bill = bill
        self.failed_bill_ids = list(failed_bill_ids)
        super().__init__(
            f"Merged bill {bill.id} created but {len(self.failed_bill_ids)} source bill(s) "
            f"could not be deleted: {', '.join(self.failed_bill_ids)}"
        )
