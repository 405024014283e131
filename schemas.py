"""
Database Schemas for the restaurant back office

Each Pydantic model represents a MongoDB collection. The collection name
is the lowercase of the class name (e.g., MenuItem -> "menuitem").
OrderLine is embedded in Order, and Order snapshots are embedded in Bill.
"""
from datetime import datetime
from typing import List, Optional, Literal
from pydantic import BaseModel, Field

OrderStatus = Literal["pending", "preparing", "ready", "delivered", "cancelled"]
TableStatus = Literal["available", "occupied", "reserved"]
PaymentStatus = Literal["pending", "paid"]
PaymentMethod = Literal["cash", "card", "online"]
DiscountType = Literal["percentage", "flat"]

ORDER_STATUSES = ("pending", "preparing", "ready", "delivered", "cancelled")
BILLABLE_ORDER_STATUSES = ("ready", "delivered")


class Document(BaseModel):
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# -----------------------------
# Catalog Collections
# -----------------------------

class Table(Document):
    number: int = Field(..., ge=1, description="Table number visible in the restaurant")
    capacity: int = Field(4, ge=1)
    status: TableStatus = Field("available")
    qr_path: Optional[str] = Field(None, description="Path/URL to generated QR code image for this table")

    @property
    def display_name(self) -> str:
        return f"Table {self.number}"

class ItemType(Document):
    name: str = Field(..., description="Category like Starters, Main Course")
    description: Optional[str] = None

class MenuItem(Document):
    name: str = Field(..., description="Dish name")
    description: Optional[str] = Field(None, description="Dish description")
    price: float = Field(..., ge=0, description="Price in local currency")
    type_id: Optional[str] = Field(None, description="ItemType ObjectId as string")
    available: bool = Field(True, description="Whether this item is currently available")
    type_name: Optional[str] = Field(None, description="Joined on read, never stored")

class Expense(Document):
    amount: float = Field(..., ge=0)
    category: str
    description: str = ""
    date: datetime

# -----------------------------
# Orders and Bills
# -----------------------------

class OrderLine(BaseModel):
    id: str
    item_id: str = Field(..., description="Menu item ObjectId as string")
    item_name: str = Field(..., description="Item name at the time of order")
    quantity: int = Field(..., ge=1, description="Quantity ordered")
    unit_price: float = Field(..., ge=0, description="Unit price at the time of order")

class Order(Document):
    table_id: str = Field(..., description="Table ObjectId as string")
    table_name: str = Field(..., description="Table name at the time of order")
    status: OrderStatus = Field("pending")
    items: List[OrderLine] = Field(default_factory=list)
    total: float = Field(..., ge=0)

class Bill(Document):
    orders: List[Order]
    customer_name: str = ""
    customer_phone: str = ""
    subtotal: float = Field(..., ge=0)
    discount_type: DiscountType = Field("percentage")
    discount_value: float = Field(0, ge=0)
    discount_percent: float = Field(0, ge=0, le=100)
    discount_amount: float = Field(0, ge=0)
    tax: float = Field(0, ge=0)
    total: float
    payment_status: PaymentStatus = Field("pending")
    payment_method: Optional[PaymentMethod] = None
    paid_at: Optional[datetime] = None

    @property
    def order_ids(self) -> List[str]:
        return [o.id for o in self.orders]

# Notes:
# - Use create_document/get_documents from database.py for inserts/queries
# - Request bodies for the FastAPI routes live in main.py
