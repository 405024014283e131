import asyncio
import logging
import os
from datetime import datetime
from io import BytesIO
from typing import List, Optional

import qrcode
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

import bills
import catalog
import config
import financial
import orders
from database import list_collection_names
from errors import NotFound, PartialFailure, StoreError, ValidationError
from schemas import (
    Bill,
    DiscountType,
    Expense,
    ItemType,
    MenuItem,
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Table,
    TableStatus,
)

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Restaurant Back Office API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------
# Error mapping
# -----------------------------

@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse({"detail": str(exc)}, status_code=404)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse({"detail": str(exc)}, status_code=422)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Store failure on %s: %s", request.url.path, exc)
    return JSONResponse({"detail": "Database unavailable"}, status_code=503)


@app.exception_handler(PartialFailure)
async def partial_failure_handler(request: Request, exc: PartialFailure):
    logger.error("%s", exc)
    return JSONResponse(
        {
            "detail": str(exc),
            "bill": jsonable_encoder(exc.bill),
            "failed_bill_ids": exc.failed_bill_ids,
        },
        status_code=207,
    )

# -----------------------------
# Schemas for request bodies
# -----------------------------

class TableCreate(BaseModel):
    number: int = Field(..., ge=1)
    capacity: int = Field(4, ge=1)
    status: TableStatus = "available"

class TableUpdate(BaseModel):
    number: Optional[int] = Field(None, ge=1)
    capacity: Optional[int] = Field(None, ge=1)
    status: Optional[TableStatus] = None

class ItemTypeCreate(BaseModel):
    name: str
    description: Optional[str] = None

class ItemTypeUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None

class MenuCreate(BaseModel):
    name: str
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    type_id: Optional[str] = None
    available: bool = True

class MenuUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    type_id: Optional[str] = None
    available: Optional[bool] = None

class OrderItemIn(BaseModel):
    item_id: str
    quantity: int = Field(..., ge=1)

class OrderCreate(BaseModel):
    table_id: str
    items: List[OrderItemIn]

class OrderStatusUpdate(BaseModel):
    status: OrderStatus

class BillCreate(BaseModel):
    order_ids: List[str]
    customer_name: str = ""
    customer_phone: str = ""

class DiscountApply(BaseModel):
    discount_type: DiscountType
    value: float = Field(..., allow_inf_nan=False)

class PaymentUpdate(BaseModel):
    status: PaymentStatus
    method: Optional[PaymentMethod] = None

class BillMerge(BaseModel):
    bill_ids: List[str]

class ExpenseCreate(BaseModel):
    amount: float = Field(..., ge=0)
    category: str
    description: str = ""
    date: datetime

class ExpenseUpdate(BaseModel):
    amount: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    description: Optional[str] = None
    date: Optional[datetime] = None

# -----------------------------
# Health/Test
# -----------------------------

@app.get("/")
def root():
    return {"message": "Restaurant Back Office API running"}

@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
        "database_name": "✅ Set" if config.DATABASE_NAME else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        response["collections"] = list_collection_names()
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except StoreError as e:
        response["database"] = f"⚠️ Error: {str(e)[:80]}"
    return response

# -----------------------------
# Table Endpoints
# -----------------------------

@app.get("/api/tables", response_model=List[Table])
def list_tables():
    return catalog.list_tables()

@app.post("/api/tables", response_model=Table)
def create_table(payload: TableCreate):
    return catalog.create_table(**payload.model_dump())

@app.get("/api/tables/{table_id}", response_model=Table)
def get_table(table_id: str):
    table = catalog.get_table(table_id)
    if table is None:
        raise NotFound("Table", table_id)
    return table

@app.put("/api/tables/{table_id}", response_model=Table)
def update_table(table_id: str, payload: TableUpdate):
    return catalog.update_table(table_id, payload.model_dump())

@app.delete("/api/tables/{table_id}")
def delete_table(table_id: str):
    catalog.delete_table(table_id)
    return {"success": True}

@app.get("/api/tables/{table_id}/qr")
def generate_qr(table_id: str):
    table = get_table(table_id)
    url = f"{config.FRONTEND_BASE_URL}/place-order?table={table.id}"

    qr_img = qrcode.make(url)
    buf = BytesIO()
    qr_img.save(buf, format="PNG")
    buf.seek(0)
    return StreamingResponse(buf, media_type="image/png")

# -----------------------------
# Menu Endpoints
# -----------------------------

@app.get("/api/item-types", response_model=List[ItemType])
def list_item_types():
    return catalog.list_item_types()

@app.post("/api/item-types", response_model=ItemType)
def create_item_type(payload: ItemTypeCreate):
    return catalog.create_item_type(payload.name, payload.description)

@app.put("/api/item-types/{type_id}", response_model=ItemType)
def update_item_type(type_id: str, payload: ItemTypeUpdate):
    return catalog.update_item_type(type_id, payload.model_dump())

@app.delete("/api/item-types/{type_id}")
def delete_item_type(type_id: str):
    catalog.delete_item_type(type_id)
    return {"success": True}

@app.get("/api/items", response_model=List[MenuItem])
def list_items(available: bool = False):
    return catalog.list_items(available_only=available)

@app.post("/api/items", response_model=MenuItem)
def create_item(payload: MenuCreate):
    return catalog.create_item(**payload.model_dump())

@app.put("/api/items/{item_id}", response_model=MenuItem)
def update_item(item_id: str, payload: MenuUpdate):
    return catalog.update_item(item_id, payload.model_dump())

@app.delete("/api/items/{item_id}")
def delete_item(item_id: str):
    catalog.delete_item(item_id)
    return {"success": True}

# -----------------------------
# Order Endpoints
# -----------------------------

@app.post("/api/orders", response_model=Order)
def create_order(payload: OrderCreate):
    return orders.create_order(payload.table_id, [it.model_dump() for it in payload.items])

@app.get("/api/orders", response_model=List[Order])
def list_orders(table_id: Optional[str] = None, status: Optional[OrderStatus] = None, limit: Optional[int] = None):
    return orders.list_orders(table_id=table_id, status=status, limit=limit)

@app.get("/api/orders/billable", response_model=List[Order])
def list_billable_orders():
    return orders.list_billable_orders()

@app.get("/api/orders/{order_id}", response_model=Order)
def get_order(order_id: str):
    return orders.get_order(order_id)

@app.patch("/api/orders/{order_id}/status", response_model=Order)
def set_order_status(order_id: str, payload: OrderStatusUpdate):
    return orders.update_order_status(order_id, payload.status)

@app.delete("/api/orders/{order_id}")
def delete_order(order_id: str):
    orders.delete_order(order_id)
    return {"success": True}

@app.websocket("/ws/orders")
async def orders_ws(websocket: WebSocket, limit: int = config.RECENT_ORDERS_LIMIT):
    """Stream the most recent ``limit`` orders, newest first, on every change."""
    if limit < 1:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    # Each snapshot replaces the previous one, so a slow client only gets the latest
    queue: asyncio.Queue = asyncio.Queue(maxsize=1)

    def offer(snapshot):
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(snapshot)

    def push(snapshot):
        loop.call_soon_threadsafe(offer, jsonable_encoder(snapshot))

    unsubscribe = await run_in_threadpool(orders.order_feed.subscribe, push, limit)

    async def forward():
        while True:
            await websocket.send_json(await queue.get())

    sender = asyncio.create_task(forward())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Order feed websocket sender failed")

# -----------------------------
# Bill Endpoints
# -----------------------------

@app.post("/api/bills", response_model=Bill)
def create_bill(payload: BillCreate):
    return bills.create_bill(payload.order_ids, payload.customer_name, payload.customer_phone)

@app.get("/api/bills", response_model=List[Bill])
def list_bills(payment_status: Optional[PaymentStatus] = None):
    result = bills.list_bills()
    if payment_status:
        result = [b for b in result if b.payment_status == payment_status]
    return result

@app.post("/api/bills/merge", response_model=Bill)
def merge_bills(payload: BillMerge):
    return bills.merge_bills(payload.bill_ids)

@app.get("/api/bills/{bill_id}", response_model=Bill)
def get_bill(bill_id: str):
    return bills.get_bill(bill_id)

@app.post("/api/bills/{bill_id}/discount", response_model=Bill)
def apply_discount(bill_id: str, payload: DiscountApply):
    return bills.apply_discount(bill_id, payload.discount_type, payload.value)

@app.patch("/api/bills/{bill_id}/payment", response_model=Bill)
def update_payment(bill_id: str, payload: PaymentUpdate):
    return bills.update_payment_status(bill_id, payload.status, payload.method)

@app.delete("/api/bills/{bill_id}")
def delete_bill(bill_id: str):
    bills.delete_bill(bill_id)
    return {"success": True}

# -----------------------------
# Expense Endpoints
# -----------------------------

@app.get("/api/expenses/categories")
def expense_categories():
    return {"categories": list(config.EXPENSE_CATEGORIES)}

@app.get("/api/expenses", response_model=List[Expense])
def list_expenses(start: Optional[datetime] = None, end: Optional[datetime] = None):
    return catalog.list_expenses(start, end)

@app.post("/api/expenses", response_model=Expense)
def create_expense(payload: ExpenseCreate):
    return catalog.create_expense(**payload.model_dump())

@app.put("/api/expenses/{expense_id}", response_model=Expense)
def update_expense(expense_id: str, payload: ExpenseUpdate):
    return catalog.update_expense(expense_id, payload.model_dump())

@app.delete("/api/expenses/{expense_id}")
def delete_expense(expense_id: str):
    catalog.delete_expense(expense_id)
    return {"success": True}

# -----------------------------
# Financial reports
# -----------------------------

@app.get("/api/financial/summary")
def financial_summary():
    return financial.get_financial_summary()

@app.get("/api/financial/monthly")
def financial_monthly():
    return {"days": financial.get_monthly_financial_data()}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
