"""
Orders Service - ドメインモデル

リクエスト/レスポンスの JSON はスネークケース。
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderItem(BaseModel):
    item_id: str
    quantity: int


class Order(BaseModel):
    """
    注文。すべての検証を通過した後にだけ作成される。

    状態遷移は PUT /orders/{id}/status で任意に行う:
        pending / processing / completed / cancelled
    """
    id: str
    user_id: str
    items: list[OrderItem]
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime


# ── Request Models ───────────────────────────────

class OrderLine(BaseModel):
    item_id: str | None = None
    quantity: int = 1


class CreateOrderRequest(BaseModel):
    """注文作成リクエスト（永続化はされない）"""
    user_id: str | None = None
    items: list[OrderLine] | None = None


class UpdateStatusRequest(BaseModel):
    status: str | None = None


def new_order_id() -> str:
    """ORD + 英大文字・数字 6 桁  e.g. ORD3F2A1B"""
    return f"ORD{uuid4().hex[:6].upper()}"
