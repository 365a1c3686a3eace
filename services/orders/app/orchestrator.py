"""
Order Orchestrator - 注文作成ワークフロー

中央のオーケストレーターが Users / Inventory Service への呼び出しを
順番に実行し、最初の失敗で打ち切る。共有トランザクションは持たない。

  フロー:
  ┌─────────────────────────────────────────────────────────┐
  │  1. VALIDATE_INPUT  user_id と items の存在チェック         │
  │  2. CHECK_USER      Users Service にユーザーの存在を確認    │
  │  3. CHECK_STOCK     明細ごとに在庫数を確認（リクエスト順）   │
  │  4. RESERVE_STOCK   明細ごとに在庫を引き当て（リクエスト順） │
  │  5. PERSIST_ORDER   注文を pending で保存                  │
  └─────────────────────────────────────────────────────────┘

注意: 補償トランザクションは実装していない。
  - 引き当て途中で失敗しても、引き当て済みの在庫は戻さない
  - 保存に失敗しても、引き当て済みの在庫は戻さない
  - 在庫確認と引き当ての間にロックはないため、同時注文では売り越しが起こりうる
"""

import logging
from enum import Enum

from ...common.client import Rejected, ServiceClient, Success, Unavailable, segment
from ...common.database import utcnow
from .models import CreateOrderRequest, Order, OrderItem, OrderLine, OrderStatus, new_order_id

logger = logging.getLogger(__name__)


class OrderCreationStep(str, Enum):
    VALIDATE_INPUT = "validate_input"
    CHECK_USER = "check_user"
    CHECK_STOCK = "check_stock"
    RESERVE_STOCK = "reserve_stock"
    PERSIST_ORDER = "persist_order"
    DONE = "done"


class StockCheckResult(str, Enum):
    SUFFICIENT = "sufficient"
    INSUFFICIENT = "insufficient"
    UNKNOWN = "unknown"  # Inventory Service に到達できない


# ── 終了状態ごとのエラー ──────────────────────────

class OrderCreationError(Exception):
    status_code = 500

    def __init__(self, reason: str, step: OrderCreationStep):
        super().__init__(reason)
        self.reason = reason
        self.step = step


class InvalidOrderRequest(OrderCreationError):
    """入力不正。リモート呼び出しは一度も行わない。"""
    status_code = 400


class BusinessRuleViolation(OrderCreationError):
    """ユーザーが存在しない・在庫不足"""
    status_code = 400


class DependencyUnavailable(OrderCreationError):
    """下流サービスに到達できない（後でリトライすれば通りうる）"""
    status_code = 503


class OrderOrchestrator:
    """注文作成のオーケストレーター"""

    def __init__(self, client: ServiceClient, store):
        self.client = client
        self.store = store

    async def create_order(self, req: CreateOrderRequest) -> Order:
        """
        ワークフローを実行し、作成した注文を返す。
        途中で失敗した場合は OrderCreationError のサブクラスを送出する。
        """
        step = OrderCreationStep.VALIDATE_INPUT
        try:
            lines = self._validate(req)

            step = OrderCreationStep.CHECK_USER
            await self._check_user(req.user_id)

            step = OrderCreationStep.CHECK_STOCK
            for line in lines:
                await self._check_stock(line)

            step = OrderCreationStep.RESERVE_STOCK
            for line in lines:
                await self._reserve_stock(line)

            step = OrderCreationStep.PERSIST_ORDER
            order = await self.store.create_order(
                Order(
                    id=new_order_id(),
                    user_id=req.user_id,
                    items=lines,
                    status=OrderStatus.PENDING,
                    created_at=utcnow(),
                )
            )
        except OrderCreationError as e:
            logger.info("Order creation stopped at %s: %s", e.step.value, e.reason)
            raise
        except Exception:
            logger.exception("Order creation failed at %s", step.value)
            raise

        logger.info("Order %s created for user %s (%d items)",
                    order.id, order.user_id, len(order.items))
        return order

    # ── 各ステップ ────────────────────────────────

    def _validate(self, req: CreateOrderRequest) -> list[OrderItem]:
        step = OrderCreationStep.VALIDATE_INPUT
        if not req.user_id or not req.items:
            raise InvalidOrderRequest("user_id and items are required", step)
        for line in req.items:
            if not line.item_id:
                raise InvalidOrderRequest("item_id is required for every item", step)
            if line.quantity < 1:
                raise InvalidOrderRequest(
                    f"quantity must be at least 1 for {line.item_id}", step
                )
        return [OrderItem(item_id=line.item_id, quantity=line.quantity) for line in req.items]

    async def _check_user(self, user_id: str) -> None:
        step = OrderCreationStep.CHECK_USER
        outcome = await self.client.get("users", f"/users/{segment(user_id)}")
        if isinstance(outcome, Unavailable):
            raise DependencyUnavailable("Users service unavailable", step)
        if isinstance(outcome, Rejected):
            raise BusinessRuleViolation("User not found", step)

    async def _check_stock(self, item: OrderItem) -> None:
        step = OrderCreationStep.CHECK_STOCK
        result = await self.check_stock(item)
        if result is StockCheckResult.UNKNOWN:
            raise DependencyUnavailable("Inventory service unavailable", step)
        if result is StockCheckResult.INSUFFICIENT:
            raise BusinessRuleViolation(f"Insufficient stock for {item.item_id}", step)

    async def check_stock(self, item: OrderItem | OrderLine) -> StockCheckResult:
        """在庫数を読み取るだけで、在庫は変更しない。"""
        outcome = await self.client.get("inventory", f"/inventory/{segment(item.item_id)}")
        if isinstance(outcome, Unavailable):
            return StockCheckResult.UNKNOWN
        if isinstance(outcome, Rejected):
            return StockCheckResult.INSUFFICIENT
        try:
            available = int(outcome.json()["quantity"])
        except (ValueError, KeyError, TypeError):
            logger.warning("Unreadable inventory response for %s", item.item_id)
            return StockCheckResult.UNKNOWN
        if available < item.quantity:
            return StockCheckResult.INSUFFICIENT
        return StockCheckResult.SUFFICIENT

    async def _reserve_stock(self, item: OrderItem) -> None:
        outcome = await self.client.post(
            "inventory",
            f"/inventory/{segment(item.item_id)}/reserve",
            json={"quantity": item.quantity},
        )
        # 失敗しても既に引き当てた分は戻さず、そのまま続行する
        if not isinstance(outcome, Success):
            logger.warning(
                "Reservation of %d x %s failed (%s); continuing without rollback",
                item.quantity, item.item_id, _describe(outcome),
            )


def _describe(outcome) -> str:
    if isinstance(outcome, Unavailable):
        return f"unavailable: {outcome.reason}"
    return f"status {outcome.status_code}"
