"""
共通設定 - サービスエンドポイントとストレージ設定

論理サービス名 ("users" / "orders" / "inventory") からベース URL への
対応表は起動時に一度だけ環境変数から組み立てる。
以降は読み取り専用の値として、必要なコンポーネントへ明示的に渡す。
"""

import os
from dataclasses import dataclass

DEFAULT_USERS_SERVICE_URL = "http://users-service:5001"
DEFAULT_ORDERS_SERVICE_URL = "http://orders-service:5002"
DEFAULT_INVENTORY_SERVICE_URL = "http://inventory-service:5003"

# 1 回のリモート呼び出しに許す時間（秒）
REQUEST_TIMEOUT = 5.0


@dataclass(frozen=True)
class ServiceEndpoints:
    """論理サービス名 → ベース URL（起動後は不変）"""

    users: str = DEFAULT_USERS_SERVICE_URL
    orders: str = DEFAULT_ORDERS_SERVICE_URL
    inventory: str = DEFAULT_INVENTORY_SERVICE_URL

    @classmethod
    def from_env(cls) -> "ServiceEndpoints":
        return cls(
            users=os.environ.get("USERS_SERVICE_URL", DEFAULT_USERS_SERVICE_URL),
            orders=os.environ.get("ORDERS_SERVICE_URL", DEFAULT_ORDERS_SERVICE_URL),
            inventory=os.environ.get(
                "INVENTORY_SERVICE_URL", DEFAULT_INVENTORY_SERVICE_URL
            ),
        )

    def resolve(self, service: str) -> str:
        """サービス名をベース URL に解決する。未知の名前は KeyError。"""
        urls = self.as_dict()
        if service not in urls:
            raise KeyError(f"Unknown service: {service}")
        return urls[service].rstrip("/")

    def as_dict(self) -> dict[str, str]:
        return {
            "users": self.users,
            "orders": self.orders,
            "inventory": self.inventory,
        }

    def names(self) -> list[str]:
        return list(self.as_dict())


def database_url_from_env() -> str | None:
    """DATABASE_URL が未設定ならインメモリストアで動かす。"""
    return os.environ.get("DATABASE_URL") or None
