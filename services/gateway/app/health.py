"""
Health Aggregator - 全サービスのヘルスチェックを集約する

各サービスの GET /health を並列に呼び、結果を 1 つの状態にまとめる。

  到達不能                          → unreachable
  非 2xx                            → unhealthy
  2xx だが database が connected 以外 → degraded
  2xx かつ database が connected     → healthy

全体は全サービスが healthy のときだけ healthy、それ以外は degraded。
"""

import asyncio
import logging

from ...common.client import Rejected, ServiceClient, Unavailable

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"
UNREACHABLE = "unreachable"


class HealthAggregator:
    def __init__(self, client: ServiceClient):
        self.client = client

    async def aggregate(self) -> tuple[str, dict[str, str]]:
        names = self.client.endpoints.names()
        results = await asyncio.gather(*(self._check(name) for name in names))

        services = {"gateway": HEALTHY}
        services.update(zip(names, results))
        overall = HEALTHY if all(s == HEALTHY for s in services.values()) else DEGRADED
        if overall != HEALTHY:
            logger.warning("Health degraded: %s", services)
        return overall, services

    async def _check(self, name: str) -> str:
        outcome = await self.client.get(name, "/health")
        if isinstance(outcome, Unavailable):
            return UNREACHABLE
        if isinstance(outcome, Rejected):
            return UNHEALTHY
        try:
            data = outcome.json()
        except ValueError:
            return UNREACHABLE
        if isinstance(data, dict) and data.get("database") == "connected":
            return HEALTHY
        return DEGRADED
