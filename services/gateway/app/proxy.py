"""
Gateway Proxy - 下流サービスへのリクエスト転送

受け取ったメソッド・パス・ボディをそのまま下流サービスへ転送し、
ステータスコードと JSON ボディをそのまま返す（解釈はしない）。

  到達不能        → 503 {"error": "Service unavailable"}
  それ以外の失敗  → 500 {"error": <メッセージ>}
"""

import logging
from typing import Any

from fastapi.responses import JSONResponse

from ...common.client import ServiceClient, Unavailable

logger = logging.getLogger(__name__)

SERVICE_UNAVAILABLE = {"error": "Service unavailable"}


class GatewayProxy:
    def __init__(self, client: ServiceClient):
        self.client = client

    async def forward(
        self,
        method: str,
        service: str,
        path: str,
        body: Any = None,
    ) -> JSONResponse:
        try:
            outcome = await self.client.call(service, method, path, json=body)
            if isinstance(outcome, Unavailable):
                return JSONResponse(SERVICE_UNAVAILABLE, status_code=503)
            return JSONResponse(outcome.json(), status_code=outcome.status_code)
        except Exception as e:
            logger.exception("Proxy %s %s%s failed", method, service, path)
            return JSONResponse({"error": str(e)}, status_code=500)
