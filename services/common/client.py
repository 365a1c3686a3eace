"""
Remote Service Client - サービス間通信クライアント

下流サービスへの 1 回の呼び出しを行い、結果を 3 種類に分類して返す:

  Success(status_code, response)  … 2xx 応答
  Rejected(status_code, response) … 非 2xx 応答（「存在しない」「在庫不足」など）
  Unavailable(reason)             … 接続拒否・タイムアウト・名前解決失敗

呼び出し側が「到達不能」と「拒否」を取り違えないよう、
ネットワーク例外はこの境界で必ず Unavailable に変換する。
リトライやサーキットブレーカーは持たない（1 回だけ試行）。
"""

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from .config import REQUEST_TIMEOUT, ServiceEndpoints

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Success:
    status_code: int
    response: httpx.Response

    def json(self) -> Any:
        return self.response.json()


@dataclass(frozen=True)
class Rejected:
    status_code: int
    response: httpx.Response

    def json(self) -> Any:
        return self.response.json()


@dataclass(frozen=True)
class Unavailable:
    reason: str


Outcome = Success | Rejected | Unavailable


def segment(value: str) -> str:
    """パスの 1 セグメントとして埋め込めるよう "/" "?" "#" なども含めてエスケープする。"""
    return quote(str(value), safe="")


class ServiceClient:
    """論理サービス名で下流サービスを呼び出すクライアント"""

    def __init__(
        self,
        endpoints: ServiceEndpoints,
        http: httpx.AsyncClient,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.endpoints = endpoints
        self.http = http
        self.timeout = timeout

    async def call(
        self,
        service: str,
        method: str,
        path: str,
        json: Any = None,
    ) -> Outcome:
        url = f"{self.endpoints.resolve(service)}{path}"
        try:
            resp = await self.http.request(
                method, url, json=json, timeout=self.timeout
            )
        except httpx.HTTPError as e:
            logger.warning("%s unavailable (%s %s): %r", service, method, url, e)
            return Unavailable(reason=str(e) or type(e).__name__)

        logger.debug("%s %s -> %s", method, url, resp.status_code)
        if resp.is_success:
            return Success(resp.status_code, resp)
        return Rejected(resp.status_code, resp)

    async def get(self, service: str, path: str) -> Outcome:
        return await self.call(service, "GET", path)

    async def post(self, service: str, path: str, json: Any = None) -> Outcome:
        return await self.call(service, "POST", path, json=json)
