"""
共通エラーハンドラ

各サービスのエラーレスポンスを {"error": <理由>} の形にそろえる。
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    # detail が dict ならそのまま返す（在庫不足時の available など）
    body = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(body, status_code=exc.status_code)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request body"
    logger.info("Rejected request %s %s: %s", request.method, request.url.path, message)
    return JSONResponse({"error": message}, status_code=400)


async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # 想定外の失敗も {"error": ...} で返す（メッセージはそのまま）
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": str(exc)}, status_code=500)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unexpected_exception_handler)
