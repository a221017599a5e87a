"""
请求/响应日志中间件
记录 HTTP 请求与响应耗时；回调表单按配置记录并脱敏
"""
import time
from typing import Any
from urllib.parse import parse_qsl

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    日志记录中间件

    1. 记录请求信息（方法、路径、参数）
    2. 记录响应状态码与耗时
    3. 异常时记录后继续抛出，由异常处理器处理
    """

    SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

    # 回调与发票载荷中的敏感字段
    SENSITIVE_FIELDS = {
        "checkmacvalue",
        "hashkey",
        "hashiv",
        "postdata_",
        "checkvalue",
        "card4no",
        "card6no",
        "auth_code",
        "vaccount",
    }

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.log_body: bool = settings.LOG_REQUEST_BODY
        self.max_body_log_bytes: int = settings.LOG_REQUEST_BODY_MAX_BYTES

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        start_time = time.time()
        request_info = await self._get_request_info(request)
        logger.info("request_started", **request_info)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration=time.time() - start_time,
                error=str(exc),
                error_type=type(exc).__name__,
                **request_info,
                exc_info=True,
            )
            raise

        duration = time.time() - start_time
        self._log_response(response, duration, request_info)
        response.headers["X-Process-Time"] = f"{duration:.3f}"
        return response

    async def _get_request_info(self, request: Request) -> dict:
        info: dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
        }
        if self.log_body and request.method == "POST":
            body = await self._extract_form_body(request)
            if body is not None:
                info["body"] = body
        user_agent = request.headers.get("User-Agent")
        if user_agent:
            info["user_agent"] = user_agent
        return info

    async def _extract_form_body(self, request: Request) -> Any:
        content_type = request.headers.get("content-type", "").lower()
        if "application/x-www-form-urlencoded" not in content_type:
            return None
        body = await request.body()
        if not body:
            return None
        snippet = body[: self.max_body_log_bytes].decode("utf-8", errors="ignore")
        return self._sanitize_data(dict(parse_qsl(snippet, keep_blank_values=True)))

    def _sanitize_data(self, data: dict) -> dict:
        return {k: ("***" if k.lower() in self.SENSITIVE_FIELDS else v) for k, v in data.items()}

    def _log_response(self, response: Response, duration: float, request_info: dict):
        status_code = response.status_code
        log_data = {"status_code": status_code, "duration": duration, **request_info}

        if status_code < 400:
            logger.info("request_completed", **log_data)
        elif status_code < 500:
            logger.warning("request_client_error", **log_data)
        else:
            logger.error("request_server_error", **log_data)
