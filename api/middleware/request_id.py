"""
Request ID 中间件
生成或透传追踪ID，并通过 structlog contextvars 传递给日志系统
"""
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

import structlog


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Request ID 追踪中间件

    1. 从请求头获取或生成新的 request_id
    2. 绑定到 structlog 上下文（同时带上幂等键，便于排查重试）
    3. 在响应头中返回 request_id
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        context = {
            "request_id": request_id,
            "client_ip": self._get_client_ip(request),
            "method": request.method,
            "path": request.url.path,
        }
        idempotency_key = request.headers.get("Idempotency-Key")
        if idempotency_key:
            context["idempotency_key"] = idempotency_key
        structlog.contextvars.bind_contextvars(**context)

        response = await call_next(request)

        response.headers[self.HEADER_NAME] = request_id
        return response

    def _get_client_ip(self, request: Request) -> str:
        # 代理场景下取 X-Forwarded-For 的第一个地址
        x_forwarded_for = request.headers.get("X-Forwarded-For")
        if x_forwarded_for:
            return x_forwarded_for.split(",")[0].strip()
        return request.headers.get("X-Real-IP") or (request.client.host if request.client else "unknown")

