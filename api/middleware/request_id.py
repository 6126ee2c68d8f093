"""
Request ID middleware

Generates or propagates a trace id and exposes it to logging via contextvars.
"""
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

import structlog


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
client_ip_var: ContextVar[Optional[str]] = ContextVar("client_ip", default=None)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Request ID tracing

    1. Take the request id from the header or generate one
    2. Store it and the client IP in contextvars for structlog
    3. Echo it back in the response header
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.HEADER_NAME)
        if not request_id:
            request_id = str(uuid.uuid4())

        client_ip = self._get_client_ip(request)

        request.state.request_id = request_id
        request.state.client_ip = client_ip

        request_id_var.set(request_id)
        client_ip_var.set(client_ip)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[self.HEADER_NAME] = request_id
        return response

    def _get_client_ip(self, request: Request) -> str:
        """
        Client address, honouring proxy headers.

        The OTP rate limiter keys on this value, so deployments must strip
        client-supplied X-Forwarded-For at the edge.
        """
        x_forwarded_for = request.headers.get("X-Forwarded-For")
        if x_forwarded_for:
            # first hop is the original client
            client_ip = x_forwarded_for.split(",")[0].strip()
        else:
            client_ip = request.headers.get("X-Real-IP")
            if not client_ip:
                client_ip = request.client.host if request.client else "unknown"

        return client_ip


def get_request_id() -> Optional[str]:
    """Request id of the current request, None outside a request."""
    return request_id_var.get()


def get_client_ip() -> Optional[str]:
    """Client IP of the current request, None outside a request."""
    return client_ip_var.get()
