import time
import uuid
from typing import Callable
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from aetherra.core.logging import log_api_request
from aetherra.core.security import resolve_user_id


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    """Middleware for logging all HTTP requests"""

    async def dispatch(self, request: Request, call_next: Callable):
        # Generate unique request ID
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()

        # Caller from the bearer token, if any
        authorization = request.headers.get("authorization", "")
        scheme, _, token = authorization.partition(" ")
        user_id = resolve_user_id(token) if scheme.lower() == "bearer" else None

        try:
            response = await call_next(request)
        except Exception as e:
            log_api_request(
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=500,
                processing_time=time.time() - start_time,
                user_id=user_id,
                error=str(e)
            )
            raise

        log_api_request(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            processing_time=time.time() - start_time,
            user_id=user_id
        )
        response.headers["X-Request-ID"] = request_id
        return response
