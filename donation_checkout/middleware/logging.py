"""
Structured request logging middleware
"""
import time
import uuid
from fastapi import Request
import structlog

logger = structlog.get_logger(__name__)


async def logging_middleware(request: Request, call_next):
    """Log every HTTP request with a request id"""
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

    logger.info(
        "Request started",
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        query=str(request.query_params) if request.query_params else "",
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent", "")
    )

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    latency = time.time() - start_time
    log = logger.warning if response.status_code >= 400 else logger.info
    log(
        "Request completed",
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        latency_seconds=round(latency, 3)
    )

    return response
