"""
Sliding-window rate limiting for the unauthenticated auth endpoints.

Counts are kept per client IP in process memory. Keys whose window has
emptied are dropped on the next check, so idle clients do not accumulate.
"""
import logging
import time
from typing import Dict, List, Optional

from fastapi import Request

from app.core.config import RATE_LIMIT_MAX_REQUESTS, RATE_LIMIT_WINDOW_SECONDS
from app.core.exceptions import RateLimited

logger = logging.getLogger(__name__)

# {client ip: [request timestamps inside the current window]}
rate_limit_store: Dict[str, List[float]] = {}


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def _prune(now: float, window_seconds: int) -> None:
    cutoff = now - window_seconds
    for key in list(rate_limit_store):
        recent = [ts for ts in rate_limit_store[key] if ts > cutoff]
        if recent:
            rate_limit_store[key] = recent
        else:
            del rate_limit_store[key]


def check_rate_limit(
    request: Request,
    max_requests: Optional[int] = None,
    window_seconds: Optional[int] = None,
    now: Optional[float] = None,
) -> None:
    """
    Record one request from the caller's IP or raise RateLimited.

    Limits default to RATE_LIMIT_MAX_REQUESTS per RATE_LIMIT_WINDOW_SECONDS.
    """
    max_requests = RATE_LIMIT_MAX_REQUESTS if max_requests is None else max_requests
    window_seconds = RATE_LIMIT_WINDOW_SECONDS if window_seconds is None else window_seconds
    now = time.time() if now is None else now

    _prune(now, window_seconds)
    ip = get_client_ip(request)
    hits = rate_limit_store.get(ip, [])

    if len(hits) >= max_requests:
        logger.warning(f"Rate limit exceeded: ip={ip}, requests={len(hits)}, window={window_seconds}s")
        raise RateLimited(
            f"Too many requests, at most {max_requests} per {window_seconds} seconds",
            retry_after=int(hits[0] + window_seconds - now) + 1,
        )

    rate_limit_store[ip] = hits + [now]
