"""
Per-user request limits kept in Django's cache.

Each (scope, user) pair keeps the timestamps of its recent requests; a
request is refused with 429 once the window already holds the configured
number of them. Limits come from settings.RATE_LIMITS so they can be tuned
per deployment.
"""

import logging
import math
import time
from dataclasses import dataclass
from functools import wraps
from typing import Callable

from django.conf import settings
from django.core.cache import cache
from django.http import HttpRequest

from .api import json_error

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0


def check_rate_limit(
    key: str, limit: int, window: int, clock: Callable[[], float] = time.time
) -> RateLimitResult:
    """Count one request against key, unless the window is already full"""
    now = clock()
    cache_key = f"ratelimit:{key}"
    timestamps = [ts for ts in cache.get(cache_key, []) if ts > now - window]

    if len(timestamps) >= limit:
        retry_after = max(1, math.ceil(timestamps[0] + window - now))
        return RateLimitResult(False, limit, 0, retry_after)

    timestamps.append(now)
    cache.set(cache_key, timestamps, timeout=window)
    return RateLimitResult(True, limit, limit - len(timestamps))


def rate_limit(scope: str):
    """Limit an authenticated view per user with settings.RATE_LIMITS[scope]"""

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request: HttpRequest, *args, **kwargs):
            config = settings.RATE_LIMITS[scope]
            result = check_rate_limit(
                f"{scope}:{request.user.pk}", config["requests"], config["window"]
            )
            if not result.allowed:
                logger.warning(
                    "Rate limit %s exceeded by user %s", scope, request.user.pk
                )
                response = json_error(
                    "Too many requests. Please try again later.",
                    status=429,
                    details={"retry_after": result.retry_after},
                )
                response["Retry-After"] = str(result.retry_after)
            else:
                response = view_func(request, *args, **kwargs)
            response["X-RateLimit-Limit"] = str(result.limit)
            response["X-RateLimit-Remaining"] = str(result.remaining)
            return response

        return wrapper

    return decorator
