import math

from fastapi import Response

from .fixed_window import Decision


def set_rate_headers(res: Response, decision: Decision) -> None:
    res.headers["X-RateLimit-Limit"] = str(decision.limit)
    res.headers["X-RateLimit-Remaining"] = str(max(decision.remaining, 0))
    res.headers["X-RateLimit-Reset"] = str(math.ceil(decision.reset_at.timestamp()))
