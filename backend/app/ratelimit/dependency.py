from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import Depends, Request, Response

from app.auth import get_current_principal_optional
from app.core.config import settings as app_settings
from app.core.exceptions import RateLimitedException
from app.principal import UserPrincipal

from .config import RouteClass, get_policy
from .headers import set_rate_headers
from .identity import resolve_identity
from .mapping import classify_route
from .metrics import rl_decisions, rl_retry_after
from .store import ThrottleStore

logger = logging.getLogger(__name__)


def get_throttle_store(request: Request) -> ThrottleStore:
    return request.app.state.throttle_store


def rate_limit(route_class: Optional[RouteClass] = None) -> Callable[..., None]:
    """
    FastAPI dependency enforcing the budget of a route class.

    Without an explicit class the request's method and path pick one. Allowed
    requests get X-RateLimit-* headers; rejected ones raise
    RateLimitedException, which carries Retry-After and the reset time.
    """

    def dep(
        request: Request,
        response: Response,
        store: ThrottleStore = Depends(get_throttle_store),
        principal: Optional[UserPrincipal] = Depends(get_current_principal_optional),
    ) -> None:
        if not app_settings.rate_limit_enabled:
            return

        resolved = route_class or classify_route(request.method, request.url.path)
        policy = get_policy(resolved)
        identity = resolve_identity(request, principal.user_id if principal else None)
        decision = store.check(f"{resolved.value}:{identity}", policy.limit, policy.window_s)

        if decision.allowed:
            rl_decisions.labels(route_class=resolved.value, action="allow").inc()
            set_rate_headers(response, decision)
            return

        rl_decisions.labels(route_class=resolved.value, action="block").inc()
        rl_retry_after.labels(route_class=resolved.value).observe(decision.retry_after_s)
        logger.info(
            "rate_limited",
            extra={"route_class": resolved.value, "identity": identity, "limit": decision.limit},
        )
        raise RateLimitedException(
            route_class=resolved.value,
            limit=decision.limit,
            reset_at=decision.reset_at,
            now=decision.checked_at,
        )

    return dep
