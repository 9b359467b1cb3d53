from .config import RouteClass

API_PREFIX = "/api/v1"

# path prefix -> route class, checked before the method-based defaults
PREFIX_CLASSES: list[tuple[str, RouteClass]] = [
    ("/auth", RouteClass.AUTH),
    ("/upload", RouteClass.UPLOAD),
    ("/payments", RouteClass.PAYMENT),
]

SEARCH_PATHS = {"/studios"}


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def classify_route(method: str, path: str) -> RouteClass:
    """Route class for a request, from its path and method."""
    if path.startswith(API_PREFIX):
        path = path[len(API_PREFIX) :] or "/"
    path = path.rstrip("/") or "/"
    for prefix, route_class in PREFIX_CLASSES:
        if _matches(path, prefix):
            return route_class
    if method.upper() in {"GET", "HEAD", "OPTIONS"}:
        if path in SEARCH_PATHS:
            return RouteClass.SEARCH
        return RouteClass.READ
    return RouteClass.WRITE
