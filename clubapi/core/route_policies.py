"""Route name -> access policy table consumed by the v1 auth dependency."""

from clubapi.schemas.auth import RoutePolicy

# Routes missing from the table are treated as AUTHENTICATED.
DEFAULT_ROUTE_POLICY = RoutePolicy.AUTHENTICATED

ROUTE_POLICIES: dict[str, RoutePolicy] = {
    "health.get": RoutePolicy.PUBLIC,
    "auth.register": RoutePolicy.PUBLIC,
    "auth.login": RoutePolicy.PUBLIC,
    "auth.forgot_password": RoutePolicy.PUBLIC,
    "auth.reset_password": RoutePolicy.PUBLIC,
    "auth.session": RoutePolicy.OPTIONAL_AUTH,
    "auth.me": RoutePolicy.AUTHENTICATED,
    "auth.logout": RoutePolicy.AUTHENTICATED,
    "auth.update_password": RoutePolicy.AUTHENTICATED,
    "users.directory": RoutePolicy.AUTHENTICATED,
    "users.get": RoutePolicy.AUTHENTICATED,
    "users.update": RoutePolicy.AUTHENTICATED,
    "users.list": RoutePolicy.ADMIN_ONLY,
    "users.update_status": RoutePolicy.ADMIN_ONLY,
    "users.update_role": RoutePolicy.ADMIN_ONLY,
}


def policy_for(route_name: str | None) -> RoutePolicy:
    """Look up the policy for a route name, failing closed."""
    if route_name is None:
        return DEFAULT_ROUTE_POLICY
    return ROUTE_POLICIES.get(route_name, DEFAULT_ROUTE_POLICY)
