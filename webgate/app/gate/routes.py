"""
Route Classification
====================

Pure functions mapping a request path to its protection category.

Matching rules:
    - Public and protected routes match exactly or on a path-segment
      boundary: ``/dashboard`` matches ``/dashboard/overview`` but never
      ``/dashboards``.
    - The root route ``/`` matches only itself.
    - Public wins over any overlapping protected prefix.
    - Excluded asset prefixes use a plain string prefix, and any path ending
      in ``.<ext>`` for a configured extension is excluded.
"""

import re
from typing import Iterable, Optional

from ..config import RouteTable
from ..models import RouteCategory

_DEFAULT_TABLE = RouteTable()


def _matches_segment(path: str, route: str) -> bool:
    if route == "/":
        return path == "/"
    return path == route or path.startswith(route.rstrip("/") + "/")


def _matches_any(path: str, routes: Iterable[str]) -> bool:
    return any(_matches_segment(path, route) for route in routes)


def is_excluded(path: str, table: Optional[RouteTable] = None) -> bool:
    """Static and framework-internal assets bypass the gate entirely."""
    table = table or _DEFAULT_TABLE

    if any(path.startswith(prefix) for prefix in table.excluded_prefixes):
        return True

    return any(path.endswith(f".{ext}") for ext in table.excluded_extensions)


def is_public(path: str, table: Optional[RouteTable] = None) -> bool:
    table = table or _DEFAULT_TABLE
    return _matches_any(path, table.public_routes)


def is_protected(path: str, table: Optional[RouteTable] = None) -> bool:
    """
    Check whether a path requires an authenticated user.

    Args:
        path: Request path (no query string)
        table: Route table, defaults to the built-in one

    Returns:
        False for public paths, otherwise True when a protected page or
        protected API prefix matches.
    """
    table = table or _DEFAULT_TABLE

    if is_public(path, table):
        return False

    return _matches_any(path, table.protected_routes) or _matches_any(
        path, table.protected_api_routes
    )


def is_callback(path: str, table: Optional[RouteTable] = None) -> bool:
    table = table or _DEFAULT_TABLE
    return _matches_segment(path, table.callback_path)


def is_auth_page(path: str, table: Optional[RouteTable] = None) -> bool:
    """Pages under the auth namespace, except the callback which is mid-flow."""
    table = table or _DEFAULT_TABLE
    return _matches_segment(path, table.auth_prefix) and not is_callback(path, table)


def classify(path: str, table: Optional[RouteTable] = None) -> RouteCategory:
    table = table or _DEFAULT_TABLE

    if is_excluded(path, table):
        return RouteCategory.EXCLUDED
    if is_public(path, table):
        return RouteCategory.PUBLIC
    if _matches_any(path, table.protected_routes):
        return RouteCategory.PROTECTED_PAGE
    if _matches_any(path, table.protected_api_routes):
        return RouteCategory.PROTECTED_API
    return RouteCategory.UNPROTECTED


# =============================================================================
# Framework Matcher
# =============================================================================

def matcher_pattern(table: Optional[RouteTable] = None) -> str:
    """
    Build the single path pattern the gate should be mounted on.

    Everything is matched except the excluded prefixes and extensions,
    expressed as a negative look-ahead. Prefixes are written without their
    leading slash because the pattern consumes it.
    """
    table = table or _DEFAULT_TABLE

    prefixes = "|".join(re.escape(prefix.lstrip("/")) for prefix in table.excluded_prefixes)
    extensions = "|".join(re.escape(ext) for ext in table.excluded_extensions)

    return f"/((?!{prefixes}|.*\\.(?:{extensions})$).*)"


def path_matches(pattern: str, path: str) -> bool:
    """Return True when the gate would process ``path`` under ``pattern``."""
    return re.fullmatch(pattern, path) is not None
