"""
Session cookie codec and cookie stores.

The identity provider keeps its session in a cookie named
``sb-<project-ref>-auth-token``. The value is the JSON session, optionally
prefixed with ``base64-`` and base64url-encoded. Values that do not fit in
one cookie are split into ``<name>.0``, ``<name>.1``, ... chunks.

Cookie stores are the only way the provider client touches cookies: it
reads everything through ``get_all()`` and writes through ``set_all()``.
"""

import base64
import json
from typing import Any, Dict, List, Mapping, Optional, Tuple

from starlette.responses import Response

from ..models import CookieMutation, CookieOptions

BASE64_PREFIX = "base64-"

# Stays under the 4096 byte per-cookie browser limit once name and attributes are added
MAX_CHUNK_SIZE = 3180

# 400 days, the maximum lifetime browsers accept
DEFAULT_COOKIE_MAX_AGE = 400 * 24 * 60 * 60


# =============================================================================
# Value Encoding
# =============================================================================

def encode_session_value(session: Dict[str, Any]) -> str:
    payload = json.dumps(session, separators=(",", ":")).encode("utf-8")
    return BASE64_PREFIX + base64.urlsafe_b64encode(payload).decode("ascii").rstrip("=")


def decode_session_value(raw: str) -> Dict[str, Any]:
    """
    Decode a session cookie value into its JSON object.

    Raises:
        ValueError: If the value is not valid base64 or JSON, or not an object
    """
    if raw.startswith(BASE64_PREFIX):
        encoded = raw[len(BASE64_PREFIX):]
        padding = "=" * (-len(encoded) % 4)
        raw = base64.urlsafe_b64decode(encoded + padding).decode("utf-8")

    decoded = json.loads(raw)
    if not isinstance(decoded, dict):
        raise ValueError("Session cookie does not contain a JSON object")
    return decoded


# =============================================================================
# Chunking
# =============================================================================

def chunk_value(name: str, value: str, size: int = MAX_CHUNK_SIZE) -> List[Tuple[str, str]]:
    """Split a value into ``(cookie_name, part)`` pairs; small values stay unchunked."""
    if len(value) <= size:
        return [(name, value)]
    return [
        (f"{name}.{index}", value[start:start + size])
        for index, start in enumerate(range(0, len(value), size))
    ]


def combine_chunks(name: str, cookies: Mapping[str, str]) -> Optional[str]:
    """Reassemble a possibly chunked cookie value, or None when absent."""
    if name in cookies:
        return cookies[name]

    parts = []
    index = 0
    while f"{name}.{index}" in cookies:
        parts.append(cookies[f"{name}.{index}"])
        index += 1

    return "".join(parts) if parts else None


def session_cookie_names(name: str, cookies: Mapping[str, str]) -> List[str]:
    """Every cookie currently holding (part of) the session called ``name``."""
    return [
        cookie_name for cookie_name in cookies
        if cookie_name == name
        or (cookie_name.startswith(f"{name}.") and cookie_name[len(name) + 1:].isdigit())
    ]


def has_session_cookie(name: str, cookies: Mapping[str, str]) -> bool:
    return bool(session_cookie_names(name, cookies))


def deletion(name: str, options: CookieOptions) -> CookieMutation:
    return CookieMutation(name=name, value="", options=options.model_copy(update={"max_age": 0}))


# =============================================================================
# Cookie Stores
# =============================================================================

class CookieStore:
    """Cookie adapter interface consumed by the provider client."""

    def get_all(self) -> Dict[str, str]:
        raise NotImplementedError

    def set_all(self, mutations: List[CookieMutation]) -> None:
        raise NotImplementedError


class RecordingCookieStore(CookieStore):
    """
    Cookie store over a snapshot of the request cookies.

    Writes are applied to the private snapshot, so later reads in the same
    provider call see them, and recorded in ``mutations`` for the caller to
    apply to the outgoing response. The incoming request is never mutated.
    """

    def __init__(self, cookies: Mapping[str, str]):
        self._cookies: Dict[str, str] = dict(cookies)
        self.mutations: List[CookieMutation] = []

    def get_all(self) -> Dict[str, str]:
        return dict(self._cookies)

    def set_all(self, mutations: List[CookieMutation]) -> None:
        for mutation in mutations:
            if mutation.is_deletion:
                self._cookies.pop(mutation.name, None)
            else:
                self._cookies[mutation.name] = mutation.value
            self.mutations.append(mutation)


def apply_cookie_mutations(response: Response, mutations: List[CookieMutation]) -> None:
    """Write recorded cookie mutations onto an outgoing response."""
    for mutation in mutations:
        options = mutation.options
        response.set_cookie(
            key=mutation.name,
            value=mutation.value,
            max_age=options.max_age,
            path=options.path,
            domain=options.domain,
            secure=options.secure,
            httponly=options.httponly,
            samesite=options.samesite,
        )
