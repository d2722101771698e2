"""Proxy-routing transport decorator for `requests` sessions.

`RequestAugmentingAdapter` wraps another transport adapter and adds the two
langmesh proxy headers to every outbound request before delegating. It is
mounted only when proxy routing is enabled and a langmesh key is configured.
"""

from __future__ import annotations

from typing import Any

import requests
from requests.adapters import BaseAdapter, HTTPAdapter


PROXY_KEY_HEADER = "X-Langmesh-API-Key"
ORIGINAL_KEY_HEADER = "X-Langmesh-Original-API-Key"


class RequestAugmentingAdapter(BaseAdapter):
    """Inject proxy credentials, then delegate to the wrapped adapter.

    Only the two owned headers are touched; body, method, URL, and every
    other header pass through as prepared. Errors from the wrapped adapter
    propagate unchanged.
    """

    def __init__(
        self,
        *,
        routing_key: str,
        original_key: str,
        base: BaseAdapter | None = None,
    ) -> None:
        super().__init__()
        self.routing_key = routing_key
        self.original_key = original_key
        self.base = base if base is not None else HTTPAdapter()

    def send(self, request: requests.PreparedRequest, **kwargs: Any) -> requests.Response:
        request.headers[PROXY_KEY_HEADER] = self.routing_key
        request.headers[ORIGINAL_KEY_HEADER] = self.original_key
        return self.base.send(request, **kwargs)

    def close(self) -> None:
        self.base.close()


def build_chat_session(
    *,
    proxy_active: bool,
    routing_key: str | None,
    original_key: str,
    proxy_base_url: str,
    default_base_url: str,
) -> tuple[requests.Session, str]:
    """Return the session and base URL the wrapped chat client should use.

    With proxy routing inactive the session is a plain `requests.Session` and
    the default base URL is returned untouched.
    """

    session = requests.Session()
    if not proxy_active or not routing_key:
        return session, default_base_url

    adapter = RequestAugmentingAdapter(routing_key=routing_key, original_key=original_key)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session, proxy_base_url
