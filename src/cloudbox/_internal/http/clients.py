"""Client factory functions for creating pre-configured httpx clients."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence

import httpx

from .config import DEFAULT_TIMEOUT


def _create_static_headers_hook(
    headers: Mapping[str, str],
) -> Callable[[httpx.Request], Awaitable[None]]:
    """Create a request hook that adds static headers to every request.

    Uses setdefault so per-request headers take precedence. Async clients
    await their hooks, so the hook is a coroutine function.
    """

    async def hook(request: httpx.Request) -> None:
        for key, value in headers.items():
            request.headers.setdefault(key, value)

    return hook


def _prepend_request_hooks(
    client: httpx.AsyncClient,
    hooks: Sequence[Callable[[httpx.Request], Awaitable[None]]],
) -> None:
    """Prepend request hooks to an existing client's event hooks.

    Prepending ensures our default hooks run first, allowing user-configured
    hooks to override or intercept the defaults.
    """
    existing_hooks = list(client.event_hooks.get("request", []))
    client.event_hooks["request"] = list(hooks) + existing_hooks


def create_headers_async_client(
    headers: Mapping[str, str],
    timeout: float | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> httpx.AsyncClient:
    """Create or configure an async httpx client with static headers.

    Used to attach the user agent; signing happens per request, not in a hook,
    because each request is signed over its own URL and parameters.

    Args:
        headers: Static headers to add to every request.
        timeout: Request timeout in seconds. Defaults to DEFAULT_TIMEOUT.
            Ignored if client is provided.
        client: Optional existing client to configure. If provided, header hooks
            are prepended to existing hooks, allowing user hooks to override.

    Returns:
        An httpx.AsyncClient with static headers event hook configured.
    """
    headers_hook = _create_static_headers_hook(headers)

    if client is not None:
        _prepend_request_hooks(client, [headers_hook])
        return client

    effective_timeout = timeout if timeout is not None else DEFAULT_TIMEOUT
    return httpx.AsyncClient(
        timeout=httpx.Timeout(effective_timeout),
        event_hooks={"request": [headers_hook]},
    )


__all__ = [
    "create_headers_async_client",
]
