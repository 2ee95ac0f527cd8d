"""Helpers for draining the delta feed."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from .errors import InvalidResponseError
from .models import DeltaPage, Metadata
from .results import Failure, Success

if TYPE_CHECKING:
    from .client import RestClient


async def iter_delta(client: RestClient, cursor: str | None = None) -> AsyncIterator[DeltaPage]:
    """Yield delta pages until the server reports ``has_more = False``.

    Failures are raised; the cursor of the last page yielded is the one to
    resume from.
    """
    while True:
        outcome = await client.load_delta(cursor)
        if isinstance(outcome, Failure):
            raise outcome.error
        if not isinstance(outcome, Success):
            raise InvalidResponseError(f"unexpected delta outcome {type(outcome).__name__}")
        page: DeltaPage = outcome.value
        yield page
        cursor = page.cursor
        if not page.has_more:
            return


async def sync_delta(
    client: RestClient, cache: dict[str, Metadata], cursor: str | None = None
) -> str | None:
    """Apply every pending delta page to ``cache`` and return the new cursor."""
    async for page in iter_delta(client, cursor):
        page.apply(cache)
        cursor = page.cursor
    return cursor


__all__ = ["iter_delta", "sync_delta"]
