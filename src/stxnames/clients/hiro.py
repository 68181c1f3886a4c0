"""Async client for the Stacks indexing API (Hiro-compatible).

This module provides:
- `StacksAPI`: an async client with bounded timeouts/connection limits
- `transactions_url`: helper to build the per-address listing URL

It returns `ApiTransaction` records ready for normalization. Listing items
are validated one at a time; an unreadable item is logged and dropped so
it cannot stall every later page.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

import httpx
from pydantic import ValidationError

from stxnames.core.errors import UpstreamError
from stxnames.normalization.envelope import ApiTransaction, ApiTransactionsPage

logger = logging.getLogger(__name__)


def _parse_results(items: list[Any], url: str) -> Iterator[ApiTransaction]:
    for i, item in enumerate(items):
        try:
            yield ApiTransaction.model_validate(item)
        except ValidationError as e:
            logger.warning("dropping unreadable item %d from %s: %s", i, url, e)


def transactions_url(base_url: str, principal: str) -> str:
    """Return the "recent transactions for address" endpoint for `principal`."""
    return f"{base_url.rstrip('/')}/extended/v1/address/{principal}/transactions"


class StacksAPI:
    """Minimal async indexing-API client.

    Parameters
    ----------
    base_url : str
        API root, e.g. ``https://api.mainnet.hiro.so``.
    api_key : str | None
        Optional key sent as ``x-api-key``.
    timeout_s : float
        Per-operation timeout in seconds; a slower call fails instead of hanging.
    max_connections : int
        Maximum concurrent connections to keep in the pool.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout_s: float = 15.0,
        max_connections: int = 8,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"accept": "application/json"}
        if api_key:
            headers["x-api-key"] = api_key
        self.client = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(1, max_connections // 2),
            ),
            transport=transport,
        )

    async def recent_transactions(
        self,
        contract_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ApiTransaction]:
        """Fetch one page of transactions for `contract_id`, newest first."""
        url = transactions_url(self.base_url, contract_id)
        try:
            r = await self.client.get(url, params={"limit": limit, "offset": offset})
            r.raise_for_status()
            page = ApiTransactionsPage.model_validate(r.json())
        except httpx.TimeoutException as e:
            raise UpstreamError(f"timeout fetching {url}") from e
        except httpx.HTTPStatusError as e:
            raise UpstreamError(f"API returned {e.response.status_code} for {url}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"{type(e).__name__}: {e}") from e
        except (ValueError, ValidationError) as e:
            raise UpstreamError(f"unparseable response from {url}: {e}") from e
        return list(_parse_results(page.results, url))

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> StacksAPI:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()
