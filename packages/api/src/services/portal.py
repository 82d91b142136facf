# This project was developed with assistance from AI tools.
"""Review portal client.

Posts submission snapshots to the counter-party trust portal over HTTP and
returns the portal's identifier for the created item. The module exposes a
singleton initialised at app startup via ``init_portal_client()``.
"""

import logging
from typing import Any

import httpx

from ..core.config import Settings

logger = logging.getLogger(__name__)

ITEMS_PATH = "/api/trust-portal/items"


class PortalError(Exception):
    """Raised when the portal cannot be reached or rejects a submission."""


class PortalClient:
    """Async HTTP client for the review portal's item API."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def create_submission(self, payload: dict[str, Any]) -> str:
        """Create a portal item and return its id as a string."""
        try:
            response = await self._client.post(ITEMS_PATH, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise PortalError(
                f"Portal rejected submission ({exc.response.status_code}): {exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise PortalError(f"Portal request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise PortalError("Portal returned a non-JSON response") from exc

        portal_id = body.get("id") if isinstance(body, dict) else None
        if portal_id is None:
            raise PortalError("Portal response did not contain an item id")
        return str(portal_id)

    async def aclose(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_client: PortalClient | None = None


def init_portal_client(cfg: Settings) -> PortalClient:
    """Initialise the singleton (called once from app lifespan)."""
    global _client  # noqa: PLW0603
    _client = PortalClient(
        cfg.PORTAL_BASE_URL,
        api_key=cfg.PORTAL_API_KEY,
        timeout=cfg.PORTAL_TIMEOUT_SECONDS,
    )
    logger.info("PortalClient initialised (base_url=%s)", cfg.PORTAL_BASE_URL)
    return _client


def get_portal_client() -> PortalClient:
    """Return the initialised PortalClient singleton."""
    if _client is None:
        raise RuntimeError("PortalClient not initialised -- call init_portal_client() first")
    return _client
