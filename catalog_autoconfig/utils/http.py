"""Shared HTTP client construction."""

import httpx

from catalog_autoconfig.cli.config import Config


def create_http_client(settings: Config, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Build the single AsyncClient shared by every component of a run.

    Args:
        settings: Loaded CLI configuration
        transport: Optional transport override (tests pass httpx.MockTransport)

    Returns:
        Configured httpx.AsyncClient; the caller owns and closes it
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.request_timeout),
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent},
        transport=transport,
    )
