"""
Generic request/response wrapper shared by the remote service clients.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from .errors import ConfigurationError, RemoteServiceError

logger = logging.getLogger("vtranslate")

USER_AGENT = "vtranslate/0.1"

T = TypeVar("T")


@dataclass(frozen=True)
class RemoteEndpoint:
    """One remote operation: where to POST, how to authenticate, how it fails."""

    service: str
    url: str
    error_cls: type[RemoteServiceError]
    credential_name: str
    auth_header: str = "Authorization"
    auth_scheme: str | None = "Bearer"
    accept: str = "application/json"

    def headers(self, api_key: str) -> dict[str, str]:
        token = f"{self.auth_scheme} {api_key}" if self.auth_scheme else api_key
        return {
            self.auth_header: token,
            "accept": self.accept,
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }


async def call_remote(
    client: httpx.AsyncClient,
    endpoint: RemoteEndpoint,
    api_key: str | None,
    payload: dict[str, Any],
    decode: Callable[[httpx.Response], T],
) -> T:
    """
    POST ``payload`` as JSON and decode the response.

    Credentials are checked before the transport is touched. Any non-2xx
    status, transport failure or undecodable body raises ``endpoint.error_cls``.
    There are no retries.
    """
    if not api_key:
        raise ConfigurationError(f"{endpoint.credential_name} is not set.")

    logger.debug("POST %s (%s)", endpoint.url, endpoint.service)
    try:
        r = await client.post(endpoint.url, json=payload, headers=endpoint.headers(api_key))
    except httpx.TransportError as e:
        logger.error("%s request failed: %s", endpoint.service, e)
        raise endpoint.error_cls(None, str(e)) from e

    if not r.is_success:
        body = r.text
        logger.error("%s error: %d %s", endpoint.service, r.status_code, body[:300])
        raise endpoint.error_cls(r.status_code, body)

    try:
        return decode(r)
    except (ValueError, KeyError, IndexError, TypeError) as e:
        logger.error("%s returned an unexpected body: %s", endpoint.service, r.text[:300])
        raise endpoint.error_cls(r.status_code, f"Malformed response: {e}") from e
