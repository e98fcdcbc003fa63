from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from signal2noise.errors import TransportError

logger = logging.getLogger(__name__)


async def post_json(
    url: str,
    payload: dict,
    client: Optional[httpx.AsyncClient] = None,
) -> Any:
    """POST `payload` as JSON and return the decoded body.

    No timeout and no retry here: the conversation layer bounds the wait and
    decides what to do on failure. Everything that is not a 2xx response with a
    JSON body becomes a TransportError.
    """
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=None) as c:
                r = await c.post(url, json=payload)
        else:
            r = await client.post(url, json=payload)
    except httpx.HTTPError as e:
        raise TransportError(f"POST {url} failed: {e}") from e

    if not r.is_success:
        logger.warning(f"POST {url} returned HTTP {r.status_code}")
        raise TransportError(f"POST {url} returned HTTP {r.status_code}", status_code=r.status_code)

    try:
        return r.json()
    except ValueError as e:
        raise TransportError(f"POST {url} returned a non-JSON body", status_code=r.status_code) from e
