import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from unblocker.utils import redact_url
from unblocker.utils.exception_logging import format_exception_message
from unblocker.vars import FETCH_TIMEOUT, MAX_REDIRECTS, USER_AGENT

logger = logging.getLogger("uvicorn.error")

# Upstream response headers handed back to the request handler.
FORWARDED_RESPONSE_HEADERS = ("content-type", "cache-control")


class FetchFailure(Exception):
    """The target could not be fetched: timeout, redirect loop, network error or 5xx."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.url = url


@dataclass
class FetchResult:
    status_code: int
    media_type: str
    body: bytes
    url: str
    headers: Dict[str, str] = field(default_factory=dict)


def _to_result(response: httpx.Response) -> FetchResult:
    headers = {
        name: response.headers[name]
        for name in FORWARDED_RESPONSE_HEADERS
        if name in response.headers
    }
    return FetchResult(
        status_code=response.status_code,
        media_type=response.headers.get("content-type", ""),
        body=response.content,
        url=str(response.url),
        headers=headers,
    )


async def _get(url: str) -> httpx.Response:
    # The client's own headers (cookies, authorization) are never forwarded.
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(FETCH_TIMEOUT),
        follow_redirects=True,
        max_redirects=MAX_REDIRECTS,
        headers={"User-Agent": USER_AGENT},
    ) as client:
        return await client.get(url)


async def fetch(url: str) -> FetchResult:
    """
    Fetch ``url`` following redirects.

    Any status below 500 is a deliverable response, so error pages of the
    target are still shown to the user.

    Raises:
        FetchFailure: on timeout (over the whole exchange), too many redirects,
            connection or protocol errors and upstream 5xx responses.
    """
    logger.debug(f"[Fetch] GET {redact_url(url)}")
    try:
        response = await asyncio.wait_for(_get(url), timeout=FETCH_TIMEOUT)
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise FetchFailure(f"Timed out after {FETCH_TIMEOUT:g}s", url) from e
    except httpx.TooManyRedirects as e:
        raise FetchFailure(
            f"Too many redirects (more than {MAX_REDIRECTS})", url
        ) from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise FetchFailure(format_exception_message(e), url) from e

    if response.status_code >= 500:
        raise FetchFailure(
            f"Upstream responded with {response.status_code} {response.reason_phrase}".rstrip(),
            url,
        )

    result = _to_result(response)
    logger.info(
        f"[Fetch] {redact_url(url)} -> {result.status_code} "
        f"{result.media_type or '<no content-type>'} ({len(result.body)} bytes)"
    )
    return result
