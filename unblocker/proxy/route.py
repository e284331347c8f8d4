import logging
from typing import Optional
from urllib.parse import urlsplit

from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse, Response
from opentelemetry import trace

from unblocker.fetch.classifier import ContentClass, charset_of, classify
from unblocker.fetch.fetcher import FetchFailure, FetchResult, fetch
from unblocker.rewrite.engine import rewrite_html
from unblocker.rewrite.url_resolver import BaseOrigin
from unblocker.utils import redact_url
from unblocker.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)
from unblocker.utils.traced_requests import traced_request
from unblocker.vars import PROXY_PATH

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

HTML_MEDIA_TYPE = "text/html; charset=utf-8"
DEFAULT_MEDIA_TYPE = "application/octet-stream"


class InputError(ValueError):
    """The ``url`` query parameter is missing or not a fetchable URL."""


def parse_target_url(url: Optional[str]) -> str:
    """
    Validate the ``url`` query parameter.

    Raises:
        InputError: when the value is missing, does not parse, is not http(s)
            or has no host.
    """
    if url is None or not url.strip():
        raise InputError(
            f"Missing 'url' query parameter. Usage: {PROXY_PATH}?url=https://example.com/"
        )
    url = url.strip()
    try:
        parts = urlsplit(url)
        # Accessing the port validates it.
        parts.port
    except ValueError as e:
        raise InputError(f"Malformed 'url' query parameter: {e}") from e
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        raise InputError(
            "Malformed 'url' query parameter: expected an absolute http(s) URL"
        )
    return url


def passthrough_response(result: FetchResult) -> Response:
    """Hand a non-HTML body back byte for byte with its original media type."""
    headers = {"content-type": result.media_type or DEFAULT_MEDIA_TYPE}
    if "cache-control" in result.headers:
        headers["cache-control"] = result.headers["cache-control"]
    return Response(
        content=result.body, status_code=result.status_code, headers=headers
    )


@router.get(PROXY_PATH)
async def proxy(url: Optional[str] = Query(None)) -> Response:
    """Fetch ``url`` and rewrite it if it is an HTML document."""
    try:
        target_url = parse_target_url(url)
    except InputError as e:
        logger.info(f"[Proxy] Rejected request: {e}")
        return PlainTextResponse(str(e), status_code=400)

    with traced_request(
        tracer,
        "proxy_request",
        target_url,
        f"[Proxy] GET {redact_url(target_url)}",
    ) as span:
        try:
            result = await fetch(target_url)
        except FetchFailure as e:
            log_exception_with_details(
                logger,
                f"[Proxy] Fetch failed for {redact_url(target_url)}:",
                e,
                level=logging.WARNING,
            )
            span.set_attribute("proxy.error", e.message)
            return PlainTextResponse(
                f"Upstream fetch failed: {e.message}", status_code=502
            )

        span.set_attribute("proxy.status_code", result.status_code)
        content_class = classify(result.media_type)
        span.set_attribute("proxy.content_class", content_class.value)

        if content_class is ContentClass.OPAQUE:
            return passthrough_response(result)

        try:
            body = rewrite_html(
                result.body,
                BaseOrigin.from_url(result.url),
                charset_of(result.media_type),
            )
        except Exception as e:
            log_exception_with_details(
                logger, f"[Proxy] Rewriting {redact_url(result.url)} failed:", e
            )
            span.set_attribute("proxy.error", "rewrite_failed")
            return PlainTextResponse(
                f"Failed to rewrite document: {format_exception_message(e)}",
                status_code=502,
            )

        logger.debug(
            f"[Proxy] Rewrote {redact_url(result.url)} ({len(result.body)} -> {len(body)} bytes)"
        )
        return Response(
            content=body,
            status_code=result.status_code,
            media_type=HTML_MEDIA_TYPE,
        )
