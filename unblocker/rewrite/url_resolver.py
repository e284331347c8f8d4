"""
Resolution of references found in a document into proxied URLs.

Every location that ends up in a rewritten page goes through ``resolve``:
relative references are made absolute against the fetched document and then
wrapped into ``/proxy?url=<encoded>`` so the browser comes back to us.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
from urllib.parse import parse_qs, quote, urljoin, urlsplit, urlunsplit

from unblocker.vars import PROXY_PATH

logger = logging.getLogger("uvicorn.error")

# Schemes whose values are never fetched through the proxy.
OPAQUE_SCHEMES = frozenset({"data", "blob", "mailto", "tel", "javascript", "about"})
FETCHABLE_SCHEMES = frozenset({"http", "https"})

_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):")
# Browsers drop these anywhere in a URL before parsing it ("java\tscript:").
_IGNORED_CHARS_RE = re.compile(r"[\t\n\r]")


class SchemeClass(Enum):
    """How a reference is treated based on its scheme."""

    OPAQUE = "opaque"
    HTTP = "http"


@dataclass(frozen=True)
class BaseOrigin:
    """The document a set of references is resolved against."""

    scheme: str
    host: str
    url: str

    @property
    def origin(self) -> str:
        return f"{self.scheme}://{self.host}"

    @classmethod
    def from_url(cls, url: str) -> "BaseOrigin":
        """
        Build the base for a fetched document.

        Raises:
            ValueError: if ``url`` is not an absolute URL with a host.
        """
        parts = urlsplit(url.strip())
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"Not an absolute URL: {url!r}")
        scheme = parts.scheme.lower()
        # Never propagate credentials from the target URL into the page.
        host = parts.netloc.rpartition("@")[2].lower()
        base_url = urlunsplit((scheme, host, parts.path or "/", parts.query, ""))
        return cls(scheme=scheme, host=host, url=base_url)


def _clean(reference: str) -> str:
    return _IGNORED_CHARS_RE.sub("", reference).strip()


def classify_scheme(reference: str) -> SchemeClass:
    match = _SCHEME_RE.match(_clean(reference))
    if match and match.group(1).lower() in OPAQUE_SCHEMES:
        return SchemeClass.OPAQUE
    return SchemeClass.HTTP


def is_proxied(reference: str) -> bool:
    """Return True if ``reference`` already points at our own proxy endpoint."""
    try:
        parts = urlsplit(_clean(reference))
    except ValueError:
        return False
    if parts.scheme or parts.netloc or parts.path != PROXY_PATH:
        return False
    return "url" in parse_qs(parts.query)


def proxied_url(absolute_url: str) -> str:
    return f"{PROXY_PATH}?url={quote(absolute_url, safe='')}"


def absolutize(reference: str, base: Union[BaseOrigin, str]) -> Optional[str]:
    """
    Resolve ``reference`` against ``base`` without wrapping it.

    Returns:
        The absolute http(s) URL, or None when the reference cannot be
        resolved into something the proxy could fetch.
    """
    base_url = base.url if isinstance(base, BaseOrigin) else base
    try:
        absolute = urljoin(base_url, _clean(reference))
        parts = urlsplit(absolute)
    except ValueError as e:
        logger.debug(f"[Resolver] Leaving malformed reference {reference!r}: {e}")
        return None
    if parts.scheme.lower() not in FETCHABLE_SCHEMES or not parts.netloc:
        return None
    return absolute


def resolve(reference: str, base: Union[BaseOrigin, str]) -> str:
    """
    Turn a reference found in a document into its proxied form.

    The reference is returned unchanged when it is empty, a same-document
    fragment, uses an opaque scheme, is already proxied or cannot be resolved.
    """
    if not reference or not reference.strip():
        return reference
    # "#top" and url(#filter) point into the page already loaded.
    if _clean(reference).startswith("#"):
        return reference
    if classify_scheme(reference) is SchemeClass.OPAQUE:
        return reference
    if is_proxied(reference):
        return reference
    absolute = absolutize(reference, base)
    if absolute is None:
        return reference
    return proxied_url(absolute)
