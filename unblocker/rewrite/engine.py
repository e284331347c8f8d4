"""
Rewrite engine for proxied HTML documents.

The document is parsed once into a BeautifulSoup tree, every location that
can carry a URL is rewritten in place through the resolver, and the tree is
serialized back to UTF-8 bytes. The passes are independent of each other:

- attribute pass: the location attribute of each known element kind
  (plus ``srcset`` and ``poster``)
- inline CSS pass: ``url()`` tokens in ``<style>`` blocks and ``style`` attributes
- import pass: ``@import "..."`` rules in ``<style>`` blocks
- meta refresh pass: ``<meta http-equiv="refresh" content="5;url=...">``
- base pass: ``<base href>``

All passes resolve against the document that was actually fetched, never
against an in-document ``<base>``. A pass that trips over unexpected markup is
logged and skipped; the others still run.
"""

import logging
import re
from typing import Callable, List, Optional, Tuple, Union

from bs4 import BeautifulSoup
from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter

from unblocker.rewrite.css import rewrite_css_imports, rewrite_css_urls
from unblocker.rewrite.url_resolver import BaseOrigin, resolve
from unblocker.utils.exception_logging import log_exception_with_details

logger = logging.getLogger("uvicorn.error")

Document = BeautifulSoup

# Element kind -> attribute holding the location it loads or navigates to.
LOCATION_ATTRIBUTES = {
    "img": "src",
    "script": "src",
    "link": "href",
    "iframe": "src",
    "source": "src",
    "video": "src",
    "audio": "src",
    "embed": "src",
    "object": "data",
    "track": "src",
    "a": "href",
    "area": "href",
    "form": "action",
}

SECONDARY_ATTRIBUTES = {
    "img": ("srcset",),
    "source": ("srcset",),
    "video": ("poster",),
}

_REFRESH_RE = re.compile(
    r"""^(?P<prefix>\s*\d+(?:\.\d*)?\s*[;,]\s*url\s*=\s*)"""
    r"""(?P<quote>["']?)(?P<ref>.*?)(?P=quote)(?P<tail>\s*)$""",
    re.IGNORECASE | re.DOTALL,
)

# Same output as the "minimal" formatter, but void elements are written the
# HTML way (<img src="...">) instead of <img src="..."/>.
HTML_FORMATTER = HTMLFormatter(
    entity_substitution=EntitySubstitution.substitute_xml,
    void_element_close_prefix=None,
)


def parse(body: Union[bytes, str], encoding: Optional[str] = None) -> Document:
    if isinstance(body, bytes):
        return BeautifulSoup(body, "html.parser", from_encoding=encoding)
    return BeautifulSoup(body, "html.parser")


def render(document: Document) -> bytes:
    return document.decode(formatter=HTML_FORMATTER).encode("utf-8")


def _split_srcset(srcset: str) -> List[Tuple[str, str]]:
    """Split a srcset value into (url, descriptor) candidates."""
    candidates = []
    pos = 0
    length = len(srcset)
    while pos < length:
        while pos < length and (srcset[pos].isspace() or srcset[pos] == ","):
            pos += 1
        if pos >= length:
            break
        start = pos
        while pos < length and not srcset[pos].isspace():
            pos += 1
        url = srcset[start:pos]
        descriptor = ""
        if url.endswith(","):
            url = url.rstrip(",")
        else:
            start = pos
            while pos < length and srcset[pos] != ",":
                pos += 1
            descriptor = srcset[start:pos].rstrip()
        candidates.append((url, descriptor))
    return candidates


def rewrite_srcset(srcset: str, base: BaseOrigin) -> str:
    candidates = _split_srcset(srcset)
    rewritten = [(resolve(url, base), descriptor) for url, descriptor in candidates]
    if rewritten == candidates:
        return srcset
    return ", ".join(f"{url}{descriptor}" for url, descriptor in rewritten)


def _rewrite_attribute(tag, attribute: str, rewriter: Callable[[str], str]) -> None:
    value = tag.get(attribute)
    if not isinstance(value, str):
        return
    rewritten = rewriter(value)
    if rewritten != value:
        tag[attribute] = rewritten


def _rewrite_style_blocks(
    document: Document, rewriter: Callable[[str], str]
) -> None:
    for style in document.find_all("style"):
        css = style.string
        if css is None:
            continue
        rewritten = rewriter(str(css))
        if rewritten != css:
            # Keep the string subclass so the text stays unescaped on output.
            style.string = css.__class__(rewritten)


def rewrite_attributes(document: Document, base: BaseOrigin) -> None:
    for tag in document.find_all(list(LOCATION_ATTRIBUTES)):
        _rewrite_attribute(
            tag, LOCATION_ATTRIBUTES[tag.name], lambda value: resolve(value, base)
        )
    for tag in document.find_all(list(SECONDARY_ATTRIBUTES)):
        for attribute in SECONDARY_ATTRIBUTES[tag.name]:
            if attribute == "srcset":
                _rewrite_attribute(
                    tag, attribute, lambda value: rewrite_srcset(value, base)
                )
            else:
                _rewrite_attribute(tag, attribute, lambda value: resolve(value, base))


def rewrite_inline_css(document: Document, base: BaseOrigin) -> None:
    _rewrite_style_blocks(document, lambda css: rewrite_css_urls(css, base))
    for tag in document.find_all(style=True):
        _rewrite_attribute(tag, "style", lambda css: rewrite_css_urls(css, base))


def rewrite_imports(document: Document, base: BaseOrigin) -> None:
    _rewrite_style_blocks(document, lambda css: rewrite_css_imports(css, base))


def rewrite_meta_refresh(document: Document, base: BaseOrigin) -> None:
    def _rewrite_content(content: str) -> str:
        match = _REFRESH_RE.match(content)
        if not match or not match.group("ref").strip():
            return content
        quote = match.group("quote")
        resolved = resolve(match.group("ref"), base)
        return f"{match.group('prefix')}{quote}{resolved}{quote}{match.group('tail')}"

    for meta in document.find_all("meta", attrs={"http-equiv": True}):
        http_equiv = meta.get("http-equiv")
        if not isinstance(http_equiv, str) or http_equiv.strip().lower() != "refresh":
            continue
        _rewrite_attribute(meta, "content", _rewrite_content)


def rewrite_base(document: Document, base: BaseOrigin) -> None:
    for tag in document.find_all("base", href=True):
        _rewrite_attribute(tag, "href", lambda value: resolve(value, base))


PASSES = (
    rewrite_attributes,
    rewrite_inline_css,
    rewrite_imports,
    rewrite_meta_refresh,
    rewrite_base,
)


def rewrite(document: Document, base: BaseOrigin) -> Document:
    """Rewrite ``document`` in place so every reference goes through the proxy."""
    for rewrite_pass in PASSES:
        try:
            rewrite_pass(document, base)
        except Exception as e:
            log_exception_with_details(
                logger,
                f"[Rewrite] {rewrite_pass.__name__} failed for {base.origin}, skipping;",
                e,
                level=logging.WARNING,
            )
    return document


def rewrite_html(
    body: Union[bytes, str], base: BaseOrigin, encoding: Optional[str] = None
) -> bytes:
    return render(rewrite(parse(body, encoding), base))
