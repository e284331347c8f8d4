"""
Text level rewriting of URLs inside CSS.

Only the ``url()`` functional notation and the head of ``@import`` rules are
touched. Anything that does not match is left exactly as it was.
"""

import re
from typing import Union

from unblocker.rewrite.url_resolver import BaseOrigin, is_proxied, resolve

# A quoted argument ends at its own quote on the same line; a bare one never
# contains quotes, parens or whitespace. Unterminated tokens do not match.
_QUOTED = r"""(?:"(?P<dq>[^"\n]*)"|'(?P<sq>[^'\n]*)')"""

_CSS_URL_RE = re.compile(
    rf"""(?<![\w-])url\(\s*(?:{_QUOTED}|(?P<bare>[^"'()\s]*))\s*\)""",
    re.IGNORECASE,
)
_IMPORT_RE = re.compile(
    rf"""(?P<head>@import\s+){_QUOTED}""",
    re.IGNORECASE,
)


def _is_data_uri(reference: str) -> bool:
    return reference.strip().lower().startswith("data:")


def _argument(match: re.Match) -> str:
    for group in ("dq", "sq", "bare"):
        value = match.groupdict().get(group)
        if value is not None:
            return value
    return ""


def rewrite_css_urls(css: str, base: Union[BaseOrigin, str]) -> str:
    """Rewrite every ``url(...)`` token to ``url("<proxied>")``."""
    if not css:
        return css

    def _replace(match: re.Match) -> str:
        reference = _argument(match).strip()
        if not reference or _is_data_uri(reference) or is_proxied(reference):
            return match.group(0)
        resolved = resolve(reference, base)
        if resolved == reference:
            return match.group(0)
        return f'url("{resolved}")'

    return _CSS_URL_RE.sub(_replace, css)


def rewrite_css_imports(css: str, base: Union[BaseOrigin, str]) -> str:
    """Rewrite the quoted target of ``@import "..."`` rules, keeping the quotes."""
    if not css:
        return css

    def _replace(match: re.Match) -> str:
        reference = _argument(match)
        if not reference.strip() or _is_data_uri(reference):
            return match.group(0)
        resolved = resolve(reference, base)
        if resolved == reference:
            return match.group(0)
        quote = '"' if match.group("dq") is not None else "'"
        return f"{match.group('head')}{quote}{resolved}{quote}"

    return _IMPORT_RE.sub(_replace, css)


def rewrite_stylesheet(css: str, base: Union[BaseOrigin, str]) -> str:
    return rewrite_css_imports(rewrite_css_urls(css, base), base)
