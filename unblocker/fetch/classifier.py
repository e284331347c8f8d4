import codecs
import re
from enum import Enum
from typing import Optional

_CHARSET_RE = re.compile(r"""charset\s*=\s*["']?([^"';\s]+)""", re.IGNORECASE)


class ContentClass(Enum):
    """What the proxy does with a response body."""

    HTML = "html"
    OPAQUE = "opaque"


def classify(media_type: Optional[str]) -> ContentClass:
    """HTML gets rewritten, everything else is passed through untouched."""
    if media_type and "text/html" in media_type.lower():
        return ContentClass.HTML
    return ContentClass.OPAQUE


def charset_of(content_type: Optional[str]) -> Optional[str]:
    """Return the declared charset of a Content-Type value if Python knows it."""
    if not content_type:
        return None
    match = _CHARSET_RE.search(content_type)
    if not match:
        return None
    try:
        return codecs.lookup(match.group(1)).name
    except LookupError:
        return None
