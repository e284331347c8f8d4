from urllib.parse import urlsplit, urlunsplit


def redact_url(url: str) -> str:
    """Strip credentials and the query string from a URL before it is logged."""
    if not url:
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<unparseable url>"
    host = parts.netloc.rpartition("@")[2]
    query = "<redacted>" if parts.query else ""
    return urlunsplit((parts.scheme, host, parts.path, query, ""))
