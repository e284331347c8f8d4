import os

from unblocker import __version__


def _parse_key_value_list(raw: str) -> dict:
    mapping: dict = {}
    if not raw:
        return mapping
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if "=" in entry:
            key, val = entry.split("=", 1)
            key = key.strip()
            val = val.strip()
            if key and val:
                mapping[key] = val
    return mapping


SERVICE_NAME = os.getenv("SERVICE_NAME", "unblocker")
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))

# Path the rewritten documents point back to, e.g. /proxy?url=...
PROXY_PATH = "/" + os.environ.get("PROXY_PATH", "/proxy").strip("/")

FETCH_TIMEOUT = float(os.getenv("FETCH_TIMEOUT", "15"))
MAX_REDIRECTS = int(os.getenv("MAX_REDIRECTS", "10"))

PROJECT_URL = os.getenv("PROJECT_URL", "https://example.com/unblocker")
USER_AGENT = os.getenv("USER_AGENT", f"Unblocker/{__version__} (+{PROJECT_URL})")

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
# "key=value,key2=value2"
OTLP_HEADERS = _parse_key_value_list(os.getenv("OTLP_HEADERS", ""))
