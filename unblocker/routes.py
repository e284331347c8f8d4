import logging

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from unblocker.proxy.route import router as proxy_router
from unblocker.vars import PROXY_PATH, SERVICE_NAME

router = APIRouter()
logger = logging.getLogger("uvicorn.error")

LANDING_PAGE = f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>{SERVICE_NAME}</title>
    <style>
        body {{ font-family: sans-serif; max-width: 600px; margin: 50px auto; text-align: center; }}
        input {{ padding: 10px; width: 70%; }}
        button {{ padding: 10px 20px; }}
    </style>
</head>
<body>
    <h1>{SERVICE_NAME}</h1>
    <form action="{PROXY_PATH}" method="get">
        <input type="url" name="url" placeholder="https://example.com/" required>
        <button type="submit">Go</button>
    </form>
</body>
</html>
"""


@router.get("/", response_class=HTMLResponse)
async def landing_page():
    return LANDING_PAGE


router.include_router(proxy_router)
logger.info(f"Serving proxy endpoint at {PROXY_PATH}")
