import os, logging, aiohttp

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

API_BASE = (os.getenv("API_BASE") or "http://localhost:8000").rstrip("/")
POLL_SECONDS = float(os.getenv("POLL_SECONDS", "5"))
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "20"))

CLIENT_TIMEOUT = aiohttp.ClientTimeout(total=HTTP_TIMEOUT, connect=5, sock_connect=5)

# HTTP session
HTTP: aiohttp.ClientSession | None = None
async def get_http() -> aiohttp.ClientSession:
    global HTTP
    if HTTP is None or HTTP.closed:
        HTTP = aiohttp.ClientSession(timeout=CLIENT_TIMEOUT)
    return HTTP

async def close_http() -> None:
    global HTTP
    if HTTP is not None and not HTTP.closed:
        await HTTP.close()
    HTTP = None

def api_url(p: str) -> str:
    return f"{API_BASE}{p}"
