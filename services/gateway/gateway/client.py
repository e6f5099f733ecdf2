# gateway/client.py
import os
from typing import Any, Dict, List, Optional

import httpx

RESEARCHER_URL = os.getenv("RESEARCHER_URL", "http://researcher:8000")


def _mk_timeout(prefix: str, *, read_default: float, connect_default: float = 10.0, write_default: float = 60.0) -> httpx.Timeout:
    """Build an httpx.Timeout from env vars like:
       {PREFIX}_TIMEOUT (read & pool), {PREFIX}_CONNECT_TIMEOUT, {PREFIX}_WRITE_TIMEOUT
    """
    read = float(os.getenv(f"{prefix}_TIMEOUT", str(read_default)))
    connect = float(os.getenv(f"{prefix}_CONNECT_TIMEOUT", str(connect_default)))
    write = float(os.getenv(f"{prefix}_WRITE_TIMEOUT", str(write_default)))
    # pool timeout usually matches read
    pool = float(os.getenv(f"{prefix}_POOL_TIMEOUT", str(read)))
    return httpx.Timeout(connect=connect, read=read, write=write, pool=pool)


# Grounded searches routinely take tens of seconds.
RESEARCHER_TIMEOUT = _mk_timeout("RESEARCHER", read_default=180.0, connect_default=10.0, write_default=60.0)

# Tests swap this for an httpx.MockTransport.
TRANSPORT: Optional[httpx.AsyncBaseTransport] = None


class ResearcherError(Exception):
    """Researcher call failed. `message` is the service's user-facing detail, if it sent one."""

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message or f"researcher request failed (status={status_code})")
        self.message = message
        self.status_code = status_code


def _detail(r: httpx.Response) -> Optional[str]:
    try:
        body = r.json()
    except ValueError:
        return None
    detail = body.get("detail") if isinstance(body, dict) else None
    return detail if isinstance(detail, str) else None


async def _request(method: str, path: str, payload: Optional[dict] = None, params: Optional[dict] = None) -> Any:
    try:
        async with httpx.AsyncClient(base_url=RESEARCHER_URL, timeout=RESEARCHER_TIMEOUT, transport=TRANSPORT) as client:
            r = await client.request(method, path, json=payload, params=params)
    except httpx.HTTPError as e:
        raise ResearcherError(None) from e
    if r.is_error:
        raise ResearcherError(_detail(r), status_code=r.status_code)
    try:
        return r.json()
    except ValueError as e:
        raise ResearcherError(None, status_code=r.status_code) from e


async def search_regulations(query: str, country: str, language: str, filters: Optional[Dict[str, Any]] = None) -> dict:
    return await _request("POST", "/regulations", {
        "query": query,
        "country": country,
        "language": language,
        "filters": filters or {},
    })


async def search_policies(query: str, country: str, language: str, filters: Optional[Dict[str, Any]] = None) -> dict:
    return await _request("POST", "/policies", {
        "query": query,
        "country": country,
        "language": language,
        "filters": filters or {},
    })


async def translate(texts: List[str], target_language: str) -> List[str]:
    res = await _request("POST", "/translate", {"texts": list(texts), "targetLanguage": target_language})
    return list(res.get("translations") or [])


async def recent_audit(limit: int = 10) -> List[dict]:
    res = await _request("GET", "/audit/recent", params={"limit": limit})
    return list(res.get("items") or [])


async def health() -> dict:
    return await _request("GET", "/health")
