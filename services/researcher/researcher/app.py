import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query

from . import audit
from .chain import GroundedResearcher, MissingApiKeyError, ResearchError
from .models import (
    PolicySearchIn,
    PolicySearchResult,
    RegulationSearchIn,
    RegulationSearchResult,
    TranslateIn,
    TranslateOut,
)

log = logging.getLogger("researcher")

app = FastAPI(title="Lawlens Researcher")
_researcher: Optional[GroundedResearcher] = None


def get_researcher() -> GroundedResearcher:
    global _researcher
    if _researcher is None:
        _researcher = GroundedResearcher()
    return _researcher


def _to_http(e: ResearchError) -> HTTPException:
    status = 503 if isinstance(e, MissingApiKeyError) else 502
    return HTTPException(status_code=status, detail=str(e))


@app.on_event("startup")
async def startup():
    try:
        audit.ensure_schema()
    except Exception as e:
        log.exception("audit schema setup failed: %s", e)


@app.get("/health")
def health():
    return {"ok": True}


@app.post("/regulations", response_model=RegulationSearchResult)
async def regulations(inp: RegulationSearchIn, researcher: GroundedResearcher = Depends(get_researcher)):
    try:
        res = await researcher.fetch_regulations(inp.query, inp.country, inp.language, inp.filters)
    except ResearchError as e:
        raise _to_http(e)
    audit.log_search(
        "law", inp.query, inp.country, inp.language,
        inp.filters.model_dump(by_alias=True, mode="json"),
        res.raw_text, res.regulations, len(res.sources),
    )
    return res


@app.post("/policies", response_model=PolicySearchResult)
async def policies(inp: PolicySearchIn, researcher: GroundedResearcher = Depends(get_researcher)):
    try:
        res = await researcher.fetch_policies(inp.query, inp.country, inp.language, inp.filters)
    except ResearchError as e:
        raise _to_http(e)
    audit.log_search(
        "policy", inp.query, inp.country, inp.language,
        inp.filters.model_dump(by_alias=True, mode="json"),
        res.raw_text, res.policies, len(res.sources),
    )
    return res


@app.post("/translate", response_model=TranslateOut)
async def translate(inp: TranslateIn, researcher: GroundedResearcher = Depends(get_researcher)):
    try:
        out = await researcher.translate_many(inp.texts, inp.target_language)
    except ResearchError as e:
        raise _to_http(e)
    return TranslateOut(translations=out)


@app.get("/audit/recent")
def audit_recent(limit: int = Query(10, ge=1, le=200)):
    return {"items": audit.recent_searches(limit)}
