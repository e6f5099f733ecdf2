import os, json, time, logging
from typing import Any, Dict, List

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url

DB_URL = os.getenv("AUDIT_DB_URL", "sqlite:///./outputs/audit.db")
AUDIT_ENABLED = os.getenv("AUDIT_ENABLED", "1") != "0"

log = logging.getLogger("audit")


def get_engine():
    url = make_url(DB_URL)
    if url.drivername.startswith("sqlite") and url.database and url.database != ":memory:":
        parent = os.path.dirname(os.path.abspath(url.database))
        os.makedirs(parent, exist_ok=True)
    return create_engine(DB_URL, future=True)


def ensure_schema():
    if not AUDIT_ENABLED:
        return
    eng = get_engine()
    with eng.begin() as con:
        con.execute(text("""
        CREATE TABLE IF NOT EXISTS search_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            ts INTEGER,
            kind TEXT,
            query TEXT,
            country TEXT,
            language TEXT,
            filters_json TEXT,
            parsed INTEGER,
            record_count INTEGER,
            source_count INTEGER,
            raw_text TEXT
        )
        """))


def log_search(kind: str, query: str, country: str, language: str, filters: Dict[str, Any],
               raw_text: str, records, source_count: int) -> None:
    """Best effort: an audit failure is logged, never raised to the caller."""
    if not AUDIT_ENABLED:
        return
    rec = {
        "ts": int(time.time()),
        "kind": kind,
        "query": query or "",
        "country": country or "",
        "language": language or "",
        "filters_json": json.dumps(filters or {}, ensure_ascii=False, default=str),
        "parsed": 0 if records is None else 1,
        "record_count": len(records or []),
        "source_count": int(source_count or 0),
        "raw_text": raw_text or "",
    }
    try:
        ensure_schema()
        eng = get_engine()
        with eng.begin() as con:
            con.execute(text("""
                INSERT INTO search_log (ts,kind,query,country,language,filters_json,parsed,record_count,source_count,raw_text)
                VALUES (:ts,:kind,:query,:country,:language,:filters_json,:parsed,:record_count,:source_count,:raw_text)
            """), rec)
    except Exception as e:
        log.exception("audit write failed: %s", e)


def recent_searches(limit: int = 10) -> List[Dict[str, Any]]:
    if not AUDIT_ENABLED:
        return []
    ensure_schema()
    eng = get_engine()
    with eng.connect() as con:
        rows = con.execute(text("""
            SELECT ts, kind, query, country, language, filters_json, parsed, record_count, source_count
            FROM search_log ORDER BY ts DESC, id DESC LIMIT :limit
        """), {"limit": int(limit)}).fetchall()
    out = []
    for ts, kind, query, country, language, filters_json, parsed, record_count, source_count in rows:
        out.append({
            "ts": ts,
            "kind": kind,
            "query": query,
            "country": country,
            "language": language,
            "filters": json.loads(filters_json or "{}"),
            "parsed": bool(parsed),
            "record_count": record_count,
            "source_count": source_count,
        })
    return out
