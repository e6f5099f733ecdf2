import argparse, asyncio, csv, json
import logging
import pandas as pd

from gateway.client import ResearcherError
from gateway.models import Tab
from gateway.state import run_search  # this calls the researcher

log = logging.getLogger("gateway")

FIELDS = ["id", "query", "country", "language", "parsed", "record_count",
          "source_count", "records_json", "sources", "error"]

# optional CSV columns -> wire filter keys
FILTER_COLUMNS = {
    Tab.LAW: {"competent_authority": "competentAuthority", "date_from": "dateFrom", "date_to": "dateTo"},
    Tab.POLICY: {"date_from": "dateFrom", "date_to": "dateTo",
                 "include_keywords": "includeKeywords", "exclude_keywords": "excludeKeywords"},
}


def _cell(v) -> str:
    if v is None or (isinstance(v, float) and pd.isna(v)):
        return ""
    return str(v).strip()


def _filters(row: dict, tab: Tab) -> dict:
    out = {}
    for col, key in FILTER_COLUMNS[tab].items():
        val = _cell(row.get(col))
        if val:
            out[key] = val
    return out


async def _search_one(row: dict, tab: Tab) -> dict:
    query = _cell(row.get("query"))
    base = {
        "id": row.get("id"),
        "query": query,
        "country": _cell(row.get("country")),
        "language": _cell(row.get("language")),
    }
    if not query:
        return {**base, "parsed": "false", "record_count": 0, "source_count": 0,
                "records_json": "", "sources": "", "error": "empty query"}
    try:
        res = await run_search(tab, query, base["country"], base["language"], _filters(row, tab))
    except ResearcherError as e:
        log.warning("batch row %s failed: %s", row.get("id"), e)
        return {**base, "parsed": "false", "record_count": 0, "source_count": 0,
                "records_json": "", "sources": "", "error": e.message or str(e)}
    records = res.records or []
    return {
        **base,
        "parsed": "true" if res.records is not None else "false",
        "record_count": len(records),
        "source_count": len(res.sources),
        "records_json": json.dumps([r.model_dump(by_alias=True) for r in records], ensure_ascii=False),
        # serialize list → semicolon-separated string
        "sources": ";".join(s.uri for s in res.sources),
        "error": "",
    }


async def _run_all(rows, tab: Tab):
    # run sequentially to keep rate limits happy
    out = []
    for r in rows:
        out.append(await _search_one(r, tab))
    return out


def main(argv=None):
    ap = argparse.ArgumentParser(description="Run grounded law/policy searches for every row of a CSV.")
    ap.add_argument("--input", required=True)
    ap.add_argument("--output", required=True)
    ap.add_argument("--kind", choices=[t.value for t in Tab], default=Tab.LAW.value)
    args = ap.parse_args(argv)

    df = pd.read_csv(args.input, dtype=str, keep_default_na=False)
    rows = df.to_dict(orient="records")

    out = asyncio.run(_run_all(rows, Tab(args.kind)))

    with open(args.output, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=FIELDS)
        w.writeheader()
        for r in out:
            w.writerow(r)


if __name__ == "__main__":
    main()
