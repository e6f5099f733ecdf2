import json

import pandas as pd

from gateway import batch
from gateway.client import ResearcherError
from gateway.models import Regulation, SearchResponse, Source, Tab


def test_batch_writes_one_row_per_query(tmp_path, monkeypatch):
    src = tmp_path / "queries.csv"
    dst = tmp_path / "out.csv"
    pd.DataFrame([
        {"id": "1", "query": "室內吸菸罰則", "country": "Taiwan", "language": "正體中文", "competent_authority": "衛生福利部", "date_from": ""},
        {"id": "2", "query": "overtime pay", "country": "Japan", "language": "English", "competent_authority": "", "date_from": "2020-01-01"},
        {"id": "3", "query": "", "country": "Japan", "language": "English", "competent_authority": "", "date_from": ""},
        {"id": "4", "query": "down", "country": "Japan", "language": "English", "competent_authority": "", "date_from": ""},
    ]).to_csv(src, index=False)

    calls = []

    async def fake_run_search(tab, query, country, language, filters):
        calls.append((tab, query, filters))
        if query == "down":
            raise ResearcherError("與 AI 服務通訊時發生錯誤。", status_code=502)
        if country == "Taiwan":
            return SearchResponse(
                records=[Regulation(regulationName="菸害防制法", article="第15條")],
                raw_text="[...]",
                sources=[Source(uri="https://law.moj.gov.tw/a"), Source(uri="https://law.moj.gov.tw/b")],
            )
        return SearchResponse(records=None, raw_text="no json", sources=[])

    monkeypatch.setattr(batch, "run_search", fake_run_search)
    batch.main(["--input", str(src), "--output", str(dst)])

    assert calls == [
        (Tab.LAW, "室內吸菸罰則", {"competentAuthority": "衛生福利部"}),
        (Tab.LAW, "overtime pay", {"dateFrom": "2020-01-01"}),
        (Tab.LAW, "down", {}),
    ]

    out = pd.read_csv(dst, dtype=str, keep_default_na=False)
    assert list(out.columns) == batch.FIELDS
    rows = out.to_dict(orient="records")

    assert rows[0]["parsed"] == "true"
    assert rows[0]["record_count"] == "1"
    assert rows[0]["sources"] == "https://law.moj.gov.tw/a;https://law.moj.gov.tw/b"
    assert json.loads(rows[0]["records_json"])[0]["regulationName"] == "菸害防制法"

    assert rows[1]["parsed"] == "false"
    assert rows[1]["record_count"] == "0"

    assert rows[2]["error"] == "empty query"
    assert rows[3]["error"] == "與 AI 服務通訊時發生錯誤。"


def test_policy_filters_from_columns():
    row = {"include_keywords": " AI ", "exclude_keywords": "", "date_to": "2024-12-31", "competent_authority": "ignored"}
    assert batch._filters(row, Tab.POLICY) == {"includeKeywords": "AI", "dateTo": "2024-12-31"}
