import pytest
from fastapi.testclient import TestClient

from researcher.app import app, get_researcher
from researcher.chain import GroundedResearcher

from fakes import FakeGemini, gemini_response

REG_JSON = '[{"regulationName": "勞動基準法", "competentAuthority": "勞動部", "lastAmendedDate": "2020-06-10", "article": "第24條", "content": "...", "penalty": "第79條"}]'
SOURCES = [("https://law.moj.gov.tw/LawClass/LawAll.aspx?pcode=N0030001", "勞動基準法")]


@pytest.fixture
def use_fake():
    def _install(fake):
        researcher = GroundedResearcher(client=fake, retry_backoff=0)
        app.dependency_overrides[get_researcher] = lambda: researcher
        return fake
    yield _install
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_regulations_endpoint(client, use_fake):
    use_fake(FakeGemini(gemini_response(REG_JSON, SOURCES)))
    r = client.post("/regulations", json={
        "query": "加班費",
        "country": "Taiwan",
        "language": "正體中文",
        "filters": {"competentAuthority": "勞動部", "dateFrom": "", "dateTo": ""},
    })
    assert r.status_code == 200
    body = r.json()
    assert body["regulations"][0]["regulationName"] == "勞動基準法"
    assert body["regulations"][0]["lastAmendedDate"] == "2020-06-10"
    assert body["rawText"] == REG_JSON
    assert body["sources"] == [{"uri": SOURCES[0][0], "title": "勞動基準法"}]


def test_regulations_unparseable_returns_null(client, use_fake):
    use_fake(FakeGemini(gemini_response("Sorry, nothing found.")))
    body = client.post("/regulations", json={"query": "x", "country": "Japan", "language": "English"}).json()
    assert body == {"regulations": None, "rawText": "Sorry, nothing found.", "sources": []}


def test_policies_endpoint(client, use_fake):
    use_fake(FakeGemini(gemini_response('[{"policyName": "P", "keyPoints": ["a"]}]', SOURCES)))
    body = client.post("/policies", json={
        "query": "AI",
        "country": "Singapore",
        "language": "English",
        "filters": {"includeKeywords": "AI", "excludeKeywords": ""},
    }).json()
    assert body["policies"] == [{
        "policyName": "P", "issuingAgency": "", "publicationDate": "",
        "status": "", "summary": "", "keyPoints": ["a"],
    }]


def test_blank_query_rejected(client, use_fake):
    fake = use_fake(FakeGemini())
    r = client.post("/regulations", json={"query": "   ", "country": "Japan", "language": "English"})
    assert r.status_code == 422
    assert fake.calls == []


def test_bad_date_filter_rejected(client, use_fake):
    use_fake(FakeGemini())
    r = client.post("/policies", json={"query": "x", "country": "Japan", "language": "English",
                                       "filters": {"dateFrom": "not-a-date"}})
    assert r.status_code == 422


def test_provider_failure_maps_to_502(client, use_fake):
    use_fake(FakeGemini(ValueError("boom")))
    r = client.post("/regulations", json={"query": "x", "country": "Japan", "language": "English"})
    assert r.status_code == 502
    assert r.json() == {"detail": "與 AI 服務通訊時發生錯誤。"}


def test_missing_key_maps_to_503(client, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    app.dependency_overrides[get_researcher] = lambda: GroundedResearcher()
    try:
        r = client.post("/regulations", json={"query": "x", "country": "Japan", "language": "English"})
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 503
    assert "API 金鑰" in r.json()["detail"]


def test_translate_endpoint(client, use_fake):
    use_fake(FakeGemini(responder=lambda contents: gemini_response("translated")))
    r = client.post("/translate", json={"texts": ["第24條", ""], "targetLanguage": "English"})
    assert r.json() == {"translations": ["translated", ""]}


def test_translate_failure_maps_to_502(client, use_fake):
    use_fake(FakeGemini(ValueError("nope")))
    r = client.post("/translate", json={"texts": ["x"], "targetLanguage": "English"})
    assert r.status_code == 502
    assert r.json()["detail"] == "翻譯時發生錯誤。"


def test_searches_are_audited(client, use_fake):
    use_fake(FakeGemini(gemini_response(REG_JSON, SOURCES), gemini_response("not json")))
    client.post("/regulations", json={"query": "加班費", "country": "Taiwan", "language": "正體中文"})
    client.post("/regulations", json={"query": "休假", "country": "Taiwan", "language": "English"})

    items = client.get("/audit/recent", params={"limit": 5}).json()["items"]
    assert [i["query"] for i in items] == ["休假", "加班費"]
    assert items[0]["parsed"] is False
    assert items[1]["parsed"] is True
    assert items[1]["record_count"] == 1
    assert items[1]["source_count"] == 1
    assert items[1]["kind"] == "law"


@pytest.mark.parametrize("limit", [0, -1, 201])
def test_audit_limit_is_bounded(client, limit):
    assert client.get("/audit/recent", params={"limit": limit}).status_code == 422
