import asyncio
import json

import httpx
import pytest

from gateway import client
from gateway.client import ResearcherError
from gateway.models import Regulation, Tab
from gateway.state import MSG_TRANSLATE_FAILED, CardTranslation, run_search, translate_card


def _mock(monkeypatch, handler):
    seen = []

    def recording(request: httpx.Request):
        seen.append(request)
        return handler(request)

    monkeypatch.setattr(client, "TRANSPORT", httpx.MockTransport(recording))
    monkeypatch.setattr(client, "RESEARCHER_URL", "http://researcher.test")
    return seen


def test_search_regulations_posts_payload(monkeypatch):
    body = {"regulations": [], "rawText": "[]", "sources": []}
    seen = _mock(monkeypatch, lambda req: httpx.Response(200, json=body))

    out = asyncio.run(client.search_regulations("吸菸", "Taiwan", "正體中文", {"competentAuthority": "衛生福利部"}))

    assert out == body
    req = seen[0]
    assert req.method == "POST"
    assert str(req.url) == "http://researcher.test/regulations"
    assert json.loads(req.content) == {
        "query": "吸菸",
        "country": "Taiwan",
        "language": "正體中文",
        "filters": {"competentAuthority": "衛生福利部"},
    }


def test_search_policies_defaults_filters(monkeypatch):
    seen = _mock(monkeypatch, lambda req: httpx.Response(200, json={"policies": None, "rawText": "", "sources": []}))
    asyncio.run(client.search_policies("q", "Japan", "English"))
    assert seen[0].url.path == "/policies"
    assert json.loads(seen[0].content)["filters"] == {}


def test_translate(monkeypatch):
    seen = _mock(monkeypatch, lambda req: httpx.Response(200, json={"translations": ["a", ""]}))
    assert asyncio.run(client.translate(["x", ""], "English")) == ["a", ""]
    assert json.loads(seen[0].content) == {"texts": ["x", ""], "targetLanguage": "English"}


def test_recent_audit_passes_limit(monkeypatch):
    seen = _mock(monkeypatch, lambda req: httpx.Response(200, json={"items": [{"query": "q"}]}))
    assert asyncio.run(client.recent_audit(3)) == [{"query": "q"}]
    assert seen[0].url.params["limit"] == "3"


def test_error_detail_is_surfaced(monkeypatch):
    _mock(monkeypatch, lambda req: httpx.Response(502, json={"detail": "與 AI 服務通訊時發生錯誤。"}))
    with pytest.raises(ResearcherError) as ei:
        asyncio.run(client.search_regulations("q", "Japan", "English"))
    assert ei.value.message == "與 AI 服務通訊時發生錯誤。"
    assert ei.value.status_code == 502


def test_validation_error_has_no_user_message(monkeypatch):
    _mock(monkeypatch, lambda req: httpx.Response(422, json={"detail": [{"msg": "query must not be blank"}]}))
    with pytest.raises(ResearcherError) as ei:
        asyncio.run(client.search_policies(" ", "Japan", "English"))
    assert ei.value.message is None
    assert ei.value.status_code == 422


def test_non_json_error_body(monkeypatch):
    _mock(monkeypatch, lambda req: httpx.Response(500, text="Internal Server Error"))
    with pytest.raises(ResearcherError) as ei:
        asyncio.run(client.health())
    assert ei.value.message is None


def test_transport_error(monkeypatch):
    def refuse(req):
        raise httpx.ConnectError("connection refused", request=req)

    _mock(monkeypatch, refuse)
    with pytest.raises(ResearcherError) as ei:
        asyncio.run(client.translate(["x"], "English"))
    assert ei.value.message is None
    assert ei.value.status_code is None


def test_non_json_success_body(monkeypatch):
    _mock(monkeypatch, lambda req: httpx.Response(200, text="<html>proxy</html>"))
    with pytest.raises(ResearcherError) as ei:
        asyncio.run(client.search_regulations("q", "Japan", "English"))
    assert ei.value.message is None
    assert ei.value.status_code == 200


def test_non_json_body_lands_in_error_state(monkeypatch):
    _mock(monkeypatch, lambda req: httpx.Response(200, text="<html>proxy</html>"))

    with pytest.raises(ResearcherError):
        asyncio.run(run_search(Tab.LAW, "q", "Japan", "English"))

    card = CardTranslation()
    asyncio.run(translate_card(card, Regulation(content="x"), "English", client.translate))
    assert card.error == MSG_TRANSLATE_FAILED
    assert card.translating is False
