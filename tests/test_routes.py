"""
HTTP-level tests driving the FastAPI app with fake inference and enhancement
"""
import base64
import json
import time

import pytest
from fastapi.testclient import TestClient

from conftest import VALID_LISTING, FakeEnhancer, FakeGateway, listing_events, make_jpeg
from main import create_app
from models.pipeline_errors import EmptyRequest, InvalidCredential
from models.stream_events import StreamEvent


class RouteGateway(FakeGateway):
    def __init__(self, events=None, result=None):
        super().__init__(events)
        self.result = result

    async def analyze(self, images, credential):
        self.requests.append((list(images), credential))
        return dict(self.result)


@pytest.fixture
def gateway():
    return RouteGateway(listing_events(), result=VALID_LISTING)


@pytest.fixture
def client(tmp_path, monkeypatch, gateway):
    monkeypatch.setenv("DATABASE_DIR", str(tmp_path / "db"))
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("ANALYSIS_SERVER_URL", raising=False)
    app = create_app(gateway=gateway, enhancer=FakeEnhancer())
    with TestClient(app) as test_client:
        yield test_client


def _b64(data):
    return base64.b64encode(data).decode("utf-8")


def _sse_payloads(text):
    return [json.loads(line[len("data: "):]) for line in text.splitlines() if line.startswith("data: ")]


def _saved_originals(tmp_path):
    return sorted((tmp_path / "db" / "images").glob("original_*"))


def _wait_for_enhancement(client, attempts=100):
    for _ in range(attempts):
        session = client.get("/session").json()
        if not session["any_enhancing"]:
            return session
        time.sleep(0.02)
    raise AssertionError("enhancement did not finish")


def test_health(client):
    body = client.get("/health").json()
    assert body == {"ok": True, "db_initialized": True, "gateway_available": True}


def test_credential_lifecycle(client):
    assert client.get("/settings/credential").json() == {"configured": False}

    blank = client.put("/settings/credential", json={"credential": "   "})
    assert blank.status_code == 400
    assert blank.json()["detail"] == "Please enter a valid API key"

    assert client.put("/settings/credential", json={"credential": "sk-live"}).json() == {"configured": True}
    assert client.get("/settings/credential").json() == {"configured": True}
    assert client.delete("/settings/credential").json() == {"configured": False}


def test_unknown_draft_is_404(client):
    assert client.get("/drafts").json() == []
    assert client.get("/drafts/nope").status_code == 404
    assert client.delete("/drafts/nope").json() == {"id": "nope", "deleted": False}


def test_enhance_requires_image(client):
    assert client.post("/api/enhance", json={}).status_code == 400
    assert client.post("/api/enhance", json={"imageBase64": "@@not-base64@@"}).status_code == 400


def test_enhance_accepts_data_url(client):
    raw = make_jpeg()
    resp = client.post("/api/enhance", json={"imageBase64": "data:image/jpeg;base64," + _b64(raw)})

    assert resp.status_code == 200
    body = resp.json()
    assert base64.b64decode(body["enhancedBase64"]) == b"enhanced-" + raw
    assert base64.b64decode(body["convertedOriginal"]) == raw


def test_analyze_requires_images_and_key(client, gateway):
    resp = client.post("/api/analyze", json={"images": [_b64(b"img")]})
    assert resp.status_code == 400
    assert resp.json()["detail"] == EmptyRequest.default_message

    resp = client.post("/api/analyze-stream", json={"apiKey": "sk-test"})
    assert resp.status_code == 400
    assert gateway.requests == []


def test_analyze_merges_pricing(client, gateway):
    resp = client.post("/api/analyze", json={"imageBase64": _b64(b"img"), "apiKey": "sk-test"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["brand"] == "Nike"
    assert body["suggestedPrice"] == body["maxProfitPrice"]
    assert 2 <= body["quickSellPrice"] <= body["maxProfitPrice"]
    assert gateway.requests == [([b"img"], "sk-test")]


def test_analyze_stream_emits_deltas_and_priced_result(client):
    resp = client.post("/api/analyze-stream", json={"images": [_b64(b"a"), _b64(b"b")], "apiKey": "sk-test"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    payloads = _sse_payloads(resp.text)
    deltas = [p["delta"] for p in payloads if "delta" in p]
    assert json.loads("".join(deltas)) == VALID_LISTING
    final = payloads[-1]
    assert final["done"] is True
    assert final["result"]["brand"] == "Nike"
    assert final["result"]["suggestedPrice"] == final["result"]["maxProfitPrice"]


def test_analyze_stream_early_failure_is_json_error(client, gateway):
    gateway.events = [StreamEvent.failed(InvalidCredential())]

    resp = client.post("/api/analyze-stream", json={"images": [_b64(b"a")], "apiKey": "sk-bad"})

    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid API key"}


def test_session_analysis_requires_credential(client):
    client.post("/session/images", files={"file": ("one.jpg", make_jpeg(), "image/jpeg")})
    _wait_for_enhancement(client)

    resp = client.post("/session/analyze")

    assert resp.status_code == 400
    assert client.get("/session").json()["last_error"] == "Please set your OpenAI API key in Settings first."


def test_session_flow_produces_draft(client, gateway, tmp_path):
    client.put("/settings/credential", json={"credential": "sk-session"})
    raw = make_jpeg()

    uploaded = client.post("/session/images", files={"file": ("one.jpg", raw, "image/jpeg")})
    assert uploaded.status_code == 200

    session = _wait_for_enhancement(client)
    assert session["stage"] == "reviewing"
    assert session["images"][0]["enhancement_state"] == "succeeded"

    resp = client.post("/session/analyze")
    assert resp.status_code == 200
    draft = resp.json()
    assert draft["brand"] == "Nike"
    assert draft["primary_image_ref"] == session["images"][0]["enhanced_display_ref"]
    assert gateway.requests[-1] == ([raw], "sk-session")

    assert client.get(f"/drafts/{draft['id']}").json()["id"] == draft["id"]
    assert client.get("/session").json()["stage"] == "resulted"

    # no new photos until the session is reset
    originals = _saved_originals(tmp_path)
    blocked = client.post("/session/images", files={"file": ("two.jpg", raw, "image/jpeg")})
    assert blocked.status_code == 409
    assert _saved_originals(tmp_path) == originals

    assert client.post("/session/reset").json()["stage"] == "capture"


def test_session_rejects_sixth_photo(client, tmp_path):
    for i in range(5):
        assert client.post("/session/images", files={"file": (f"{i}.jpg", make_jpeg(), "image/jpeg")}).status_code == 200
    before = _saved_originals(tmp_path)
    assert len(before) == 5

    resp = client.post("/session/images", files={"file": ("6.jpg", make_jpeg(), "image/jpeg")})

    assert resp.status_code == 409
    assert resp.json()["detail"] == "Maximum 5 photos allowed."
    assert len(client.get("/session").json()["images"]) == 5
    assert _saved_originals(tmp_path) == before


def test_session_rejects_unsupported_upload(client):
    resp = client.post("/session/images", files={"file": ("notes.txt", b"hello", "text/plain")})
    assert resp.status_code == 415
