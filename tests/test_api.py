from fastapi.testclient import TestClient

import main
from gemini_client import GeminiServiceError, MissingCredentialError
from sessions import CHAT_FAILURE

ANALYSIS = """# Daily Market Snapshot
| Metric | Current Status | Verdict/Context |
| :--- | :--- | :--- |
| 🧠 Market Mood | 62 (Greed) | Stay disciplined |

## NVDA (Weight: 30%)
- **Action:** Hold
# Disclaimer
This is not financial advice. Disclaimer applies."""

ALLOCATION = {"fixed_income": 20, "mutual_funds": 30, "stocks": 30, "cash": 10, "crypto": 5, "other": 5}


class StubClient:
    def __init__(self, error=None, chunks=("Trim ", "slowly.")):
        self.api_key = "k"
        self.error = error
        self.chunks = chunks

    def require_key(self):
        return self.api_key

    async def generate(self, prompt):
        if self.error:
            raise self.error
        return ANALYSIS

    def open_chat(self, system_instruction):
        return self

    async def stream(self, text):
        for chunk in self.chunks:
            yield chunk


def client_with(stub):
    main.app.dependency_overrides[main.get_gemini_client] = lambda: stub
    return TestClient(main.app)


def teardown_function(function):
    main.app.dependency_overrides.clear()


def ready_session(client):
    sid = client.post("/sessions").json()["id"]
    resp = client.patch(
        f"/sessions/{sid}/portfolio",
        json={"current_allocation": ALLOCATION, "desired_allocation": ALLOCATION, "risk_tolerance": "Aggressive"},
    )
    assert resp.status_code == 200
    return sid


def test_health_and_options():
    client = TestClient(main.app)
    assert client.get("/test").json() == {"status": "ok"}
    opts = client.get("/options").json()
    assert "Speculative" in opts["risk_tolerance"]
    assert opts["defaults"]["watchlist"] == "SPY, QQQ, GLD, NVDA"
    assert opts["defaults"]["current_allocation"]["cash"] == 0


def test_stateless_validate():
    client = TestClient(main.app)
    payload = {
        "current_allocation": ALLOCATION,
        "desired_allocation": {**ALLOCATION, "cash": 11},
    }
    data = client.post("/portfolio/validate", json=payload).json()
    assert data["current_complete"] is True
    assert data["desired_complete"] is False
    assert data["submittable"] is False


def test_holding_edits():
    client = TestClient(main.app)
    sid = ready_session(client)
    resp = client.post(f"/sessions/{sid}/holdings/stock", json={"ticker": "nvda", "percentage": "30"})
    assert resp.status_code == 200
    assert resp.json()["portfolio"]["stock_holdings"] == [{"ticker": "NVDA", "percentage": 30.0}]
    assert resp.json()["validation"]["submittable"] is True

    dup = client.post(f"/sessions/{sid}/holdings/stock", json={"ticker": "NVDA", "percentage": 1})
    assert dup.status_code == 400
    assert dup.json()["detail"] == "Ticker already added."

    bad = client.post(f"/sessions/{sid}/holdings/etf", json={"ticker": "TOOLONG1", "percentage": 5})
    assert bad.status_code == 400

    removed = client.delete(f"/sessions/{sid}/holdings/stock/NVDA")
    assert removed.json()["portfolio"]["stock_holdings"] == []


def test_analysis_blocked_when_not_submittable():
    client = client_with(StubClient())
    sid = client.post("/sessions").json()["id"]
    resp = client.post(f"/sessions/{sid}/analysis")
    assert resp.status_code == 422
    assert resp.json()["detail"]["submittable"] is False


def test_analysis_report_and_chat():
    client = client_with(StubClient())
    sid = ready_session(client)
    resp = client.post(f"/sessions/{sid}/analysis")
    assert resp.status_code == 200
    report = resp.json()
    kinds = [n["type"] for n in report["nodes"]]
    assert kinds == ["heading", "table", "spacer", "heading", "bullet", "heading", "disclaimer"]
    assert report["nodes"][1]["header"] == ["Metric", "Current Status", "Verdict/Context"]
    assert len(report["chart"]) == 6

    assert client.get(f"/sessions/{sid}/report").json()["markdown"] == ANALYSIS
    assert client.patch(f"/sessions/{sid}/portfolio", json={"watchlist": "SPY"}).status_code == 409
    assert client.post(f"/sessions/{sid}/analysis").status_code == 409

    streamed = client.post(f"/sessions/{sid}/chat", json={"message": "Should I trim NVDA?"})
    assert streamed.status_code == 200
    assert streamed.text == "Trim slowly."

    history = client.get(f"/sessions/{sid}/chat").json()
    assert [m["role"] for m in history] == ["assistant", "user", "assistant"]
    assert history[-1]["nodes"] == [{"type": "line", "text": "Trim slowly."}]

    reset = client.post(f"/sessions/{sid}/reset").json()
    assert reset["step"] == "input"
    assert client.get(f"/sessions/{sid}/chat").status_code == 404


def test_analysis_errors_map_to_status_codes():
    client = client_with(StubClient(error=MissingCredentialError("API Key is missing.")))
    sid = ready_session(client)
    resp = client.post(f"/sessions/{sid}/analysis")
    assert resp.status_code == 503

    client = client_with(StubClient(error=GeminiServiceError("down")))
    resp = client.post(f"/sessions/{sid}/analysis")
    assert resp.status_code == 502
    assert client.get(f"/sessions/{sid}").json()["step"] == "input"


def test_chat_failure_message_is_streamed():
    class FailingStream(StubClient):
        async def stream(self, text):
            raise GeminiServiceError("gone")
            yield ""  # pragma: no cover

    client = client_with(FailingStream())
    sid = ready_session(client)
    client.post(f"/sessions/{sid}/analysis")
    resp = client.post(f"/sessions/{sid}/chat", json={"message": "hi"})
    assert resp.text == CHAT_FAILURE


def test_unknown_session():
    client = TestClient(main.app)
    assert client.get("/sessions/nope").status_code == 404
    assert client.delete("/sessions/nope").status_code == 404


def test_non_finite_percentages_rejected():
    client = TestClient(main.app)
    sid = client.post("/sessions").json()["id"]
    for raw in ("inf", "1e400", "nan"):
        resp = client.post(f"/sessions/{sid}/holdings/etf", json={"ticker": "VTI", "percentage": raw})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Enter a valid percentage."
    assert client.get(f"/sessions/{sid}").json()["portfolio"]["etf_holdings"] == []


def test_app_logger_follows_module_name():
    assert main.logger.name == main.__name__
