import pytest
from fastapi.testclient import TestClient

from webgen_eval.main import app
from webgen_eval.services import runs as run_service
from webgen_eval.storage import memory


@pytest.fixture(autouse=True)
def clean_store(monkeypatch):
    for name in ("WEBGEN_JUDGE", "WEBGEN_PARALLEL", "WEBGEN_EXTRA_SCENARIOS"):
        monkeypatch.delenv(name, raising=False)
    memory.clear()
    yield
    memory.clear()


@pytest.fixture
def client(monkeypatch, make_driver, quiet_probe):
    driver = make_driver()
    monkeypatch.setattr(run_service, "build_driver", lambda config: driver)
    monkeypatch.setattr(run_service, "build_probe", lambda **kwargs: quiet_probe)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    assert client.get("/").json() == {"status": "ok", "scenarios": 11}


def test_list_and_get_scenarios(client):
    everything = client.get("/scenarios").json()
    assert len(everything) == 11
    styles = client.get("/scenarios", params={"category": "style"}).json()
    assert [s["id"] for s in styles] == [
        "style-background-gradient",
        "style-dark-mode",
        "style-responsive-grid",
    ]

    hamburger = client.get("/scenarios/ui-hamburger-menu").json()
    assert hamburger["expected_elements"] == [".hamburger"]
    assert "/index.html" in hamburger["setup_files"]

    assert client.get("/scenarios/nope").status_code == 404
    assert client.get("/scenarios", params={"category": "backend"}).status_code == 422


def test_run_lifecycle(client):
    created = client.post("/runs", json={"scenario_ids": ["style-background-gradient", "ui-modal-dialog"]})
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "queued"
    assert body["scenario_ids"] == ["style-background-gradient", "ui-modal-dialog"]

    # TestClient runs background tasks before returning the response
    status = client.get(f"/runs/{body['id']}").json()
    assert status["status"] == "completed"

    report = client.get(f"/runs/{body['id']}/report").json()
    assert report["provider"] == "stub"
    assert report["summary"]["total"] == 2
    assert report["summary"]["failed"] == 2
    assert [r["id"] for r in report["results"]] == ["style-background-gradient", "ui-modal-dialog"]
    assert report["results"][0]["validationResults"]["missingPatterns"] == [
        "linear-gradient",
        "#ff8c42",
        "#e65100",
    ]

    trace = client.get(f"/runs/{body['id']}/trace").json()
    messages = [event["message"] for event in trace["events"]]
    assert messages[0] == "queued 2 scenarios"
    assert messages[-1] == "passed 0/2"


def test_quick_run_selects_smoke_subset(client):
    body = client.post("/runs", json={"quick": True}).json()
    assert body["scenario_ids"] == ["style-background-gradient", "ui-hamburger-menu", "js-countdown-timer"]


def test_unknown_scenario_is_rejected(client):
    response = client.post("/runs", json={"scenario_ids": ["nope"]})
    assert response.status_code == 404
    assert "nope" in response.json()["detail"]


def test_unknown_run_is_404(client):
    assert client.get("/runs/missing").status_code == 404
    assert client.get("/runs/missing/trace").status_code == 404
    assert client.get("/runs/missing/report").status_code == 404


def test_report_not_ready_is_409(client):
    pending = memory.create_run(["ui-modal-dialog"])
    assert client.get(f"/runs/{pending.id}/report").status_code == 409


def test_failed_suite_marks_run_failed(client, monkeypatch):
    def no_driver(config):
        raise RuntimeError("OPENROUTER_API_KEY is not configured")

    monkeypatch.setattr(run_service, "build_driver", no_driver)
    run_id = client.post("/runs", json={"scenario_ids": ["js-fetch-api"]}).json()["id"]

    status = client.get(f"/runs/{run_id}").json()
    assert status["status"] == "failed"
    assert "OPENROUTER_API_KEY" in status["error"]
    assert client.get(f"/runs/{run_id}/report").status_code == 409
