"""
API tests: exercise every endpoint through FastAPI's TestClient.
"""
import json
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

import threat_graph.exporter as exporter_module
from threat_graph.main import app


# ── Synthetic Datasets ────────────────────────────────────────────────


def _events():
    events = [
        {"id": f"SUS_{i:02d}", "source_account": f"ACC_ATTACKER_{i % 3}",
         "dest_account": "ACC_VICTIM", "amount": 500.0, "timestamp": 1700000000000 + i,
         "suspicious": True, "severity": "high", "status": "blocked",
         "attack_type": "credential_stuffing"}
        for i in range(6)
    ]
    events += [
        {"id": f"OK_{i:02d}", "source_account": "ACC_PAYROLL",
         "dest_account": f"ACC_EMPLOYEE_{i}", "amount": 2000.0,
         "timestamp": 1700000100000 + i, "suspicious": False, "status": "success"}
        for i in range(4)
    ]
    return events


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


class TestService:
    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "healthy"
        assert body["graph_event_cap"] == 30

    def test_request_id_echoed(self, client):
        r = client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert r.headers["X-Request-ID"] == "abc-123"

    def test_request_id_generated(self, client):
        assert client.get("/health").headers.get("X-Request-ID")


class TestGraphEndpoint:
    def test_graph(self, client):
        r = client.post("/graph", json={"events": _events()})
        assert r.status_code == 200
        body = r.json()
        assert body["compromised_account_id"] == "ACC_VICTIM"
        assert body["nodes"][0]["id"] == "ACC_VICTIM"
        assert body["nodes"][0]["position"] == {"x": 400.0, "y": 300.0}
        assert body["nodes"][0]["tier"] == "compromised"
        assert len(body["nodes"]) == 9
        assert len(body["edges"]) == 7
        assert all(e["is_suspicious"] for e in body["edges"] if e["target"] == "ACC_VICTIM")

    def test_graph_empty(self, client):
        r = client.post("/graph", json={"events": []})
        assert r.status_code == 200
        assert r.json()["nodes"] == []
        assert r.json()["compromised_account_id"] is None

    def test_graph_rejects_non_object_events(self, client):
        r = client.post("/graph", json={"events": ["not-an-event"]})
        assert r.status_code == 422


class TestExportEndpoint:
    def test_current_before_export(self, client):
        assert client.get("/export/current").status_code == 404

    def test_export_attachment(self, client):
        r = client.post("/export", json={"events": _events()})
        assert r.status_code == 200
        disposition = r.headers["content-disposition"]
        assert disposition.startswith("attachment;")
        assert 'filename="threat-data-' in disposition

        body = r.json()
        assert body["totalEvents"] == 10
        assert body["suspiciousEvents"] == 6
        assert body["networkGraph"]["compromisedAccount"] == "ACC_VICTIM"
        assert len(body["accounts"]) == 9

    def test_current_after_export(self, client):
        client.post("/export", json={"events": _events()})
        client.post("/export", json={"events": _events()[:2]})
        r = client.get("/export/current")
        assert r.status_code == 200
        assert r.json()["totalEvents"] == 2

    def test_attachment_named_after_export_date(self, client, monkeypatch):
        exported_at = datetime(2025, 1, 2, 8, 30, tzinfo=timezone.utc)
        monkeypatch.setattr(exporter_module, "time", SimpleNamespace(time=exported_at.timestamp))
        first = client.post("/export", json={"events": _events()})
        current = client.get("/export/current")
        for r in (first, current):
            assert 'filename="threat-data-2025-01-02.json"' in r.headers["content-disposition"]


class TestUploadEndpoint:
    def test_upload_json(self, client):
        payload = json.dumps(_events()).encode()
        r = client.post("/upload", files={"file": ("events.json", payload, "application/json")})
        assert r.status_code == 200
        body = r.json()
        assert set(body) == {"network_graph", "export", "parse_stats"}
        assert body["parse_stats"]["valid_rows"] == 10
        assert body["export"]["totalEvents"] == 10
        assert body["network_graph"]["compromised_account_id"] == "ACC_VICTIM"
        assert client.get("/export/current").status_code == 200

    def test_upload_csv(self, client):
        csv = (
            "id,source_account,dest_account,amount,suspicious,severity\n"
            "T1,ACC_A,ACC_B,10,true,critical\n"
            "T2,ACC_C,ACC_B,20,true,low\n"
        )
        r = client.post("/upload", files={"file": ("events.csv", csv.encode(), "text/csv")})
        assert r.status_code == 200
        nodes = {n["id"]: n for n in r.json()["network_graph"]["nodes"]}
        assert nodes["ACC_B"]["is_compromised"] is True
        assert nodes["ACC_B"]["threat_level"] == 10

    def test_upload_csv_geo_columns(self, client):
        csv = (
            "id,source_account,dest_account,source_country,source_city,source_lat,source_lng,dest_city\n"
            "T1,ACC_A,ACC_B,US,New York,40.71,-74.0,London\n"
        )
        r = client.post("/upload", files={"file": ("events.csv", csv.encode(), "text/csv")})
        assert r.status_code == 200
        accounts = {a["id"]: a for a in r.json()["export"]["accounts"]}
        location = accounts["ACC_A"]["location"]
        assert (location["country"], location["city"]) == ("US", "New York")
        assert location["lat"] == pytest.approx(40.71)
        assert location["lng"] == pytest.approx(-74.0)
        assert accounts["ACC_B"]["location"] == {"city": "London"}

    def test_upload_unsupported_type(self, client):
        r = client.post("/upload", files={"file": ("events.txt", b"hello", "text/plain")})
        assert r.status_code == 400

    def test_upload_unparseable(self, client):
        r = client.post("/upload", files={"file": ("events.json", b"[]", "application/json")})
        assert r.status_code == 422
