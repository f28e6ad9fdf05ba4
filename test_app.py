import pytest
from fastapi.testclient import TestClient

from conftest import FakeQuerier, wire_example_com
import dns_audit.app as app_module
from dns_audit.app import app, get_engine
from dns_audit.config import AuditSettings
from dns_audit.engine import build_engine


@pytest.fixture
def client(hints_file):
    engine = build_engine(AuditSettings(root_zone=str(hints_file)), querier=wire_example_com(FakeQuerier()))
    engine.cache.record(engine.index.identities()[0], 12.0)
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_audit_one_domain(client):
    r = client.get("/audit", params={
        "domain": "Example.com.",
        "ns": ["ns1.example.com", "ns2.example.com"],
        "ip": ["93.184.216.34"],
    })

    assert r.status_code == 200
    body = r.json()
    assert body["domain_name"] == "example.com"
    assert body["success"] is True


def test_audit_one_domain_mismatch(client):
    r = client.get("/audit", params={"domain": "example.com", "ip": ["192.0.2.1"]})

    assert r.status_code == 200
    assert r.json()["flags"] == ["ResolveIpNotMatch"]


def test_invalid_domain_is_rejected(client):
    r = client.get("/audit", params={"domain": "not a domain"})

    assert r.status_code == 400


def test_audit_many_returns_failures_and_summary(client):
    payload = [
        {"domain_name": "example.com", "ns": ["ns1.example.com", "ns2.example.com"], "ip": None},
        {"domain_name": "example.com", "ns": None, "ip": ["192.0.2.1"]},
    ]

    r = client.post("/audit", json=payload)

    assert r.status_code == 200
    body = r.json()
    assert len(body["results"]) == 1
    assert body["summary"] == {"domains": 2, "passed": 1, "failed": 1, "flags": {"ResolveIpNotMatch": 1}}


def test_audit_many_all(client):
    r = client.post("/audit", params={"all": "true"}, json=[{"domain_name": "example.com"}])

    assert r.status_code == 200
    assert r.json()["results"][0]["success"] is True


def test_audit_many_bad_entry(client):
    r = client.post("/audit", json=[{"ns": ["ns1.example.com"]}])

    assert r.status_code == 400


def test_root_servers_best_first(client):
    r = client.get("/root-servers")

    assert r.status_code == 200
    body = r.json()
    assert body[0]["address"] == "198.41.0.4"
    assert body[0]["latency_ms"] == 12.0


def test_logging_is_configured_on_startup_only(monkeypatch, client):
    calls = []
    monkeypatch.setattr(app_module, "configure", calls.append)
    monkeypatch.setenv("DNS_AUDIT_VERBOSE", "2")

    TestClient(app)
    assert calls == []

    with TestClient(app) as c:
        assert c.get("/root-servers").status_code == 200
    assert calls == [2]
