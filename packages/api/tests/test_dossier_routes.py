# This project was developed with assistance from AI tools.
"""Tests for the dossier intake HTTP routes."""

import pytest
from fastapi.testclient import TestClient

from intake.main import app
from intake.routes.dossiers import get_registry
from intake.services.intake import SessionRegistry

BASE = "/api/dossiers/42"
PHONE = "+31612345678"


@pytest.fixture
def registry(store, crm, storage, dispatcher, scheduler):
    return SessionRegistry(
        store=store,
        crm=crm,
        storage=storage,
        dispatcher=dispatcher,
        scheduler=scheduler,
    )


@pytest.fixture
def client(registry):
    app.dependency_overrides[get_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def opened(client):
    response = client.post(f"{BASE}/session", json={"phone_number": PHONE})
    assert response.status_code == 200
    return response.json()


def _primary_id(view):
    return view["dossier"]["parties"][0]["local_id"]


def _fill_primary(client, local_id, status="employee"):
    response = client.patch(
        f"{BASE}/parties/{local_id}",
        json={"name": "Jan de Vries", "email": "jan@example.com", "employment_status": status},
    )
    assert response.status_code == 200


def _pdf(name="scan.pdf", data=b"%PDF-1.4 fake"):
    return ("files", (name, data, "application/pdf"))


# ---------------------------------------------------------------------------
# Session and bid
# ---------------------------------------------------------------------------


def test_health():
    response = TestClient(app).get("/health/")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_open_session_returns_fresh_dossier(opened):
    assert opened["dossier"]["id"] == 42
    assert opened["save_state"] == "idle"
    assert opened["progress"]["percent"] == 0
    [primary] = opened["dossier"]["parties"]
    assert primary["role"] == "primary_tenant"
    assert primary["phone"] == PHONE


def test_open_session_without_body(client):
    response = client.post(f"{BASE}/session")
    assert response.status_code == 200


def test_unknown_dossier_is_problem_details(client):
    """Routes on a dossier without an open session return RFC 7807 404s."""
    response = client.get("/api/dossiers/7")
    assert response.status_code == 404
    body = response.json()
    assert body["title"] == "Not Found"
    assert body["status"] == 404
    assert "7" in body["detail"]


def test_update_bid_scores_thirty(client, opened):
    response = client.patch(
        f"{BASE}/bid", json={"bid_amount": 1500, "start_date": "2026-12-01"}
    )
    assert response.status_code == 200
    assert response.json()["progress"]["percent"] == 30


def test_negative_bid_is_rejected(client, opened):
    response = client.patch(f"{BASE}/bid", json={"bid_amount": -5})
    assert response.status_code == 422
    assert response.json()["title"] == "Unprocessable Entity"


def test_request_id_is_echoed(client):
    response = client.get("/api/dossiers/7", headers={"x-request-id": "req-123"})
    assert response.json()["request_id"] == "req-123"


# ---------------------------------------------------------------------------
# Roster and form
# ---------------------------------------------------------------------------


def test_add_party_and_limit(client, opened):
    for _ in range(2):
        response = client.post(f"{BASE}/parties", json={"role": "co_tenant"})
        assert response.status_code == 201
    response = client.post(f"{BASE}/parties", json={"role": "co_tenant"})
    assert response.status_code == 422
    assert "co_tenant" in response.json()["detail"]


def test_primary_tenant_cannot_be_deleted(client, opened):
    response = client.delete(f"{BASE}/parties/{_primary_id(opened)}")
    assert response.status_code == 422


def test_delete_added_party(client, opened):
    local_id = client.post(f"{BASE}/parties", json={"role": "guarantor"}).json()["local_id"]
    response = client.delete(f"{BASE}/parties/{local_id}")
    assert response.status_code == 204
    parties = client.get(BASE).json()["dossier"]["parties"]
    assert [p["role"] for p in parties] == ["primary_tenant"]


def test_update_party_validation_error(client, opened):
    response = client.patch(
        f"{BASE}/parties/{_primary_id(opened)}", json={"email": "not-an-email"}
    )
    assert response.status_code == 422
    assert "email" in response.json()["detail"]


def test_update_unknown_party(client, opened):
    response = client.patch(f"{BASE}/parties/ghost", json={"name": "Nobody"})
    assert response.status_code == 404


def test_materialize_endpoint(client, opened):
    local_id = _primary_id(opened)
    response = client.post(f"{BASE}/parties/{local_id}/materialize")
    assert response.status_code == 422

    _fill_primary(client, local_id)
    response = client.post(f"{BASE}/parties/{local_id}/materialize")
    assert response.status_code == 200
    assert response.json()["durable_id"] is not None


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def test_upload_single_document(client, opened):
    local_id = _primary_id(opened)
    _fill_primary(client, local_id)

    response = client.post(f"{BASE}/parties/{local_id}/documents/id_document", files=[_pdf()])
    assert response.status_code == 201
    body = response.json()
    assert body["durable_id"] is not None
    assert body["slot"]["kind"] == "single"
    assert body["slot"]["status"] == "received"
    assert body["uploaded"][0]["filename"] == "scan.pdf"


def test_upload_rejects_unsupported_type(client, opened):
    local_id = _primary_id(opened)
    _fill_primary(client, local_id)
    response = client.post(
        f"{BASE}/parties/{local_id}/documents/id_document",
        files=[("files", ("notes.txt", b"hello", "text/plain"))],
    )
    assert response.status_code == 422
    assert "Unsupported file type" in response.json()["detail"]


def test_upload_for_unknown_document_type(client, storage, opened):
    local_id = _primary_id(opened)
    _fill_primary(client, local_id)
    response = client.post(f"{BASE}/parties/{local_id}/documents/{'x' * 60}", files=[_pdf()])
    assert response.status_code == 422
    assert "not one of" in response.json()["detail"]
    assert storage.uploads == []


def test_upload_without_files(client, opened):
    local_id = _primary_id(opened)
    _fill_primary(client, local_id)
    response = client.post(f"{BASE}/parties/{local_id}/documents/id_document")
    assert response.status_code == 422


def test_partial_failure_then_retry_with_carried_over(client, storage, opened):
    local_id = _primary_id(opened)
    _fill_primary(client, local_id)
    storage.fail_on.add(b"feb")
    url = f"{BASE}/parties/{local_id}/documents/payslips"

    response = client.post(
        url, files=[_pdf("jan.pdf", b"jan"), _pdf("feb.pdf", b"feb"), _pdf("mar.pdf", b"mar")]
    )
    assert response.status_code == 502
    body = response.json()
    assert body["filename"] == "feb.pdf"
    assert body["index"] == 1
    [jan] = body["uploaded"]

    storage.fail_on.clear()
    response = client.post(
        url,
        files=[_pdf("feb.pdf", b"feb"), _pdf("mar.pdf", b"mar")],
        data={"carried_over": [str(jan["id"])]},
    )
    assert response.status_code == 201
    slot = response.json()["slot"]
    assert slot["kind"] == "multi"
    assert [e["filename"] for e in slot["evidence"]] == ["jan.pdf", "feb.pdf", "mar.pdf"]


def test_remove_document(client, opened):
    local_id = _primary_id(opened)
    _fill_primary(client, local_id)
    url = f"{BASE}/parties/{local_id}/documents/payslips"
    client.post(url, files=[_pdf("jan.pdf", b"jan"), _pdf("feb.pdf", b"feb")])

    assert client.delete(url, params={"index": 0}).status_code == 204
    assert client.delete(url, params={"index": 5}).status_code == 404
    assert client.delete(f"{BASE}/parties/{local_id}/documents/id_document").status_code == 404


# ---------------------------------------------------------------------------
# Submission and requirements
# ---------------------------------------------------------------------------


def test_submit_requires_bid(client, opened):
    response = client.post(f"{BASE}/submit")
    assert response.status_code == 422


def test_submit(client, opened, dispatcher):
    client.patch(f"{BASE}/bid", json={"bid_amount": 1500, "start_date": "2026-12-01"})
    response = client.post(f"{BASE}/submit")
    assert response.status_code == 200
    assert response.json()["dossier"]["is_complete"] is False
    assert any(kind.value == "application_submit" for kind, _ in dispatcher.events)


def test_submit_when_database_is_down(client, opened, store):
    client.patch(f"{BASE}/bid", json={"bid_amount": 1500, "start_date": "2026-12-01"})
    store.fail_saves = True
    response = client.post(f"{BASE}/submit")
    assert response.status_code == 503
    assert response.json()["title"] == "Service Unavailable"


def test_requirements_per_party(client, opened):
    local_id = _primary_id(opened)
    _fill_primary(client, local_id, status="student")
    response = client.get(f"{BASE}/requirements")
    assert response.status_code == 200
    [entry] = response.json()
    assert entry["local_id"] == local_id
    doc_types = [r["doc_type"] for r in entry["requirements"]]
    assert doc_types[:2] == ["id_document", "proof_of_enrollment"]
