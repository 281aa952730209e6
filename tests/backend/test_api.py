from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from backend.app.deps import get_service
from backend.app.main import app
from inbox_triage.errors import ProviderAuthError, ProviderError


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_list_labels(client, fake_gmail) -> None:
    fake_gmail.add_user_label("Clients", color="#e8f0fe")

    resp = client.get("/api/labels")

    assert resp.status_code == 200
    clients = [lbl for lbl in resp.json()["labels"] if lbl["name"] == "Clients"]
    assert clients[0]["color_tag"] == "bg-blue-100"
    assert clients[0]["provider_label_id"] == "Label_1"


def test_create_label_validates_color(client, fake_gmail) -> None:
    assert client.post("/api/labels", json={"name": "Clients", "color_tag": "bg-pink-900"}).status_code == 400
    assert client.post("/api/labels", json={"name": "  "}).status_code == 400

    resp = client.post("/api/labels", json={"name": "Clients", "color_tag": "bg-green-100"})

    assert resp.status_code == 200
    assert resp.json()["label"]["color_tag"] == "bg-green-100"
    assert fake_gmail.created_labels == ["Clients"]


def test_list_messages_only_returns_candidates(client, raw_message) -> None:
    raw_message("m1", subject="Invoice")
    raw_message("m2", label_ids=["INBOX", "CATEGORY_SOCIAL"])

    resp = client.get("/api/messages")

    assert resp.status_code == 200
    messages = resp.json()["messages"]
    assert [m["id"] for m in messages] == ["m1"]
    assert messages[0]["subject"] == "Invoice"
    assert client.get("/api/messages", params={"max_results": 0}).status_code == 400


def test_change_label(client, fake_gmail, raw_message) -> None:
    raw_message("m1")

    assert client.post("/api/messages/m1/labels", json={"action": "add", "label_id": "Label_9"}).status_code == 200
    assert client.post("/api/messages/m1/labels", json={"action": "remove", "label_id": "Label_9"}).status_code == 200
    assert client.post("/api/messages/m1/labels", json={"action": "toggle", "label_id": "Label_9"}).status_code == 422

    assert fake_gmail.modify_calls == [("m1", ["Label_9"], []), ("m1", [], ["Label_9"])]


def test_execute_reply_action(client, fake_gmail, raw_message) -> None:
    raw_message("m1", subject="Invoice")

    missing = client.post("/api/messages/m1/actions", json={"action": "REPLY"})
    resp = client.post("/api/messages/m1/actions", json={"action": "REPLY", "reply_body": "Attached."})

    assert missing.status_code == 400
    assert resp.status_code == 200
    assert len(fake_gmail.drafts) == 1
    assert fake_gmail.drafts[0][1]["Subject"] == "Re: Invoice"


def test_unsupported_action_is_rejected(client, raw_message) -> None:
    raw_message("m1")
    assert client.post("/api/messages/m1/actions", json={"action": "FORWARD"}).status_code == 400


def test_automation_crud_persists_rules(client, settings) -> None:
    created = client.post(
        "/api/automations",
        json={
            "label": {"name": "Needs Action", "provider_label_id": "Label_4"},
            "action": "REPLY",
            "template": "Hi {sender_name}",
        },
    )
    assert created.status_code == 200
    rule_id = created.json()["automation"]["id"]

    listed = client.get("/api/automations").json()["automations"]
    assert [r["id"] for r in listed] == [rule_id]
    stored = json.loads(settings.rules_path.read_text(encoding="utf-8"))
    assert stored["automations"][0]["template"] == "Hi {sender_name}"

    toggled = client.post(f"/api/automations/{rule_id}/toggle")
    assert toggled.json()["automation"]["enabled"] is False

    assert client.delete(f"/api/automations/{rule_id}").status_code == 200
    assert client.delete(f"/api/automations/{rule_id}").status_code == 404
    assert json.loads(settings.rules_path.read_text(encoding="utf-8")) == {"automations": []}


def test_replace_automations(client) -> None:
    resp = client.put(
        "/api/automations",
        json={
            "automations": [
                {"id": "a", "label": {"provider_label_id": "Label_4", "name": "Needs Action"}, "action": "REPLY"},
                {"id": "b", "label": {"provider_label_id": "Label_4", "name": "Needs Action"}, "action": "MARK_IMPORTANT"},
            ]
        },
    )

    assert resp.status_code == 200
    assert [r["id"] for r in resp.json()["automations"]] == ["b"]
    assert client.put("/api/automations", json={"automations": [{"label": {}, "action": "REPLY"}]}).status_code == 400


def test_monitor_run_and_status(client, raw_message) -> None:
    raw_message("m1", subject="Can you confirm the date?")

    resp = client.post("/api/monitor/run")

    assert resp.status_code == 200
    assert resp.json()["summary"]["processed"] == 1
    status = client.get("/api/monitor/status").json()["status"]
    assert status["state"] in {"running", "done", "idle"}


def test_auth_errors_ask_for_reconnect(client, fake_gmail) -> None:
    fake_gmail.fail_list = ProviderAuthError("token revoked", status=401)

    resp = client.get("/api/messages")

    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "reconnect_required"


def test_provider_errors_map_to_bad_gateway(client, fake_gmail) -> None:
    fake_gmail.fail_list = ProviderError("Gmail error 503", status=503)
    assert client.get("/api/messages").status_code == 502


def test_rule_with_client_side_label_id_fires(client, service, fake_gmail, raw_message, account) -> None:
    label_id = fake_gmail.add_user_label("Needs Action")
    resp = client.post(
        "/api/automations",
        json={
            "label": {"id": "1", "name": "Needs Action", "provider_label_id": label_id},
            "action": "MARK_IMPORTANT",
        },
    )
    assert resp.status_code == 200
    raw_message("m1", subject="Can you confirm?")

    report = service.processor.process(service.ingestion.fetch_full_message("m1"), account)

    assert report.labels_applied == ["Needs Action"]
    assert report.automations_fired == [resp.json()["automation"]["id"]]
