"""Integration tests for inbound webhooks and the queued response path."""

import hashlib
import hmac
import json
import time

from fastapi.testclient import TestClient
from pydantic import SecretStr
import pytest

from approvalhub.container import build_services
from approvalhub.factory import create_app
from approvalhub.storage.memory import InMemoryApprovalStore

from conftest import APPROVERS

pytestmark = pytest.mark.integration


def _create_workflow(client: TestClient) -> str:
    response = client.post(
        "/api/v1/workflows",
        json={
            "type": "duplicate_resolution",
            "subject_ref": "ORD-2001",
            "requested_by": "packing.station.3",
            "payload": {"ct_number": "AB12CD34EF56GH", "existing_subject_ref": "ORD-1999"},
            "approver_groups": ["managers"],
        },
    )
    return response.json()["workflow_id"]


def _wait_for_status(client: TestClient, workflow_id: str, expected: str) -> dict:
    for _ in range(100):
        data = client.get(f"/api/v1/workflows/{workflow_id}").json()
        if data["status"] == expected:
            return data
        time.sleep(0.01)
    pytest.fail(f"workflow {workflow_id} never reached {expected}")


class TestMetaVerification:
    """Tests for the Meta webhook verification handshake."""

    def test_challenge_echoed(self, client: TestClient) -> None:
        """Test that the verification challenge is echoed."""
        response = client.get(
            "/api/v1/webhooks/meta",
            params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "1158201444"},
        )

        assert response.status_code == 200
        assert response.text == "1158201444"

    def test_wrong_token(self, client: TestClient) -> None:
        """Test verification with the wrong token."""
        response = client.get(
            "/api/v1/webhooks/meta",
            params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "1"},
        )

        assert response.status_code == 403
        assert response.json()["error"] == "verification_failed"


class TestMetaWebhook:
    """Tests for inbound Meta webhooks."""

    def test_button_reply_resolves_workflow(self, client, meta_reply, order_actions) -> None:
        """Test that a webhook button reply resolves the workflow."""
        workflow_id = _create_workflow(client)

        response = client.post("/api/v1/webhooks/meta", json=meta_reply(f"{workflow_id}:approve"))

        assert response.status_code == 200
        assert response.json() == {"status": "accepted"}
        data = _wait_for_status(client, workflow_id, "approved")
        assert data["resolved_by"] == APPROVERS[0]
        order_actions.allow_ct_duplicate.assert_awaited_once_with("ORD-2001", "AB12CD34EF56GH")

    def test_redelivery_is_harmless(self, client, meta_reply, services, order_actions) -> None:
        """Test that redelivered webhooks have no further effect."""
        workflow_id = _create_workflow(client)
        payload = meta_reply(f"{workflow_id}:reject")

        for _ in range(3):
            assert client.post("/api/v1/webhooks/meta", json=payload).status_code == 200

        _wait_for_status(client, workflow_id, "rejected")
        for _ in range(100):
            if services.queue.qsize() == 0:
                break
            time.sleep(0.01)
        order_actions.generate_new_ct_number.assert_awaited_once_with("ORD-2001")

    def test_status_callback_is_acknowledged(self, client: TestClient) -> None:
        """Test that delivery-status callbacks are acknowledged."""
        payload = {"entry": [{"changes": [{"value": {"statuses": [{"status": "read"}]}}]}]}

        assert client.post("/api/v1/webhooks/meta", json=payload).status_code == 200

    def test_invalid_json(self, client: TestClient) -> None:
        """Test that a non-JSON body is rejected."""
        response = client.post(
            "/api/v1/webhooks/meta", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400

    def test_queue_full(self, client, services, meta_reply, monkeypatch) -> None:
        """Test the 503 with Retry-After when the queue is full."""
        monkeypatch.setattr(services.queue, "offer", lambda payload: False)

        response = client.post("/api/v1/webhooks/meta", json=meta_reply("wf:approve"))

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"


class TestMetaSignature:
    """Tests for Meta webhook signature checks."""

    @pytest.fixture
    def signed_client(self, test_settings, registry, order_actions, clock):
        settings = test_settings.model_copy(update={"meta_app_secret": SecretStr("app-secret")})
        services = build_services(
            settings, registry=registry, store=InMemoryApprovalStore(), order_actions=order_actions, clock=clock
        )
        with TestClient(create_app(settings=settings, services=services)) as test_client:
            yield test_client

    def test_valid_signature(self, signed_client: TestClient, meta_reply) -> None:
        """Test that a correctly signed payload is accepted."""
        body = json.dumps(meta_reply("wf:approve")).encode()
        signature = hmac.new(b"app-secret", body, hashlib.sha256).hexdigest()

        response = signed_client.post(
            "/api/v1/webhooks/meta",
            content=body,
            headers={"Content-Type": "application/json", "X-Hub-Signature-256": f"sha256={signature}"},
        )

        assert response.status_code == 200

    def test_missing_signature(self, signed_client: TestClient, meta_reply) -> None:
        """Test that an unsigned payload is rejected when a secret is set."""
        response = signed_client.post("/api/v1/webhooks/meta", json=meta_reply("wf:approve"))

        assert response.status_code == 401


class TestN8NWebhook:
    """Tests for inbound n8n webhooks."""

    def test_numbered_reply_resolves_workflow(self, client: TestClient) -> None:
        """Test that an n8n numbered reply resolves the workflow."""
        workflow_id = _create_workflow(client)

        response = client.post(
            "/api/v1/webhooks/n8n",
            json={"from": APPROVERS[1], "text": "1", "workflowId": workflow_id},
        )

        assert response.status_code == 200
        assert _wait_for_status(client, workflow_id, "approved")["resolved_by"] == APPROVERS[1]

    def test_reply_id(self, client: TestClient) -> None:
        """Test that an n8n reply id resolves the workflow."""
        workflow_id = _create_workflow(client)

        client.post("/api/v1/webhooks/n8n", json={"replyId": f"{workflow_id}:reject", "from": APPROVERS[0]})

        _wait_for_status(client, workflow_id, "rejected")
