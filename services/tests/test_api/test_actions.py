"""Tests for batch action, report and holiday endpoints."""

import pytest
from fastapi.testclient import TestClient
from fakes import CHANNELS, PLUS_ROLES, FakeRosterSource, FakeSender

from rosterdesk.auth.sessions import Session
from rosterdesk.config import settings


class TestAuthentication:
    """Every action endpoint requires a session."""

    @pytest.mark.parametrize(
        ("path", "body"),
        [
            ("/api/batch-action", {"targetIds": ["1001"], "type": "plus", "reason": "r"}),
            ("/api/mia-action", {"targetIds": ["1001"], "type": "plus", "reason": "r"}),
            ("/api/send-report", {"type": "Patrol", "description": "d"}),
            ("/api/holiday", {"endDate": "2025-04-01", "reason": "r"}),
        ],
    )
    def test_anonymous_rejected(
        self, client: TestClient, source: FakeRosterSource, path: str, body: dict
    ):
        response = client.post(path, json=body)

        assert response.status_code == 401
        assert response.json() == {"error": "Not logged in"}
        assert source.calls == []


class TestBatchAction:
    """Test POST /api/batch-action."""

    @pytest.fixture(autouse=True)
    def _login(self, login_as, staff_session: Session):
        login_as(staff_session)

    def test_partial_success(self, client: TestClient, source: FakeRosterSource):
        response = client.post(
            "/api/batch-action",
            json={"targetIds": ["1001", "4040"], "type": "plus", "reason": "good work"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "OK: 1"
        assert data["successCount"] == 1
        assert data["errors"] == ["Not found: 4040"]
        assert data["failures"] == [
            {"targetId": "4040", "code": "member_not_found", "message": "Not found: 4040"}
        ]
        assert PLUS_ROLES[0] in source.members["1001"].role_ids

    def test_full_success_has_null_errors(self, client: TestClient):
        response = client.post(
            "/api/batch-action",
            json={"targetIds": ["1001", "1002"], "type": "pochwala", "reason": "r"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["successCount"] == 2
        assert data["errors"] is None
        assert data["failures"] == []

    def test_all_failed_is_400(self, client: TestClient):
        response = client.post(
            "/api/mia-action",
            json={"targetIds": ["4040"], "type": "minus", "reason": "r"},
        )

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Failed"
        assert data["errors"] == ["Not found: 4040"]
        assert data["failures"][0]["code"] == "member_not_found"

    @pytest.mark.parametrize(
        "body",
        [
            {"targetIds": [], "type": "plus", "reason": "r"},
            {"targetIds": ["1001"], "type": "plus"},
            {"targetIds": ["1001"], "reason": "r"},
            {"targetIds": ["1001"], "type": "bonus", "reason": "r"},
            {"type": "plus", "reason": "r"},
        ],
    )
    def test_invalid_request(self, client: TestClient, source: FakeRosterSource, body: dict):
        response = client.post("/api/batch-action", json=body)

        assert response.status_code == 400
        assert "error" in response.json()
        assert source.calls == []

    def test_malformed_body(self, client: TestClient):
        response = client.post("/api/batch-action", json={"targetIds": "1001"})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing data"}

    def test_ceiling_reported_per_target(self, client: TestClient, source: FakeRosterSource):
        for _ in range(3):
            client.post(
                "/api/batch-action",
                json={"targetIds": ["1001"], "type": "plus", "reason": "r"},
            )

        response = client.post(
            "/api/batch-action",
            json={"targetIds": ["1001"], "type": "plus", "reason": "r"},
        )

        assert response.status_code == 400
        assert response.json()["errors"] == ["Anna - tier ceiling reached"]
        assert source.members["1001"].role_ids & set(PLUS_ROLES) == {PLUS_ROLES[2]}


class TestStaffRequirement:
    def test_non_staff_rejected_when_required(
        self,
        client: TestClient,
        login_as,
        staff_session: Session,
        monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setattr(settings.auth, "require_staff_for_actions", True)
        staff_session.is_high_command = False
        login_as(staff_session)

        response = client.post(
            "/api/batch-action",
            json={"targetIds": ["1001"], "type": "plus", "reason": "r"},
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Staff access required"}

    def test_staff_allowed_when_required(
        self,
        client: TestClient,
        login_as,
        staff_session: Session,
        monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setattr(settings.auth, "require_staff_for_actions", True)
        login_as(staff_session)

        response = client.post(
            "/api/batch-action",
            json={"targetIds": ["1001"], "type": "plus", "reason": "r"},
        )

        assert response.status_code == 200


class TestReportsAndHoliday:
    @pytest.fixture(autouse=True)
    def _login(self, login_as, staff_session: Session):
        login_as(staff_session)

    def test_send_report(self, client: TestClient, sender: FakeSender):
        response = client.post(
            "/api/send-report", json={"type": "Patrol", "description": "Quiet shift"}
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        channel_id, payload = sender.messages[0]
        assert channel_id == CHANNELS["report"]
        assert payload["embeds"][0]["title"] == "🚑 Raport - Patrol"

    def test_report_without_description(self, client: TestClient, sender: FakeSender):
        response = client.post("/api/send-report", json={"type": "Patrol"})

        assert response.status_code == 400
        assert response.json() == {"error": "No description"}
        assert sender.messages == []

    def test_holiday(self, client: TestClient, sender: FakeSender):
        response = client.post("/api/holiday", json={"endDate": "2025-04-01"})

        assert response.status_code == 200
        channel_id, payload = sender.messages[0]
        assert channel_id == CHANNELS["holiday"]
        fields = payload["embeds"][0]["fields"]
        assert fields[1]["value"] == "2025-04-01"
        assert fields[3]["value"] == "N/A"

    def test_delivery_failure_still_succeeds(self, client: TestClient, sender: FakeSender):
        sender.fail = True

        response = client.post("/api/holiday", json={"endDate": "2025-04-01", "reason": "r"})

        assert response.status_code == 200
