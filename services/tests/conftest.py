"""Pytest configuration and fixtures."""

from datetime import UTC, datetime

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from fakes import (
    CHANNELS,
    CIVILIAN,
    COMMENDATION_ROLE,
    MEDIC,
    MINUS_ROLES,
    PARAMEDIC,
    PLUS_ROLES,
    REPRIMAND_ROLES,
    SUSPENSION_ROLE,
    WARNING_ROLE,
    FakeRosterSource,
    FakeSender,
    make_member,
)

from rosterdesk.api.app import create_application
from rosterdesk.api.dependencies import get_optional_session
from rosterdesk.auth.sessions import Session
from rosterdesk.config import ActionsConfig
from rosterdesk.services.audit_service import AuditNotifier, EmbedStyle
from rosterdesk.services.batch_actions import BatchActionProcessor
from rosterdesk.services.role_ladder import build_action_table
from rosterdesk.services.roster_cache import RosterCache


@pytest.fixture
def actions_config() -> ActionsConfig:
    return ActionsConfig(
        ladders={"plus": PLUS_ROLES, "minus": MINUS_ROLES, "nagana": REPRIMAND_ROLES},
        markers={
            "upomnienie": WARNING_ROLE,
            "pochwala": COMMENDATION_ROLE,
            "zawieszenie": SUSPENSION_ROLE,
        },
    )


@pytest.fixture
def rules(actions_config: ActionsConfig):
    return build_action_table(actions_config)


@pytest.fixture
def source() -> FakeRosterSource:
    return FakeRosterSource(
        members=[
            make_member("1001", MEDIC, name="Anna"),
            make_member("1002", PARAMEDIC, PLUS_ROLES[0], name="Bartek"),
            make_member("1003", CIVILIAN, name="Cezary"),
        ]
    )


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def notifier(sender: FakeSender) -> AuditNotifier:
    return AuditNotifier(sender, CHANNELS, EmbedStyle())


@pytest.fixture
def processor(source: FakeRosterSource, notifier: AuditNotifier, rules) -> BatchActionProcessor:
    return BatchActionProcessor(
        source,
        notifier,
        rules,
        clock=lambda: datetime(2025, 3, 1, 12, 0, tzinfo=UTC),
    )


@pytest.fixture
def roster_cache(source: FakeRosterSource) -> RosterCache:
    return RosterCache(source, eligible_role_ids=[MEDIC, PARAMEDIC])


@pytest.fixture
def staff_session() -> Session:
    return Session(
        user_id="5001",
        username="Komendant",
        avatar_url=None,
        created_at="2025-03-01T12:00:00+00:00",
        expires_at="2025-03-02T12:00:00+00:00",
        last_active_at="2025-03-01T12:00:00+00:00",
        roles=[{"id": "777", "name": "Zarząd"}],
        is_high_command=True,
        token="session-token",
    )


@pytest.fixture
def app(
    source: FakeRosterSource,
    roster_cache: RosterCache,
    notifier: AuditNotifier,
    processor: BatchActionProcessor,
) -> FastAPI:
    """Create FastAPI application for testing.

    The lifespan does not run under a plain TestClient, so services are
    placed on ``app.state`` directly. Requests are anonymous unless a test
    logs in with ``login_as``.
    """
    application = create_application()
    application.state.roster_source = source
    application.state.roster_cache = roster_cache
    application.state.notifier = notifier
    application.state.processor = processor

    async def anonymous() -> None:
        return None

    application.dependency_overrides[get_optional_session] = anonymous
    return application


@pytest.fixture
def login_as(app: FastAPI):
    """Make every request carry the given session."""

    def _login(session: Session) -> None:
        async def current() -> Session:
            return session

        app.dependency_overrides[get_optional_session] = current

    return _login


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create sync test client."""
    return TestClient(app)

