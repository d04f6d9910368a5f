"""Tests for the batch action processor."""

import pytest
from fakes import (
    CHANNELS,
    MEDIC,
    PLUS_ROLES,
    REPRIMAND_ROLES,
    SUSPENSION_ROLE,
    WARNING_ROLE,
    FakeRosterSource,
    FakeSender,
    make_member,
)

from rosterdesk.errors import InvalidRequest
from rosterdesk.roster.models import Actor
from rosterdesk.services.audit_service import AuditNotifier
from rosterdesk.services.batch_actions import BatchActionProcessor, parse_action
from rosterdesk.services.role_ladder import ActionKind, FailureCode

ACTOR = Actor(id="5001", username="Komendant")


class TestParseAction:
    """Test request validation."""

    def test_valid(self):
        action = parse_action(["1", "2"], "plus", " late to shift ", ACTOR)
        assert action.kind is ActionKind.PLUS
        assert action.target_ids == ("1", "2")
        assert action.reason == "late to shift"

    def test_repeated_targets_kept_in_order(self):
        action = parse_action(["2", "1", "2"], "minus", "reason", ACTOR)
        assert action.target_ids == ("2", "1", "2")

    @pytest.mark.parametrize(
        ("targets", "kind", "reason"),
        [
            ([], "plus", "reason"),
            (None, "plus", "reason"),
            (["1"], "plus", ""),
            (["1"], "plus", "   "),
            (["1"], None, "reason"),
            (["1"], "bonus", "reason"),
            ([""], "plus", "reason"),
        ],
    )
    def test_invalid(self, targets, kind, reason):
        with pytest.raises(InvalidRequest):
            parse_action(targets, kind, reason, ACTOR)


class TestLadderActions:
    """Test ladder progression through the processor."""

    @pytest.mark.asyncio
    async def test_first_plus(self, processor: BatchActionProcessor, source: FakeRosterSource):
        result = await processor.apply(["1001"], "plus", "good work", ACTOR)

        assert result.ok
        assert result.success_count == 1
        assert result.successes[0].description == "Plus x1"
        assert PLUS_ROLES[0] in source.members["1001"].role_ids
        assert source.calls == [("add", "1001", PLUS_ROLES[0])]

    @pytest.mark.asyncio
    async def test_advance_removes_before_adding(
        self, processor: BatchActionProcessor, source: FakeRosterSource
    ):
        result = await processor.apply(["1002"], "plus", "good work", ACTOR)

        assert result.successes[0].tier_label == "2"
        assert source.calls == [
            ("remove", "1002", PLUS_ROLES[0]),
            ("add", "1002", PLUS_ROLES[1]),
        ]
        assert source.members["1002"].role_ids & set(PLUS_ROLES) == {PLUS_ROLES[1]}

    @pytest.mark.asyncio
    async def test_repeated_batches_reach_ceiling(
        self, processor: BatchActionProcessor, source: FakeRosterSource
    ):
        for expected in ("Nagana x1", "Nagana x2"):
            result = await processor.apply(["1001"], "nagana", "reason", ACTOR)
            assert result.successes[0].description == expected

        result = await processor.apply(["1001"], "nagana", "reason", ACTOR)

        assert not result.ok
        assert result.failures[0].code is FailureCode.TIER_CEILING_REACHED
        assert result.error_messages == ["Anna - tier ceiling reached"]
        assert source.members["1001"].role_ids & set(REPRIMAND_ROLES) == {REPRIMAND_ROLES[1]}

    @pytest.mark.asyncio
    async def test_audit_reason_sent_with_mutation(
        self, processor: BatchActionProcessor, source: FakeRosterSource
    ):
        await processor.apply(["1001"], "plus", "good work", ACTOR)
        assert source.reasons == ["Plus (Komendant): good work"]


class TestMarkerActions:
    @pytest.mark.asyncio
    async def test_held_marker_succeeds_without_change(
        self, processor: BatchActionProcessor, source: FakeRosterSource, sender: FakeSender
    ):
        source.members["1001"] = make_member("1001", MEDIC, WARNING_ROLE, name="Anna")

        result = await processor.apply(["1001"], "upomnienie", "reason", ACTOR)

        assert result.ok
        assert result.successes[0].changed is False
        assert source.calls == []
        # Still announced
        assert len(sender.messages) == 1

    @pytest.mark.asyncio
    async def test_suspension_always_applied(
        self, processor: BatchActionProcessor, source: FakeRosterSource
    ):
        source.members["1001"] = make_member("1001", MEDIC, SUSPENSION_ROLE, name="Anna")

        result = await processor.apply(["1001"], "zawieszenie", "reason", ACTOR)

        assert result.ok
        assert source.calls == [("add", "1001", SUSPENSION_ROLE)]


class TestSummons:
    @pytest.mark.asyncio
    async def test_summons_pings_target_without_role_change(
        self, processor: BatchActionProcessor, source: FakeRosterSource, sender: FakeSender
    ):
        result = await processor.apply(["1001"], "wezwanie", "come to the office", ACTOR)

        assert result.ok
        assert source.calls == []
        channel_id, payload = sender.messages[0]
        assert channel_id == CHANNELS["wezwanie"]
        assert payload["content"] == "<@1001>"
        assert payload["embeds"][0]["title"] == "📢 Wezwanie do Biura"


class TestPartialFailure:
    """Test per-target failure isolation."""

    @pytest.mark.asyncio
    async def test_unknown_target_does_not_abort_batch(
        self, processor: BatchActionProcessor, source: FakeRosterSource
    ):
        result = await processor.apply(["1001", "4040", "1002"], "plus", "reason", ACTOR)

        assert result.ok
        assert result.success_count == 2
        assert [f.target_id for f in result.failures] == ["4040"]
        assert result.failures[0].code is FailureCode.MEMBER_NOT_FOUND
        assert result.error_messages == ["Not found: 4040"]

    @pytest.mark.asyncio
    async def test_upstream_lookup_error(
        self, processor: BatchActionProcessor, source: FakeRosterSource
    ):
        source.fail_lookup = {"1001"}

        result = await processor.apply(["1001"], "plus", "reason", ACTOR)

        assert not result.ok
        assert result.failures[0].code is FailureCode.UPSTREAM_ERROR
        assert result.error_messages == ["1001: Discord GET returned 502"]

    @pytest.mark.asyncio
    async def test_all_targets_failed(self, processor: BatchActionProcessor):
        result = await processor.apply(["4040", "4041"], "minus", "reason", ACTOR)

        assert not result.ok
        assert result.error_messages == ["Not found: 4040", "Not found: 4041"]

    @pytest.mark.asyncio
    async def test_repeated_target_yields_one_outcome_per_entry(
        self, processor: BatchActionProcessor
    ):
        result = await processor.apply(["9999", "9999", "8888"], "plus", "reason", ACTOR)

        assert not result.ok
        assert [f.target_id for f in result.failures] == ["9999", "9999", "8888"]
        assert result.error_messages == ["Not found: 9999", "Not found: 9999", "Not found: 8888"]

    @pytest.mark.asyncio
    async def test_repeated_target_advances_ladder_per_entry(
        self, processor: BatchActionProcessor, source: FakeRosterSource
    ):
        result = await processor.apply(["1001", "1001"], "plus", "reason", ACTOR)

        assert result.success_count == 2
        assert [s.description for s in result.successes] == ["Plus x1", "Plus x2"]
        assert source.members["1001"].role_ids & set(PLUS_ROLES) == {PLUS_ROLES[1]}

    @pytest.mark.asyncio
    async def test_incomplete_transition_reported_as_failure(
        self, processor: BatchActionProcessor, source: FakeRosterSource, sender: FakeSender
    ):
        """Add fails after remove: member left untiered, target reported failed."""
        source.fail_add_roles = {PLUS_ROLES[1]}

        result = await processor.apply(["1002"], "plus", "reason", ACTOR)

        assert not result.ok
        assert result.failures[0].code is FailureCode.UPSTREAM_ERROR
        assert source.members["1002"].role_ids & set(PLUS_ROLES) == set()
        assert sender.messages == []

    @pytest.mark.asyncio
    async def test_unconfigured_category(
        self, source: FakeRosterSource, notifier: AuditNotifier, rules
    ):
        rules = {k: v for k, v in rules.items() if k is not ActionKind.MINUS}
        processor = BatchActionProcessor(source, notifier, rules)

        result = await processor.apply(["1001"], "minus", "reason", ACTOR)

        assert result.failures[0].code is FailureCode.CATEGORY_NOT_CONFIGURED
        assert result.error_messages == ["Anna - category not configured"]


class TestNotifications:
    """Test audit announcements after successful mutations."""

    @pytest.mark.asyncio
    async def test_ladder_embed_posted_to_category_channel(
        self, processor: BatchActionProcessor, sender: FakeSender
    ):
        await processor.apply(["1001"], "plus", "good work", ACTOR)

        channel_id, payload = sender.messages[0]
        embed = payload["embeds"][0]
        assert channel_id == CHANNELS["plus"]
        assert embed["title"] == "✅ Plus"
        assert embed["fields"][1]["value"] == "Plus x1"
        assert embed["fields"][3]["value"] == "good work"
        assert embed["fields"][4]["value"] == "<@5001>"
        assert "content" not in payload

    @pytest.mark.asyncio
    async def test_notification_failure_keeps_success(
        self, source: FakeRosterSource, rules
    ):
        processor = BatchActionProcessor(
            source, AuditNotifier(FakeSender(fail=True), CHANNELS), rules
        )

        result = await processor.apply(["1001"], "plus", "reason", ACTOR)

        assert result.ok
        assert PLUS_ROLES[0] in source.members["1001"].role_ids

    @pytest.mark.asyncio
    async def test_missing_channel_keeps_success(self, source: FakeRosterSource, rules):
        processor = BatchActionProcessor(source, AuditNotifier(FakeSender(), {}), rules)

        result = await processor.apply(["1001"], "pochwala", "reason", ACTOR)

        assert result.ok
