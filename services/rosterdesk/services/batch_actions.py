"""Apply one dashboard action to many members.

Targets are processed one after another and independently: a failure on
one target is recorded and the loop moves on, nothing already applied is
rolled back. The batch as a whole counts as successful when at least one
target succeeded.

Per target:
    1. fetch the member (current roles come from Discord, not the cache)
    2. ask the role ladder engine what to change
    3. remove roles, then add the new one
    4. announce the change in the audit channel (best effort)
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from rosterdesk.errors import InvalidRequest, MemberNotFound, UpstreamError
from rosterdesk.logging_config import get_logger
from rosterdesk.roster.models import Actor, Member
from rosterdesk.roster.source import RosterSource

from .audit_service import AuditNotifier, build_action_embed, log_audit_event
from .role_ladder import (
    ActionKind,
    ActionRule,
    FailureCode,
    Inapplicable,
    RoleLadder,
    RoleTransition,
    compute_next_state,
    describe,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class Action:
    """One validated batch request."""

    kind: ActionKind
    target_ids: tuple[str, ...]
    reason: str
    actor: Actor
    requested_at: datetime


@dataclass(frozen=True)
class ActionSuccess:
    target_id: str
    display_name: str
    description: str
    tier_label: str | None = None
    # False when the member already held a marker role
    changed: bool = True


@dataclass(frozen=True)
class ActionFailure:
    target_id: str
    code: FailureCode
    message: str


ActionOutcome = ActionSuccess | ActionFailure


@dataclass
class BatchResult:
    """Aggregated per-target outcomes of one batch."""

    action: Action
    successes: list[ActionSuccess] = field(default_factory=list)
    failures: list[ActionFailure] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.successes)

    @property
    def ok(self) -> bool:
        return self.success_count > 0

    @property
    def error_messages(self) -> list[str]:
        return [f.message for f in self.failures]

    def record(self, outcome: ActionOutcome) -> None:
        if isinstance(outcome, ActionSuccess):
            self.successes.append(outcome)
        else:
            self.failures.append(outcome)


def parse_action(
    target_ids: Sequence[str] | None,
    kind: str | None,
    reason: str | None,
    actor: Actor,
    requested_at: datetime | None = None,
) -> Action:
    """Validate raw batch input.

    Raises:
        InvalidRequest: empty targets, blank reason or unknown action type.
    """
    if not target_ids or not isinstance(target_ids, (list, tuple)):
        raise InvalidRequest("At least one target is required")
    if any(not isinstance(t, str) or not t.strip() for t in target_ids):
        raise InvalidRequest("Target ids must be non-empty strings")
    if not reason or not reason.strip():
        raise InvalidRequest("A reason is required")
    try:
        action_kind = ActionKind(kind)
    except ValueError:
        raise InvalidRequest(f"Unknown action type: {kind}") from None

    # A repeated id is applied once per entry
    return Action(
        kind=action_kind,
        target_ids=tuple(t.strip() for t in target_ids),
        reason=reason.strip(),
        actor=actor,
        requested_at=requested_at or datetime.now(UTC),
    )


class BatchActionProcessor:
    """Runs an ``Action`` against every target and aggregates the outcomes."""

    def __init__(
        self,
        source: RosterSource,
        notifier: AuditNotifier,
        rules: Mapping[ActionKind, ActionRule],
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._notifier = notifier
        self._rules = dict(rules)
        self._clock = clock or (lambda: datetime.now(UTC))

    def rule_for(self, kind: ActionKind) -> ActionRule | None:
        return self._rules.get(kind)

    async def apply(
        self,
        target_ids: Sequence[str] | None,
        kind: str | None,
        reason: str | None,
        actor: Actor,
    ) -> BatchResult:
        """Validate the request, then apply it to each target in order."""
        action = parse_action(target_ids, kind, reason, actor, requested_at=self._clock())
        return await self.run(action)

    async def run(self, action: Action) -> BatchResult:
        result = BatchResult(action=action)
        rule = self.rule_for(action.kind)

        logger.info(
            "Batch action started",
            action=action.kind.value,
            actor_id=action.actor.id,
            targets=len(action.target_ids),
        )

        for target_id in action.target_ids:
            try:
                outcome = await self._apply_to(action, rule, target_id)
            except Exception as e:
                logger.exception("Unexpected error applying action", target_id=target_id)
                outcome = ActionFailure(
                    target_id, FailureCode.INTERNAL_ERROR, f"{target_id}: {e}"
                )
            result.record(outcome)

        logger.info(
            "Batch action finished",
            action=action.kind.value,
            actor_id=action.actor.id,
            succeeded=result.success_count,
            failed=len(result.failures),
        )
        return result

    async def _apply_to(
        self, action: Action, rule: ActionRule | None, target_id: str
    ) -> ActionOutcome:
        try:
            member = await self._source.fetch_member(target_id)
        except MemberNotFound:
            return ActionFailure(
                target_id, FailureCode.MEMBER_NOT_FOUND, f"Not found: {target_id}"
            )
        except UpstreamError as e:
            return ActionFailure(target_id, FailureCode.UPSTREAM_ERROR, f"{target_id}: {e}")

        if rule is None:
            return self._reject(
                action,
                target_id,
                member,
                Inapplicable(FailureCode.CATEGORY_NOT_CONFIGURED, "category not configured"),
            )
        decision = compute_next_state(member.role_ids, rule)
        if isinstance(decision, Inapplicable):
            return self._reject(action, target_id, member, decision)

        try:
            await self._mutate(action, rule, member, decision)
        except UpstreamError as e:
            log_audit_event(
                event_type="action",
                action=action.kind.value,
                actor_id=action.actor.id,
                target_id=target_id,
                success=False,
                error_message=str(e),
            )
            return ActionFailure(target_id, FailureCode.UPSTREAM_ERROR, f"{target_id}: {e}")

        description = describe(rule, decision)
        await self._announce(action, rule, member, decision, description)
        log_audit_event(
            event_type="action",
            action=action.kind.value,
            actor_id=action.actor.id,
            target_id=target_id,
            details={"description": description, "reason": action.reason},
        )
        return ActionSuccess(
            target_id=target_id,
            display_name=member.display_name,
            description=description,
            tier_label=decision.tier_label,
            changed=decision.mutates,
        )

    def _reject(
        self, action: Action, target_id: str, member: Member, decision: Inapplicable
    ) -> ActionFailure:
        log_audit_event(
            event_type="action",
            action=action.kind.value,
            actor_id=action.actor.id,
            target_id=target_id,
            success=False,
            error_message=decision.reason,
        )
        return ActionFailure(
            target_id, decision.code, f"{member.display_name} - {decision.reason}"
        )

    async def _mutate(
        self, action: Action, rule: ActionRule, member: Member, transition: RoleTransition
    ) -> None:
        """Remove then add, so two ladder roles are never held at once.

        The calls are not atomic; if the add fails after a removal the
        member is left untiered and the next application starts from tier 1.
        """
        actor_name = action.actor.username or action.actor.id
        audit_reason = f"{rule.label} ({actor_name}): {action.reason}"

        removed: list[str] = []
        for role_id in sorted(transition.to_remove):
            await self._source.remove_role(member.id, role_id, reason=audit_reason)
            removed.append(role_id)

        if transition.to_add is None:
            return
        try:
            await self._source.add_role(member.id, transition.to_add, reason=audit_reason)
        except UpstreamError:
            if removed:
                logger.error(
                    "ladder_transition_incomplete",
                    member_id=member.id,
                    action=action.kind.value,
                    removed=removed,
                    not_added=transition.to_add,
                )
            raise

    async def _announce(
        self,
        action: Action,
        rule: ActionRule,
        member: Member,
        transition: RoleTransition,
        description: str,
    ) -> None:
        embed = build_action_embed(
            kind=action.kind,
            label=rule.label,
            member=member,
            reason=action.reason,
            actor=action.actor,
            when=action.requested_at,
            style=self._notifier.style,
            description=description if isinstance(rule, RoleLadder) else None,
        )
        mention = f"<@{member.id}>" if transition.mention_target else None
        await self._notifier.notify(action.kind.value, embed, mention=mention)
