"""Role progression rules for dashboard actions.

Each action type maps to exactly one rule:

    RoleLadder  - ordered, mutually exclusive tiers (plus, minus, nagana).
                  Each application moves the member one tier up; the top
                  tier is a hard ceiling.
    MarkerRole  - a single binary role (upomnienie, pochwala, zawieszenie).
    NotifyOnly  - no role change, only an audit message (wezwanie).

Everything here is pure: given the roles a member holds, decide what to
add and remove. Performing the change is the batch processor's job.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from rosterdesk.config import ActionsConfig
from rosterdesk.errors import ConfigurationError
from rosterdesk.logging_config import get_logger

logger = get_logger(__name__)


class ActionKind(StrEnum):
    """Action types accepted by the batch endpoint (wire values)."""

    PLUS = "plus"
    MINUS = "minus"
    REPRIMAND = "nagana"
    WARNING = "upomnienie"
    COMMENDATION = "pochwala"
    SUSPENSION = "zawieszenie"
    SUMMONS = "wezwanie"


DEFAULT_LABELS: dict[ActionKind, str] = {
    ActionKind.PLUS: "Plus",
    ActionKind.MINUS: "Minus",
    ActionKind.REPRIMAND: "Nagana",
    ActionKind.WARNING: "Upomnienie",
    ActionKind.COMMENDATION: "Pochwała",
    ActionKind.SUSPENSION: "Zawieszenie",
    ActionKind.SUMMONS: "Wezwanie",
}

LADDER_KINDS = frozenset({ActionKind.PLUS, ActionKind.MINUS, ActionKind.REPRIMAND})
MARKER_KINDS = frozenset({ActionKind.WARNING, ActionKind.COMMENDATION, ActionKind.SUSPENSION})


class FailureCode(StrEnum):
    """Why an action could not be applied to one target."""

    TIER_CEILING_REACHED = "tier_ceiling_reached"
    CATEGORY_NOT_CONFIGURED = "category_not_configured"
    MEMBER_NOT_FOUND = "member_not_found"
    UPSTREAM_ERROR = "upstream_error"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class RoleLadder:
    """Ordered role ids, index 0 = lowest tier."""

    kind: ActionKind
    role_ids: tuple[str, ...]
    label: str

    @property
    def ceiling(self) -> int:
        return len(self.role_ids) - 1


@dataclass(frozen=True)
class MarkerRole:
    """A single role whose presence is the whole state."""

    kind: ActionKind
    role_id: str
    label: str
    # Re-add even when held instead of treating it as a no-op
    always_apply: bool = False


@dataclass(frozen=True)
class NotifyOnly:
    """Audit message only; the target is pinged."""

    kind: ActionKind
    label: str


ActionRule = RoleLadder | MarkerRole | NotifyOnly


@dataclass(frozen=True)
class RoleTransition:
    """Decided role change for one member."""

    to_add: str | None = None
    to_remove: frozenset[str] = field(default_factory=frozenset)
    tier_label: str | None = None
    mention_target: bool = False

    @property
    def mutates(self) -> bool:
        return self.to_add is not None or bool(self.to_remove)


@dataclass(frozen=True)
class Inapplicable:
    """The action cannot be applied to this member."""

    code: FailureCode
    reason: str


def current_tier(ladder: RoleLadder, held: Iterable[str]) -> int:
    """Index of the highest ladder role held, or -1 when untiered."""
    held_set = frozenset(held)
    for index in range(len(ladder.role_ids) - 1, -1, -1):
        if ladder.role_ids[index] in held_set:
            return index
    return -1


def compute_next_state(
    current_roles: Iterable[str],
    rule: ActionRule | None,
) -> RoleTransition | Inapplicable:
    """Decide the role change an action causes for a member holding ``current_roles``."""
    if rule is None:
        return Inapplicable(FailureCode.CATEGORY_NOT_CONFIGURED, "category not configured")

    held = frozenset(current_roles)

    if isinstance(rule, NotifyOnly):
        return RoleTransition(mention_target=True)

    if isinstance(rule, MarkerRole):
        if not rule.role_id:
            return Inapplicable(FailureCode.CATEGORY_NOT_CONFIGURED, "category not configured")
        if rule.role_id in held and not rule.always_apply:
            return RoleTransition()
        return RoleTransition(to_add=rule.role_id)

    if not rule.role_ids:
        return Inapplicable(FailureCode.CATEGORY_NOT_CONFIGURED, "category not configured")

    tier = current_tier(rule, held)
    if tier >= rule.ceiling:
        return Inapplicable(FailureCode.TIER_CEILING_REACHED, "tier ceiling reached")

    target = tier + 1
    return RoleTransition(
        to_add=rule.role_ids[target],
        # Every held ladder role, in case an earlier transition left two
        to_remove=frozenset(rid for rid in rule.role_ids if rid in held),
        tier_label=str(target + 1),
    )


def describe(rule: ActionRule, transition: RoleTransition) -> str:
    """Human description used in responses and audit embeds ("Plus x2")."""
    if isinstance(rule, RoleLadder) and transition.tier_label:
        return f"{rule.label} x{transition.tier_label}"
    return rule.label


def build_action_table(config: ActionsConfig) -> dict[ActionKind, ActionRule]:
    """Turn the configured role tables into one rule per action kind.

    Kinds absent from the configuration are left out; lookups for them
    report ``CATEGORY_NOT_CONFIGURED``.
    """
    unknown = (set(config.ladders) | set(config.markers)) - {k.value for k in ActionKind}
    if unknown:
        raise ConfigurationError(f"Unknown action types in configuration: {sorted(unknown)}")

    def label(kind: ActionKind) -> str:
        return config.labels.get(kind.value, DEFAULT_LABELS[kind])

    table: dict[ActionKind, ActionRule] = {}
    for kind in ActionKind:
        if kind in LADDER_KINDS:
            if kind.value in config.markers:
                raise ConfigurationError(f"'{kind.value}' is a ladder action, not a marker")
            if kind.value in config.ladders:
                table[kind] = RoleLadder(
                    kind=kind,
                    role_ids=tuple(config.ladders[kind.value]),
                    label=label(kind),
                )
        elif kind in MARKER_KINDS:
            if kind.value in config.ladders:
                raise ConfigurationError(f"'{kind.value}' is a marker action, not a ladder")
            if kind.value in config.markers:
                table[kind] = MarkerRole(
                    kind=kind,
                    role_id=config.markers[kind.value],
                    label=label(kind),
                    always_apply=kind.value in config.always_apply_markers,
                )
        else:
            table[kind] = NotifyOnly(kind=kind, label=label(kind))
    return table


def validate_action_table(table: Mapping[ActionKind, ActionRule]) -> None:
    """Startup check of the rule table.

    A role id used by two categories (or twice in one ladder) is fatal.
    Missing or empty categories only produce a warning.
    """
    owners: dict[str, ActionKind] = {}
    for kind, rule in table.items():
        if isinstance(rule, RoleLadder):
            role_ids: tuple[str, ...] = rule.role_ids
            if len(set(role_ids)) != len(role_ids):
                raise ConfigurationError(f"Ladder '{kind.value}' repeats a role id")
        elif isinstance(rule, MarkerRole):
            role_ids = (rule.role_id,) if rule.role_id else ()
        else:
            continue

        if not role_ids:
            logger.warning("Action category has no roles configured", action=kind.value)
        for role_id in role_ids:
            if role_id in owners:
                raise ConfigurationError(
                    f"Role {role_id} is used by both '{owners[role_id].value}' "
                    f"and '{kind.value}'"
                )
            owners[role_id] = kind

    for kind in ActionKind:
        if kind not in table:
            logger.warning("Action category not configured", action=kind.value)
