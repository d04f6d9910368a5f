"""Audit trail: Discord channel notifications and structured audit events.

Every applied action, report and holiday request is announced as an embed
in a destination-specific channel. Delivery is best effort: a failure is
logged and swallowed, never turned into an error for the caller.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from rosterdesk.roster.models import Actor, Member

from .role_ladder import ActionKind

logger = structlog.get_logger(__name__)

BLANK = "\u200b"

ACTION_STYLES: dict[ActionKind, tuple[int, str]] = {
    ActionKind.PLUS: (0x22C55E, "✅"),
    ActionKind.MINUS: (0xDC2626, "❌"),
    ActionKind.REPRIMAND: (0xEA580C, "🔴"),
    ActionKind.WARNING: (0xF59E0B, "⚠️"),
    ActionKind.COMMENDATION: (0x06B6D4, "🏅"),
    ActionKind.SUSPENSION: (0x7F1D1D, "🚫"),
    ActionKind.SUMMONS: (0xF59E0B, "📢"),
}
SUMMONS_TITLE = "Wezwanie do Biura"

REPORT_STYLES: dict[str, tuple[int, str]] = {
    "Patrol": (0x3B82F6, "🚑"),
    "Operacja": (0xEC4899, "🔬"),
    "Wezwanie": (0xF59E0B, "🚨"),
    "Zabezpieczenie": (0x10B981, "🛡️"),
}
DEFAULT_REPORT_STYLE = (0x3B82F6, "📝")

REPORT_DESTINATION = "report"
HOLIDAY_DESTINATION = "holiday"


class MessageSender(Protocol):
    async def create_message(self, channel_id: str, payload: dict[str, Any]) -> Any: ...


@dataclass(frozen=True)
class EmbedStyle:
    """Presentation shared by every audit embed."""

    footer_text: str = "MIA EMS"
    timezone: str = "Europe/Warsaw"

    def display_time(self, when: datetime) -> str:
        """Local wall-clock time as shown in the embed body (dd.mm.yyyy, HH:MM:SS)."""
        try:
            tz = ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError:
            tz = UTC
        return when.astimezone(tz).strftime("%d.%m.%Y, %H:%M:%S")


def _field(name: str, value: str, inline: bool = False) -> dict[str, Any]:
    return {"name": name, "value": value or BLANK, "inline": inline}


def _blank_field() -> dict[str, Any]:
    return _field(BLANK, BLANK, inline=True)


def _finish(embed: dict[str, Any], style: EmbedStyle, when: datetime) -> dict[str, Any]:
    embed["footer"] = {"text": style.footer_text}
    embed["timestamp"] = when.astimezone(UTC).isoformat()
    return embed


def build_action_embed(
    kind: ActionKind,
    label: str,
    member: Member,
    reason: str,
    actor: Actor,
    when: datetime,
    style: EmbedStyle,
    description: str | None = None,
) -> dict[str, Any]:
    """Embed announcing one applied action.

    ``description`` (e.g. "Plus x2") is shown for ladder actions only.
    """
    color, icon = ACTION_STYLES[kind]
    title = SUMMONS_TITLE if kind is ActionKind.SUMMONS else label
    target = f"<@{member.id}>\n{member.display_name}"

    embed: dict[str, Any] = {
        "color": color,
        "title": f"{icon} {title}",
        "thumbnail": {"url": member.avatar_url},
        "fields": [
            _field("👤", target, inline=True),
            _field("📊", description, inline=True) if description else _blank_field(),
            _blank_field(),
            _field("📝", reason),
            _field("🔰", actor.mention, inline=True),
            _field("🕐", style.display_time(when), inline=True),
        ],
    }
    return _finish(embed, style, when)


def build_report_embed(
    report_type: str,
    description: str,
    actor: Actor,
    when: datetime,
    style: EmbedStyle,
) -> dict[str, Any]:
    color, icon = REPORT_STYLES.get(report_type, DEFAULT_REPORT_STYLE)
    embed: dict[str, Any] = {
        "color": color,
        "title": f"{icon} Raport - {report_type}",
        "fields": [
            _field("👤", actor.mention, inline=True),
            _field("🏷️", report_type, inline=True),
            _blank_field(),
            _field("📋", description),
            _field("🕐", style.display_time(when), inline=True),
        ],
    }
    return _finish(embed, style, when)


def build_holiday_embed(
    end_date: str | None,
    reason: str | None,
    actor: Actor,
    when: datetime,
    style: EmbedStyle,
) -> dict[str, Any]:
    embed: dict[str, Any] = {
        "color": 0x22C55E,
        "title": "📅 Urlop",
        "fields": [
            _field("👤", actor.mention, inline=True),
            _field("📅", end_date or "N/A", inline=True),
            _blank_field(),
            _field("💬", reason or "N/A"),
            _field("🕐", style.display_time(when), inline=True),
        ],
    }
    return _finish(embed, style, when)


class AuditNotifier:
    """Posts audit embeds to the channel configured for each destination key."""

    def __init__(
        self,
        sender: MessageSender,
        channels: Mapping[str, str],
        style: EmbedStyle | None = None,
    ) -> None:
        self._sender = sender
        self._channels = dict(channels)
        self.style = style or EmbedStyle()

    async def notify(
        self,
        destination_key: str,
        embed: dict[str, Any],
        mention: str | None = None,
    ) -> bool:
        """Deliver ``embed`` to the destination's channel.

        Returns False when nothing was delivered. Never raises.
        """
        channel_id = self._channels.get(destination_key)
        if not channel_id:
            logger.warning("No audit channel configured", destination=destination_key)
            return False

        payload: dict[str, Any] = {"embeds": [embed]}
        if mention:
            payload["content"] = mention
            payload["allowed_mentions"] = {"parse": ["users"]}

        try:
            await self._sender.create_message(channel_id, payload)
        except Exception as e:
            logger.warning(
                "Audit notification failed",
                destination=destination_key,
                channel_id=channel_id,
                error=str(e),
            )
            return False
        return True


def log_audit_event(
    *,
    event_type: str,
    action: str,
    actor_id: str | None = None,
    target_id: str | None = None,
    request_id: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
    error_message: str | None = None,
) -> None:
    """
    Record an audit event in the structured log.

    Args:
        event_type: Type of event ('auth', 'action', 'report', 'holiday')
        action: Specific action ('login', 'logout', 'plus', 'nagana', etc.)
        actor_id: Discord id of the dashboard user
        target_id: Discord id of the affected member
        request_id: Request correlation ID
        details: Additional event details
        success: Whether the action was successful
        error_message: Error message if action failed
    """
    # Get request_id from structlog context if not provided
    if request_id is None:
        ctx = structlog.contextvars.get_contextvars()
        request_id = ctx.get("request_id")

    log_method = logger.info if success else logger.warning
    log_method(
        "audit_event",
        event_type=event_type,
        action=action,
        actor_id=actor_id,
        target_id=target_id,
        request_id=request_id,
        details=details or {},
        success=success,
        error_message=error_message,
    )
