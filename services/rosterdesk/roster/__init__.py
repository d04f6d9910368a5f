"""Roster models and the Discord-backed roster source."""

from .discord_rest import DiscordRESTClient
from .models import Actor, GuildRole, Member, RosterSnapshot
from .source import DiscordRosterSource, RosterSource

__all__ = [
    "Actor",
    "DiscordRESTClient",
    "DiscordRosterSource",
    "GuildRole",
    "Member",
    "RosterSnapshot",
    "RosterSource",
]
