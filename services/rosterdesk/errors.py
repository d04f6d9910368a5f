"""Exception types shared across rosterdesk.

Per-target action failures are not exceptions; see
``rosterdesk.services.role_ladder.FailureCode``.
"""


class RosterDeskError(Exception):
    """Base class for rosterdesk errors."""


class ConfigurationError(RosterDeskError):
    """Invalid static configuration detected at startup."""


class UpstreamError(RosterDeskError):
    """A Discord API call failed (network error or non-2xx response)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MemberNotFound(UpstreamError):
    """The requested member is not in the guild."""

    def __init__(self, member_id: str) -> None:
        super().__init__(f"Not found: {member_id}", status_code=404)
        self.member_id = member_id


class UpstreamUnavailable(RosterDeskError):
    """The roster could not be fetched and no cached snapshot exists."""


class InvalidRequest(RosterDeskError):
    """Malformed batch action input. Nothing was processed."""


class Unauthenticated(RosterDeskError):
    """No valid dashboard session."""
