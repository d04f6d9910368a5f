"""rosterdesk: staff roster dashboard and role action service."""

__version__ = "0.1.0"
