"""Dashboard login: Discord OAuth2, one-time OAuth state and Redis sessions."""
