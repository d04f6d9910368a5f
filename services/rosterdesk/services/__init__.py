"""Roster cache, role ladder engine, batch actions and audit notifications."""
