"""HTTP API for the staff dashboard."""
