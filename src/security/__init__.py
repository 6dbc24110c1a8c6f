"""Audit trail for calendar changes."""
