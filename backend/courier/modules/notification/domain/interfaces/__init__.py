"""Notification domain interfaces (ports)."""
