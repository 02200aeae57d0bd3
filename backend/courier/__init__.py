"""Notification delivery and template rendering engine."""
