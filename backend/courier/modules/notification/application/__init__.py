"""Notification application layer.

Commands, handlers, DTOs and the rendering and delivery services.
"""
