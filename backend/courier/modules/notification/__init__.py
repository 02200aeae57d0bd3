"""Notification module for rendering and delivering multi-channel notifications.

This module provides:
- Multi-channel notification delivery (email, SMS, push, in-app, webhook)
- Versioned templates with a typed variable schema and a block grammar
- Per-user subscriptions with channel preferences, quiet hours and filters
- Retry scheduling with exponential backoff
- Delivery statistics and channel scoring

The module follows Domain-Driven Design principles with clear separation between:
- Domain layer: Core business logic and rules
- Application layer: Use cases and workflows
- Infrastructure layer: Template engine, transports and persistence
"""

__version__ = "1.0.0"
