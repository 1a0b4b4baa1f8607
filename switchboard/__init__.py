"""Switchboard: session relay between chat/voice users and conversational webhooks."""

__version__ = "1.0.0"
