"""HTTP and WebSocket API."""

from switchboard.api.app import create_app

__all__ = ["create_app"]
