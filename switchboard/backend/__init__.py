"""Client for the backend that owns bots and stored conversations."""

from switchboard.backend.client import BackendClient, BackendError, storage_payload
from switchboard.backend.reports import normalize_report

__all__ = ["BackendClient", "BackendError", "normalize_report", "storage_payload"]
