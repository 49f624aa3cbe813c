"""Client-side workflow: API client and dispatch console."""

from crisissync.client.api_client import IncidentApiClient
from crisissync.client.console import DispatchConsole

__all__ = [
    "IncidentApiClient",
    "DispatchConsole",
]
