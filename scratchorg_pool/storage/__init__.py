"""Remote record store access."""

from .devhub import DevHubClient, HubConnection
from .retry import RetryAborted, RetryPolicy, retrying

__all__ = ["DevHubClient", "HubConnection", "RetryAborted", "RetryPolicy", "retrying"]
