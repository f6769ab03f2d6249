"""HTTP client for the FamConomy API."""

from famconomy.client.api_client import ApiClient, retry_delay

__all__ = ["ApiClient", "retry_delay"]
