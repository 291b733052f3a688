"""HTTP client for the Home Assistant REST API.

:class:`HomeAssistantClient` is a blocking client backed by
:class:`httpx.Client`. It resolves the service's effective endpoint and
token on entry, retries transient failures with exponential backoff, and maps
HTTP errors onto :mod:`simpleha.exceptions`.

Example::

    from simpleha.client import HomeAssistantClient

    with HomeAssistantClient(service) as client:
        client.toggle("light.kitchen")
"""

from simpleha.client.rest import HomeAssistantClient

__all__ = ["HomeAssistantClient"]
