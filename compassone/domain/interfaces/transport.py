"""Interface for the HTTP transport.

A transport performs exactly one attempt: it never retries.
"""

import abc

from compassone.domain.models.request import WireRequest, WireResponse


class Transport(abc.ABC):
    """Abstract Base Class for sending a single wire request."""

    @abc.abstractmethod
    async def send(self, request: WireRequest, timeout: float) -> WireResponse:
        """Sends the request and returns the raw response.

        Args:
            request: Fully built request, authentication included.
            timeout: Seconds after which the request is aborted.

        Raises:
            TransportTimeout: The timeout elapsed; the request was aborted.
            TransportConnectionError: Connection failed or was reset.
            TlsError: TLS negotiation failed or offered less than TLS 1.2.
        """
        pass

    @abc.abstractmethod
    async def close(self) -> None:
        """Releases pooled connections. Safe to call more than once."""
        pass
