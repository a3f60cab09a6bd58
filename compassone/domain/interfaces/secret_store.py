"""Interface for secret storage backends.

Defines the contract the credential store adapter uses to read, write and
rotate secrets. The adapter is the sole caller; raw secrets never travel past
it.
"""

import abc
from typing import Optional

from compassone.domain.models.credential import StoredSecret


class SecretStore(abc.ABC):
    """Abstract Base Class for secret storage backends."""

    @abc.abstractmethod
    async def get(self, name: str) -> Optional[StoredSecret]:
        """Retrieves a secret by name.

        Args:
            name: The secret's identity (e.g. 'COMPASSONE_API_KEY').

        Returns:
            The stored secret, or None if the store has no such secret.
        """
        pass

    @abc.abstractmethod
    async def set(self, name: str, secret: StoredSecret) -> None:
        """Stores or replaces a secret."""
        pass

    @abc.abstractmethod
    async def rotate(self, name: str) -> StoredSecret:
        """Replaces the secret with a new value and returns it.

        Raises:
            RotationFailed: If the backend cannot rotate this secret.
        """
        pass
