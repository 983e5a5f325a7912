"""
Port (interface) for external secret stores that hold the desired value.
Infrastructure adapters (e.g. SecretsManagerSource) must implement this interface.
"""

from abc import ABC, abstractmethod

from secret_sync.domain.entities.secret import SecretPayload


class ISecretSource(ABC):
    @abstractmethod
    def fetch(self, source_name: str) -> SecretPayload:
        """Fetch and decode the current value of *source_name*.

        Raises:
            SecretNotFoundError:   the secret does not exist.
            UnauthorizedError:     credentials were rejected.
            UnavailableError:      transient store failure.
            MalformedPayloadError: the value cannot be decoded.
        """
        ...

    @abstractmethod
    def list_secret_names(self, prefix: str) -> list[str]:
        """Return the names of all secrets whose name starts with *prefix*."""
        ...
