"""
Port (interface) for the runtime secret store that is kept in sync.
Infrastructure adapters (e.g. KubernetesSecretSink) must implement this interface.
"""

import re
from abc import ABC, abstractmethod

from secret_sync.domain.entities.secret import (
    SecretIdentity,
    SecretPayload,
    SyncDecision,
    SyncResult,
)

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "secret-sync"

# RFC 1123 subdomain, the rule Kubernetes applies to Secret names
_SECRET_NAME = re.compile(r"[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*")
MAX_SECRET_NAME_LENGTH = 253


def is_valid_secret_name(name: str) -> bool:
    return len(name) <= MAX_SECRET_NAME_LENGTH and _SECRET_NAME.fullmatch(name) is not None


class ISecretSink(ABC):
    @abstractmethod
    def fetch(self, identity: SecretIdentity) -> SecretPayload:
        """Read the materialized secret for *identity*.

        Raises:
            SecretNotFoundError: no secret exists yet for this identity.
        """
        ...

    @abstractmethod
    def apply(
        self,
        identity: SecretIdentity,
        desired: SecretPayload,
        decision: SyncDecision,
    ) -> SyncResult:
        """Execute *decision*. CREATE and UPDATE write; NOOP never does.

        UPDATE replaces the whole payload and the type, leaving any other
        field of the existing secret untouched.
        """
        ...
