"""Shared fixtures: in-memory source and sink adapters."""

import threading
from dataclasses import dataclass, field
from typing import Optional

import pytest

from secret_sync.application.use_cases.sync_secret import SyncSecretUseCase
from secret_sync.domain.entities.secret import (
    OwnerReference,
    SecretIdentity,
    SecretPayload,
    SyncDecision,
    SyncResult,
)
from secret_sync.domain.errors import SecretNotFoundError
from secret_sync.domain.ports.secret_sink_port import (
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    ISecretSink,
)
from secret_sync.domain.ports.secret_source_port import ISecretSource


class InMemorySecretSource(ISecretSource):
    def __init__(self, secrets: Optional[dict[str, SecretPayload]] = None) -> None:
        self.secrets = dict(secrets or {})
        self.error: Optional[Exception] = None
        self.fetches = 0
        self.fetched = threading.Condition()

    def fetch(self, source_name: str) -> SecretPayload:
        with self.fetched:
            self.fetches += 1
            self.fetched.notify_all()
        if self.error is not None:
            raise self.error
        if source_name not in self.secrets:
            raise SecretNotFoundError(source_name)
        return self.secrets[source_name]

    def list_secret_names(self, prefix: str) -> list[str]:
        return sorted(name for name in self.secrets if name.startswith(prefix))

    def wait_for_fetches(self, count: int, timeout: float = 5.0) -> bool:
        with self.fetched:
            return self.fetched.wait_for(lambda: self.fetches >= count, timeout)


@dataclass
class StoredSecret:
    data: SecretPayload
    type: str = "Opaque"
    labels: dict = field(default_factory=dict)
    annotations: dict = field(default_factory=dict)
    owner: Optional[OwnerReference] = None


class InMemorySecretSink(ISecretSink):
    """Sink that keeps secrets in a dict and counts every write."""

    def __init__(self) -> None:
        self.secrets: dict[tuple[str, str], StoredSecret] = {}
        self.fetch_error: Optional[Exception] = None
        self.apply_error: Optional[Exception] = None
        self.apply_calls = 0
        self.writes = 0

    def fetch(self, identity: SecretIdentity) -> SecretPayload:
        if self.fetch_error is not None:
            raise self.fetch_error
        stored = self.secrets.get(identity.key)
        if stored is None:
            raise SecretNotFoundError(f"{identity.namespace}/{identity.name}")
        return stored.data

    def apply(
        self,
        identity: SecretIdentity,
        desired: SecretPayload,
        decision: SyncDecision,
    ) -> SyncResult:
        self.apply_calls += 1
        if self.apply_error is not None:
            raise self.apply_error
        if decision is SyncDecision.CREATE:
            self.secrets[identity.key] = StoredSecret(
                data=desired,
                labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
                owner=identity.owner,
            )
            self.writes += 1
        elif decision is SyncDecision.UPDATE:
            stored = self.secrets[identity.key]
            stored.data = desired
            stored.type = "Opaque"
            self.writes += 1
        return SyncResult(identity=identity, decision=decision)


@pytest.fixture
def source() -> InMemorySecretSource:
    return InMemorySecretSource()


@pytest.fixture
def sink() -> InMemorySecretSink:
    return InMemorySecretSink()


@pytest.fixture
def use_case(source, sink) -> SyncSecretUseCase:
    return SyncSecretUseCase(source, sink)


@pytest.fixture
def identity() -> SecretIdentity:
    return SecretIdentity(namespace="apps", name="db-credentials", source_name="eks-sync-db")
