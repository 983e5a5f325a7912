"""
Domain entities for secret synchronization.
Zero external dependencies: pure Python dataclasses and enums only.

A SecretPayload is built fresh from each store on every cycle and is never
mutated; DiffPolicy and SyncPolicy only read it.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping, Optional


class SecretPayload(Mapping[str, bytes]):
    """Read-only mapping from secret key to opaque byte value."""

    __slots__ = ("_data",)

    def __init__(self, data: Optional[Mapping[str, bytes]] = None) -> None:
        entries = dict(data or {})
        for key, value in entries.items():
            if not isinstance(key, str):
                raise TypeError(f"Secret keys must be str, got {type(key).__name__}")
            if not isinstance(value, (bytes, bytearray)):
                raise TypeError(
                    f"Secret value for {key!r} must be bytes, got {type(value).__name__}"
                )
            entries[key] = bytes(value)
        self._data = MappingProxyType(entries)

    @classmethod
    def from_text(cls, data: Mapping[str, str], encoding: str = "utf-8") -> "SecretPayload":
        """Build a payload from str values, encoding each one."""
        return cls({key: value.encode(encoding) for key, value in data.items()})

    def __getitem__(self, key: str) -> bytes:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self._data) == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._data.items()))

    def __repr__(self) -> str:
        # values are secret material; only keys are shown
        return f"SecretPayload(keys={sorted(self._data)!r})"


@dataclass(frozen=True)
class OwnerReference:
    """Reference from a generated secret back to the binding that owns it."""

    api_version: str
    kind: str
    name: str
    uid: str

    def to_manifest(self) -> dict:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }


@dataclass(frozen=True)
class SecretIdentity:
    namespace: str
    name: str
    source_name: str
    owner: Optional[OwnerReference] = field(default=None, compare=False)

    @property
    def key(self) -> tuple[str, str]:
        """Sink target (namespace, name); cycles must be serialised per key."""
        return (self.namespace, self.name)

    def __str__(self) -> str:
        return f"{self.source_name} -> {self.namespace}/{self.name}"


class SyncDecision(str, Enum):
    NOOP = "noop"
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class SyncResult:
    identity: SecretIdentity
    decision: Optional[SyncDecision] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, identity: SecretIdentity, error: Exception) -> "SyncResult":
        return cls(identity=identity, error=error)
