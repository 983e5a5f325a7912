"""
Infrastructure adapter: Kubernetes core/v1 Secret → ISecretSink.

The kubernetes client exchanges Secret data as base64 text; encoding and
decoding happen here so the rest of the code base only sees bytes.
"""

import base64
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from secret_sync.domain.entities.secret import (
    SecretIdentity,
    SecretPayload,
    SyncDecision,
    SyncResult,
)
from secret_sync.domain.errors import (
    SecretNotFoundError,
    SecretSyncError,
    UnauthorizedError,
    UnavailableError,
)
from secret_sync.domain.ports.secret_sink_port import (
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    ISecretSink,
)

logger = logging.getLogger(__name__)

SECRET_TYPE = "Opaque"


class KubernetesSecretSink(ISecretSink):
    """Reads and writes Secrets through the Kubernetes core/v1 API."""

    def __init__(
        self,
        api_client: Optional[client.ApiClient] = None,
        timeout: float = 30.0,
        core_api: Any = None,
    ) -> None:
        """
        Args:
            api_client: Configured ApiClient (see cluster_auth); defaults to the
                        kubernetes library's global configuration.
            timeout:    Request timeout, in seconds, for each API call.
            core_api:   Pre-built CoreV1Api (used by tests).
        """
        self._api = core_api or client.CoreV1Api(api_client)
        self._timeout = timeout

    def fetch(self, identity: SecretIdentity) -> SecretPayload:
        with _translate_errors(identity):
            secret = self._read(identity)
        return decode_data(secret.data)

    def apply(
        self,
        identity: SecretIdentity,
        desired: SecretPayload,
        decision: SyncDecision,
    ) -> SyncResult:
        if decision is SyncDecision.CREATE:
            with _translate_errors(identity):
                self._create(identity, desired)
            logger.info("Created Kubernetes secret %s/%s", identity.namespace, identity.name)
        elif decision is SyncDecision.UPDATE:
            with _translate_errors(identity):
                self._update(identity, desired)
            logger.info("Updated Kubernetes secret %s/%s", identity.namespace, identity.name)
        else:
            logger.debug("Kubernetes secret %s/%s is up to date", identity.namespace, identity.name)
        return SyncResult(identity=identity, decision=decision)

    def _read(self, identity: SecretIdentity) -> client.V1Secret:
        return self._api.read_namespaced_secret(
            name=identity.name,
            namespace=identity.namespace,
            _request_timeout=self._timeout,
        )

    def _create(self, identity: SecretIdentity, desired: SecretPayload) -> None:
        owner_references = None
        if identity.owner is not None:
            owner = identity.owner
            owner_references = [
                client.V1OwnerReference(
                    api_version=owner.api_version,
                    kind=owner.kind,
                    name=owner.name,
                    uid=owner.uid,
                    controller=True,
                    block_owner_deletion=True,
                )
            ]
        body = client.V1Secret(
            api_version="v1",
            kind="Secret",
            metadata=client.V1ObjectMeta(
                name=identity.name,
                namespace=identity.namespace,
                labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
                owner_references=owner_references,
            ),
            type=SECRET_TYPE,
            data=encode_data(desired),
        )
        self._api.create_namespaced_secret(
            namespace=identity.namespace,
            body=body,
            _request_timeout=self._timeout,
        )

    def _update(self, identity: SecretIdentity, desired: SecretPayload) -> None:
        existing = self._read(identity)
        existing.data = encode_data(desired)
        existing.type = SECRET_TYPE
        # replace carries metadata.resourceVersion, so a concurrent writer gets a 409
        self._api.replace_namespaced_secret(
            name=identity.name,
            namespace=identity.namespace,
            body=existing,
            _request_timeout=self._timeout,
        )


def encode_data(payload: SecretPayload) -> dict[str, str]:
    return {key: base64.b64encode(value).decode("ascii") for key, value in payload.items()}


def decode_data(data: Optional[dict[str, str]]) -> SecretPayload:
    return SecretPayload({key: base64.b64decode(value) for key, value in (data or {}).items()})


@contextmanager
def _translate_errors(identity: SecretIdentity) -> Iterator[None]:
    target = f"{identity.namespace}/{identity.name}"
    try:
        yield
    except ApiException as exc:
        raise translate_api_exception(target, exc) from exc
    except HTTPError as exc:
        raise UnavailableError(f"Kubernetes API unreachable for {target}: {exc}") from exc


def translate_api_exception(target: str, exc: ApiException) -> SecretSyncError:
    status = exc.status or 0
    if status == 404:
        return SecretNotFoundError(target)
    if status in (401, 403):
        return UnauthorizedError(f"Kubernetes API refused access to {target}: {exc.reason}")
    if status in (409, 429) or status >= 500:
        return UnavailableError(f"Kubernetes API returned {status} for {target}: {exc.reason}")
    return SecretSyncError(f"Kubernetes API returned {status} for {target}: {exc.reason}")
