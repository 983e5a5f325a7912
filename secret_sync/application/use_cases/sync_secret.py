"""
Use-case: run one fetch-diff-apply cycle for a single secret binding.
Depends only on Domain ports and entities; no infrastructure imports.

The cycle is stateless and strictly sequential. Failures are raised to the
caller unretried: the trigger owns retry scheduling.
"""

import logging
import threading
from typing import Optional

from secret_sync.application.services.diff_policy import decide
from secret_sync.domain.entities.secret import SecretIdentity, SyncResult
from secret_sync.domain.errors import SecretNotFoundError, SyncCancelledError
from secret_sync.domain.ports.secret_sink_port import ISecretSink
from secret_sync.domain.ports.secret_source_port import ISecretSource

logger = logging.getLogger(__name__)


class SyncSecretUseCase:
    def __init__(self, source: ISecretSource, sink: ISecretSink) -> None:
        """
        Args:
            source: ISecretSource implementation (e.g. SecretsManagerSource).
            sink:   ISecretSink implementation (e.g. KubernetesSecretSink).
        """
        self._source = source
        self._sink = sink

    def execute(
        self,
        identity: SecretIdentity,
        cancel: Optional[threading.Event] = None,
    ) -> SyncResult:
        """Bring the sink secret for *identity* in line with its source.

        Args:
            identity: Binding of the source secret to its sink target.
            cancel:   Optional event; checked before the source fetch and
                      before apply. A write that has started is never cut short.

        Raises:
            SyncCancelledError: *cancel* was set at a step boundary.
            Any SecretSyncError raised by the source, by the sink fetch (other
            than SecretNotFoundError), or by apply, unchanged.
        """
        _check_cancelled(cancel, identity)
        desired = self._source.fetch(identity.source_name)

        try:
            observed = self._sink.fetch(identity)
        except SecretNotFoundError:
            observed = None

        decision = decide(desired, observed)
        _check_cancelled(cancel, identity)

        result = self._sink.apply(identity, desired, decision)
        logger.info("Sync %s: %s (%d key(s))", identity, decision.value, len(desired))
        return result

    def try_execute(
        self,
        identity: SecretIdentity,
        cancel: Optional[threading.Event] = None,
    ) -> SyncResult:
        """Like execute(), but report a failure as a SyncResult instead of raising."""
        try:
            return self.execute(identity, cancel)
        except SyncCancelledError as exc:
            logger.info("Sync %s cancelled", identity)
            return SyncResult.failed(identity, exc)
        except Exception as exc:
            logger.error("Sync %s failed: %s", identity, exc)
            return SyncResult.failed(identity, exc)


def _check_cancelled(cancel: Optional[threading.Event], identity: SecretIdentity) -> None:
    if cancel is not None and cancel.is_set():
        raise SyncCancelledError(f"Sync {identity} cancelled")
