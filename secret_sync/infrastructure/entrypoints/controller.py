"""
Kubernetes controller entry point (kopf).

Watches SecretManager binding objects. Each binding names a source secret
and a target Secret in the binding's namespace; the controller hands it to
the ReconcileScheduler, which re-checks it every reconcile interval until the
binding is deleted. Generated Secrets carry an ownerReference to their
binding, so deleting the binding lets the cluster garbage-collect them.

With SYNC_DISCOVER_BY_PREFIX=true the controller additionally syncs every
source secret whose name starts with SECRET_PREFIX into K8S_NAMESPACE.

Run:
    kopf run -m secret_sync.infrastructure.entrypoints.controller --all-namespaces
"""

import logging
from typing import Any, Optional

import kopf

from secret_sync.application.services.reconcile_scheduler import ReconcileScheduler
from secret_sync.application.use_cases.sync_secret import SyncSecretUseCase
from secret_sync.domain.entities.secret import OwnerReference, SecretIdentity, SyncResult
from secret_sync.domain.errors import ConfigError, TargetConflictError
from secret_sync.domain.ports.secret_sink_port import is_valid_secret_name
from secret_sync.infrastructure.config.settings import SyncSettings
from secret_sync.infrastructure.entrypoints.wiring import build_sink, build_source
from secret_sync.infrastructure.logging_config import configure_logging

logger = logging.getLogger(__name__)

GROUP = "secretsync.io"
VERSION = "v1"
PLURAL = "secretmanagers"
KIND = "SecretManager"

SHUTDOWN_TIMEOUT_SECONDS = 30.0
CONFLICT_RETRY_SECONDS = 30

_scheduler: Optional[ReconcileScheduler] = None


def binding_identity(spec: dict[str, Any], meta: dict[str, Any]) -> SecretIdentity:
    """Translate a SecretManager object into the identity it binds.

    Raises:
        ValueError: if spec.sourceSecretName is missing.
    """
    source_name = (spec or {}).get("sourceSecretName")
    if not source_name:
        raise ValueError("spec.sourceSecretName is required")
    return SecretIdentity(
        namespace=meta["namespace"],
        name=(spec or {}).get("name") or meta["name"],
        source_name=source_name,
        owner=OwnerReference(
            api_version=f"{GROUP}/{VERSION}",
            kind=KIND,
            name=meta["name"],
            uid=meta["uid"],
        ),
    )


def _log_result(result: SyncResult) -> None:
    if result.ok:
        logger.debug("Reconciled %s: %s", result.identity, result.decision.value)


def _schedule(scheduler: ReconcileScheduler, identity: SecretIdentity) -> None:
    try:
        scheduler.schedule(identity)
    except TargetConflictError as exc:
        # retried until the binding holding the target goes away
        raise kopf.TemporaryError(str(exc), delay=CONFLICT_RETRY_SECONDS) from exc


def get_scheduler() -> ReconcileScheduler:
    if _scheduler is None:
        raise kopf.TemporaryError("controller is still starting", delay=5)
    return _scheduler


def start(settings: SyncSettings) -> ReconcileScheduler:
    """Wire adapters into a new scheduler and schedule any prefix-discovered secrets."""
    global _scheduler
    source = build_source(settings)
    use_case = SyncSecretUseCase(source, build_sink(settings))
    _scheduler = ReconcileScheduler(use_case, settings.reconcile_interval, on_result=_log_result)
    if settings.discover_by_prefix:
        for name in source.list_secret_names(settings.name_prefix_filter):
            if not is_valid_secret_name(name):
                logger.warning("Not discovering %r: not a valid Kubernetes Secret name", name)
                continue
            _scheduler.schedule(
                SecretIdentity(namespace=settings.target_namespace, name=name, source_name=name)
            )
    return _scheduler


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    try:
        sync_settings = SyncSettings.from_env()
    except ConfigError as exc:
        raise kopf.PermanentError(str(exc)) from exc
    configure_logging(sync_settings.log_level)
    settings.posting.level = logging.WARNING
    settings.networking.request_timeout = sync_settings.request_timeout
    start(sync_settings)


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(timeout=SHUTDOWN_TIMEOUT_SECONDS)
        _scheduler = None


@kopf.on.create(GROUP, VERSION, PLURAL)
@kopf.on.resume(GROUP, VERSION, PLURAL)
def bind(spec: dict[str, Any], meta: dict[str, Any], **_: Any) -> dict[str, Any]:
    try:
        identity = binding_identity(spec, meta)
    except ValueError as exc:
        raise kopf.PermanentError(str(exc)) from exc
    _schedule(get_scheduler(), identity)
    return {"target": f"{identity.namespace}/{identity.name}"}


@kopf.on.update(GROUP, VERSION, PLURAL)
def rebind(
    old: dict[str, Any],
    new: dict[str, Any],
    meta: dict[str, Any],
    **_: Any,
) -> dict[str, Any]:
    try:
        identity = binding_identity(new.get("spec") or {}, meta)
    except ValueError as exc:
        raise kopf.PermanentError(str(exc)) from exc
    scheduler = get_scheduler()
    old_target = ((old or {}).get("spec") or {}).get("name") or meta["name"]
    if old_target != identity.name:
        scheduler.unschedule(identity.namespace, old_target, owner_uid=meta["uid"])
    _schedule(scheduler, identity)
    return {"target": f"{identity.namespace}/{identity.name}"}


@kopf.on.delete(GROUP, VERSION, PLURAL)
def unbind(spec: dict[str, Any], meta: dict[str, Any], **_: Any) -> None:
    target = (spec or {}).get("name") or meta["name"]
    if _scheduler is not None:
        _scheduler.unschedule(meta["namespace"], target, owner_uid=meta["uid"])


def main() -> None:
    kopf.run(clusterwide=True)


if __name__ == "__main__":
    main()
