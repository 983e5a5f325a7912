"""
Routes Secrets Manager change events to the sync use-case.

Events arrive from EventBridge with a CloudTrail record as their detail. The
changed secret is synced into the configured namespace under its own name,
provided it matches the naming-convention prefix. Names Kubernetes would
reject (upper case, "/", "_" and the like) are skipped rather than mapped,
so two source secrets can never collide on one target.
"""

import logging
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from secret_sync.application.use_cases.sync_secret import SyncSecretUseCase
from secret_sync.domain.entities.secret import SecretIdentity
from secret_sync.domain.ports.secret_sink_port import is_valid_secret_name
from secret_sync.infrastructure.config.settings import SyncSettings

logger = logging.getLogger(__name__)

EVENT_SOURCE = "secretsmanager.amazonaws.com"
SYNC_EVENT_NAMES = frozenset(
    {"CreateSecret", "PutSecretValue", "UpdateSecret", "RotateSecret", "RestoreSecret"}
)

# arn:aws:secretsmanager:<region>:<account>:secret:<name>-<6 random chars>
_ARN_NAME = re.compile(r"^arn:[^:]+:secretsmanager:[^:]*:[^:]*:secret:(?P<name>.+)-[A-Za-z0-9]{6}$")


class SecretsManagerEventDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event_source: str = Field(default="", alias="eventSource")
    event_name: str = Field(default="", alias="eventName")
    request_parameters: dict[str, Any] = Field(default_factory=dict, alias="requestParameters")

    @property
    def secret_id(self) -> Optional[str]:
        params = self.request_parameters or {}
        return params.get("secretId") or params.get("name")


def secret_name_from_id(secret_id: str) -> str:
    """Return the secret name for a name or a full secret ARN."""
    match = _ARN_NAME.match(secret_id)
    return match.group("name") if match else secret_id


def handle_event(
    event: dict[str, Any],
    use_case: SyncSecretUseCase,
    settings: SyncSettings,
) -> dict[str, Any]:
    """Sync the secret named by *event* and describe what happened.

    Raises:
        ValueError: if the event detail cannot be parsed.
        Any SecretSyncError from the use-case, so the event is redelivered.
    """
    logger.info("Processing event: %s", event.get("detail-type", "<unknown>"))
    detail = SecretsManagerEventDetail.model_validate(event.get("detail") or {})

    if detail.event_source and detail.event_source != EVENT_SOURCE:
        return _skipped(f"event source {detail.event_source!r} is not Secrets Manager")
    if detail.event_name not in SYNC_EVENT_NAMES:
        return _skipped(f"event {detail.event_name!r} does not change a secret value")
    if not detail.secret_id:
        return _skipped("event does not name a secret")

    name = secret_name_from_id(detail.secret_id)
    if not name.startswith(settings.name_prefix_filter):
        return _skipped(
            f"secret {name!r} does not match prefix {settings.name_prefix_filter!r}", secret=name
        )
    if not is_valid_secret_name(name):
        return _skipped(f"secret {name!r} is not a valid Kubernetes Secret name", secret=name)

    identity = SecretIdentity(
        namespace=settings.target_namespace, name=name, source_name=detail.secret_id
    )
    result = use_case.execute(identity)
    return {
        "status": "synced",
        "secret": name,
        "namespace": identity.namespace,
        "decision": result.decision.value if result.decision else None,
    }


def _skipped(reason: str, secret: Optional[str] = None) -> dict[str, Any]:
    logger.info("Skipping event: %s", reason)
    response: dict[str, Any] = {"status": "skipped", "reason": reason}
    if secret is not None:
        response["secret"] = secret
    return response
