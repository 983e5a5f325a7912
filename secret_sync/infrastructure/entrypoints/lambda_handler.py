"""
AWS Lambda entry point: event-driven sync into an EKS cluster.

Wired to an EventBridge rule matching Secrets Manager CloudTrail events. The
function reaches the cluster API from outside through the EKS endpoint with
an IAM bearer token, so EKS_CLUSTER_NAME is required.

When running inside Lambda the Composition Root is built during the init
phase, so a missing or invalid setting fails the cold start instead of the
first event. Sync failures are re-raised to let the event system redeliver.

Deploy with handler:
    secret_sync.infrastructure.entrypoints.lambda_handler.handler
"""

import os
from functools import lru_cache
from typing import Any

from secret_sync.application.use_cases.sync_secret import SyncSecretUseCase
from secret_sync.infrastructure.config.settings import EksSettings
from secret_sync.infrastructure.entrypoints.event_router import handle_event
from secret_sync.infrastructure.entrypoints.wiring import build_use_case
from secret_sync.infrastructure.logging_config import configure_logging


@lru_cache(maxsize=1)
def _container() -> tuple[EksSettings, SyncSecretUseCase]:
    settings = EksSettings.from_env()
    configure_logging(settings.log_level)
    return settings, build_use_case(settings)


def handler(event: dict, context: Any = None) -> dict:
    settings, use_case = _container()
    return handle_event(event, use_case, settings)


if os.environ.get("AWS_LAMBDA_FUNCTION_NAME"):
    _container()
