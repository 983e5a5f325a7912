"""
CLI entry point: run a single sync cycle for one secret and exit.

Useful for bootstrapping a cluster or debugging a binding by hand:

    export AWS_REGION=us-east-1
    secret-sync-once eks-sync-db --namespace apps --name db-credentials
"""

import argparse
import sys
from typing import Optional, Sequence

from secret_sync.domain.entities.secret import SecretIdentity
from secret_sync.domain.errors import ConfigError, SecretSyncError
from secret_sync.infrastructure.config.settings import SyncSettings
from secret_sync.infrastructure.entrypoints.event_router import secret_name_from_id
from secret_sync.infrastructure.entrypoints.wiring import build_use_case
from secret_sync.infrastructure.logging_config import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secret-sync-once",
        description="Sync one AWS Secrets Manager secret into a Kubernetes Secret.",
    )
    parser.add_argument("source", help="Name or ARN of the source secret")
    parser.add_argument("--namespace", help="Target namespace (default: K8S_NAMESPACE)")
    parser.add_argument("--name", help="Target Secret name (default: the source name)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = SyncSettings.from_env()
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    configure_logging(settings.log_level)

    identity = SecretIdentity(
        namespace=args.namespace or settings.target_namespace,
        name=args.name or secret_name_from_id(args.source),
        source_name=args.source,
    )
    try:
        result = build_use_case(settings).execute(identity)
    except SecretSyncError as exc:
        print(f"Sync failed for {identity}: {exc}", file=sys.stderr)
        return 1

    print(f"{identity}: {result.decision.value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
