"""
Composition helpers shared by the entrypoints.

Each entrypoint is its own Composition Root: it loads settings once at
startup and wires the infrastructure adapters into the application layer
through these builders.
"""

from secret_sync.application.use_cases.sync_secret import SyncSecretUseCase
from secret_sync.infrastructure.config.settings import SyncSettings
from secret_sync.infrastructure.kubernetes.cluster_auth import load_api_client, load_eks_api_client
from secret_sync.infrastructure.kubernetes.secret_sink_adapter import KubernetesSecretSink
from secret_sync.infrastructure.secrets.secrets_manager_adapter import SecretsManagerSource


def build_source(settings: SyncSettings) -> SecretsManagerSource:
    return SecretsManagerSource(
        region=settings.store_region,
        decoding=settings.payload_decoding,
        timeout=settings.request_timeout,
    )


def build_sink(settings: SyncSettings) -> KubernetesSecretSink:
    """EKS IAM auth when a cluster name is configured, else in-cluster or kubeconfig."""
    if settings.cluster_name:
        api_client = load_eks_api_client(settings.cluster_name, settings.store_region)
    else:
        api_client = load_api_client(in_cluster=settings.in_cluster)
    return KubernetesSecretSink(api_client, timeout=settings.request_timeout)


def build_use_case(settings: SyncSettings) -> SyncSecretUseCase:
    return SyncSecretUseCase(build_source(settings), build_sink(settings))
