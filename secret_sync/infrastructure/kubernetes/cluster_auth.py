"""
Kubernetes API client construction.

In-cluster and kubeconfig loading use the kubernetes library's own loaders.
EKS clusters reached from outside (e.g. from Lambda) are described through
the EKS API and authenticated with an aws-iam-authenticator compatible
bearer token: a presigned STS GetCallerIdentity URL bound to the cluster
name through the x-k8s-aws-id header.
"""

import atexit
import base64
import contextlib
import logging
import os
import tempfile
import threading
import time
from typing import Any, Optional

import boto3
from botocore.signers import RequestSigner
from kubernetes import client, config

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "k8s-aws-v1."
CLUSTER_ID_HEADER = "x-k8s-aws-id"
# presigned URLs are accepted for 15 minutes; refresh well before that
TOKEN_PRESIGN_SECONDS = 60
TOKEN_REFRESH_SECONDS = 10 * 60

_ca_files: dict[str, str] = {}
_ca_lock = threading.Lock()


def load_api_client(in_cluster: bool = True) -> client.ApiClient:
    """Return an ApiClient from the service account token or the local kubeconfig."""
    if in_cluster:
        config.load_incluster_config()
    else:
        config.load_kube_config()
    return client.ApiClient()


def get_eks_token(cluster_name: str, session: boto3.Session, region: str) -> str:
    sts = session.client("sts", region_name=region)
    signer = RequestSigner(
        sts.meta.service_model.service_id,
        region,
        "sts",
        "v4",
        session.get_credentials(),
        session.events,
    )
    params = {
        "method": "GET",
        "url": f"https://sts.{region}.amazonaws.com/?Action=GetCallerIdentity&Version=2011-06-15",
        "body": {},
        "headers": {CLUSTER_ID_HEADER: cluster_name},
        "context": {},
    }
    url = signer.generate_presigned_url(
        params,
        region_name=region,
        expires_in=TOKEN_PRESIGN_SECONDS,
        operation_name="",
    )
    encoded = base64.urlsafe_b64encode(url.encode("utf-8")).decode("utf-8")
    return TOKEN_PREFIX + encoded.rstrip("=")


class EksTokenProvider:
    """Caches an EKS bearer token and regenerates it before it expires."""

    def __init__(
        self,
        cluster_name: str,
        region: str,
        session: Optional[boto3.Session] = None,
        refresh_seconds: float = TOKEN_REFRESH_SECONDS,
    ) -> None:
        self._cluster_name = cluster_name
        self._region = region
        self._session = session or boto3.Session(region_name=region)
        self._refresh_seconds = refresh_seconds
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._issued_at = 0.0

    def token(self) -> str:
        with self._lock:
            now = time.monotonic()
            if self._token is None or now - self._issued_at >= self._refresh_seconds:
                self._token = get_eks_token(self._cluster_name, self._session, self._region)
                self._issued_at = now
            return self._token

    def refresh_hook(self, configuration: client.Configuration) -> None:
        """Configuration.refresh_api_key_hook: runs before every API request."""
        configuration.api_key["authorization"] = self.token()


def ca_bundle_path(ca_data: str) -> str:
    """Return a file holding the base64 *ca_data* bundle.

    Each distinct bundle is written once per process, so warm Lambda
    containers reuse it, and is removed when the interpreter exits.
    """
    with _ca_lock:
        path = _ca_files.get(ca_data)
        if path is None or not os.path.exists(path):
            with tempfile.NamedTemporaryFile(prefix="eks-ca-", suffix=".crt", delete=False) as ca_file:
                ca_file.write(base64.b64decode(ca_data))
            path = ca_file.name
            _ca_files[ca_data] = path
            atexit.register(_remove_file, path)
        return path


def _remove_file(path: str) -> None:
    with contextlib.suppress(FileNotFoundError):
        os.remove(path)


def load_eks_api_client(
    cluster_name: str,
    region: str,
    session: Optional[boto3.Session] = None,
    eks_client: Any = None,
) -> client.ApiClient:
    """Describe *cluster_name* and return an ApiClient authenticated with IAM."""
    session = session or boto3.Session(region_name=region)
    eks = eks_client or session.client("eks", region_name=region)
    logger.info("Connecting to EKS cluster %r", cluster_name)
    cluster = eks.describe_cluster(name=cluster_name)["cluster"]

    tokens = EksTokenProvider(cluster_name, region, session=session)
    configuration = client.Configuration()
    configuration.host = cluster["endpoint"]
    configuration.ssl_ca_cert = ca_bundle_path(cluster["certificateAuthority"]["data"])
    configuration.api_key = {"authorization": tokens.token()}
    configuration.api_key_prefix = {"authorization": "Bearer"}
    configuration.refresh_api_key_hook = tokens.refresh_hook
    return client.ApiClient(configuration)
