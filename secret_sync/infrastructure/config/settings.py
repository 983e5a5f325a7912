"""
Startup configuration for every trigger.

Settings are read from environment variables once, at startup, and validated
immediately so that a missing option fails the process before the first
cycle. A local .env file is honoured for development runs.
"""

import os
from enum import Enum
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from secret_sync.domain.errors import ConfigError


class PayloadDecoding(str, Enum):
    STRICT = "strict"
    LENIENT = "lenient"


_TRUE_VALUES = {"1", "true", "yes", "on"}


class SyncSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    store_region: str = Field(min_length=1)
    name_prefix_filter: str = "eks-sync-"
    target_namespace: str = Field(default="default", min_length=1)
    reconcile_interval: float = Field(default=10.0, gt=0)
    payload_decoding: PayloadDecoding = PayloadDecoding.STRICT
    request_timeout: float = Field(default=30.0, gt=0)
    discover_by_prefix: bool = False
    cluster_name: Optional[str] = None
    in_cluster: bool = True
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None):
        """Build settings from *environ* (defaults to os.environ after loading .env).

        Raises:
            ConfigError: if a required option is absent or a value is invalid.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        raw = {
            "store_region": environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION"),
            "name_prefix_filter": environ.get("SECRET_PREFIX"),
            "target_namespace": environ.get("K8S_NAMESPACE"),
            "reconcile_interval": environ.get("RECONCILE_INTERVAL_SECONDS"),
            "payload_decoding": environ.get("PAYLOAD_DECODING"),
            "request_timeout": environ.get("REQUEST_TIMEOUT_SECONDS"),
            "discover_by_prefix": _parse_bool(environ.get("SYNC_DISCOVER_BY_PREFIX")),
            "cluster_name": environ.get("EKS_CLUSTER_NAME"),
            "in_cluster": _parse_bool(environ.get("K8S_IN_CLUSTER")),
            "log_level": environ.get("LOG_LEVEL"),
        }
        try:
            return cls(**{key: value for key, value in raw.items() if value is not None})
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {_describe(exc)}") from exc


class EksSettings(SyncSettings):
    """Settings for triggers that reach the cluster through the EKS API."""

    cluster_name: str = Field(min_length=1)


def _parse_bool(value: Optional[str]) -> Optional[bool]:
    if value is None or value == "":
        return None
    return value.strip().lower() in _TRUE_VALUES


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
