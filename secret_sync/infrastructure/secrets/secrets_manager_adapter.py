"""
Infrastructure adapter: AWS Secrets Manager → ISecretSource.

All boto3/botocore details are confined here. Client errors are translated
into the domain error taxonomy so callers never see a ClientError.

Decoding policy for SecretString values:
  strict  - the value must be a JSON object of string values; anything else
            raises MalformedPayloadError.
  lenient - non-JSON text is wrapped under the "secret" key and non-string
            JSON values are stored as compact JSON text. Each fallback is
            logged.
SecretBinary values are always stored under the "secret" key.
"""

import json
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from secret_sync.domain.entities.secret import SecretPayload
from secret_sync.domain.errors import (
    MalformedPayloadError,
    SecretNotFoundError,
    SecretSyncError,
    UnauthorizedError,
    UnavailableError,
)
from secret_sync.domain.ports.secret_source_port import ISecretSource
from secret_sync.infrastructure.config.settings import PayloadDecoding

logger = logging.getLogger(__name__)

BINARY_KEY = "secret"

_NOT_FOUND_CODES = {"ResourceNotFoundException"}
_UNAUTHORIZED_CODES = {
    "AccessDeniedException",
    "UnrecognizedClientException",
    "ExpiredTokenException",
    "InvalidSignatureException",
    "DecryptionFailure",
}
_UNAVAILABLE_CODES = {
    "ThrottlingException",
    "Throttling",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "InternalServiceError",
    "InternalFailure",
    "ServiceUnavailable",
}


class SecretsManagerSource(ISecretSource):
    """Fetches and decodes secrets from AWS Secrets Manager."""

    def __init__(
        self,
        region: str,
        decoding: PayloadDecoding = PayloadDecoding.STRICT,
        timeout: float = 30.0,
        client: Any = None,
    ) -> None:
        """
        Args:
            region:   AWS region of the secret store.
            decoding: SecretString decoding policy.
            timeout:  Connect and read timeout, in seconds, for each API call.
            client:   Pre-built secretsmanager client (used by tests).
        """
        self._decoding = PayloadDecoding(decoding)
        self._client = client or boto3.client(
            "secretsmanager",
            region_name=region,
            config=Config(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"mode": "standard", "max_attempts": 3},
            ),
        )

    def fetch(self, source_name: str) -> SecretPayload:
        logger.debug("Retrieving secret %r from Secrets Manager", source_name)
        with _translate_errors(source_name):
            response = self._client.get_secret_value(SecretId=source_name)

        if response.get("SecretString") is not None:
            payload = self._decode_string(source_name, response["SecretString"])
        elif response.get("SecretBinary") is not None:
            payload = SecretPayload({BINARY_KEY: response["SecretBinary"]})
        else:
            raise MalformedPayloadError(source_name, "secret has no value")

        logger.debug("Retrieved secret %r with %d key(s)", source_name, len(payload))
        return payload

    def list_secret_names(self, prefix: str) -> list[str]:
        paginator = self._client.get_paginator("list_secrets")
        kwargs = {"Filters": [{"Key": "name", "Values": [prefix]}]} if prefix else {}
        names: list[str] = []
        with _translate_errors(f"{prefix}*"):
            for page in paginator.paginate(**kwargs):
                for entry in page.get("SecretList", []):
                    # the name filter is a prefix match on words, not on the raw string
                    if entry["Name"].startswith(prefix):
                        names.append(entry["Name"])
        return sorted(names)

    def _decode_string(self, source_name: str, text: str) -> SecretPayload:
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
            reason = "value is not valid JSON"
        else:
            reason = "value is not a JSON object"

        if not isinstance(parsed, dict):
            if self._decoding is PayloadDecoding.STRICT:
                raise MalformedPayloadError(source_name, reason)
            logger.warning("Secret %r: %s; storing it under %r", source_name, reason, BINARY_KEY)
            return SecretPayload({BINARY_KEY: text.encode("utf-8")})

        data: dict[str, bytes] = {}
        for key, value in parsed.items():
            if isinstance(value, str):
                data[key] = value.encode("utf-8")
            elif self._decoding is PayloadDecoding.STRICT:
                raise MalformedPayloadError(
                    source_name, f"value of {key!r} is {type(value).__name__}, not a string"
                )
            else:
                logger.warning("Secret %r: storing non-string value of %r as JSON", source_name, key)
                data[key] = json.dumps(value, separators=(",", ":")).encode("utf-8")
        return SecretPayload(data)


@contextmanager
def _translate_errors(name: str) -> Iterator[None]:
    try:
        yield
    except SecretSyncError:
        raise
    except Exception as exc:
        translated = translate_client_error(name, exc)
        if translated is None:
            raise
        raise translated from exc


def translate_client_error(name: str, exc: BaseException) -> Optional[SecretSyncError]:
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code", "")
        message = exc.response.get("Error", {}).get("Message", str(exc))
        if code in _NOT_FOUND_CODES:
            return SecretNotFoundError(name)
        if code in _UNAUTHORIZED_CODES:
            return UnauthorizedError(f"{code} reading {name}: {message}")
        if code in _UNAVAILABLE_CODES:
            return UnavailableError(f"{code} reading {name}: {message}")
        return SecretSyncError(f"{code or 'ClientError'} reading {name}: {message}")
    if isinstance(exc, NoCredentialsError):
        return UnauthorizedError(f"No AWS credentials available to read {name}")
    if isinstance(exc, (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError)):
        return UnavailableError(f"Secrets Manager unreachable reading {name}: {exc}")
    if isinstance(exc, BotoCoreError):
        return SecretSyncError(f"Secrets Manager call failed for {name}: {exc}")
    return None
