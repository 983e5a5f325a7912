import json
from unittest import mock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError

from secret_sync.domain.errors import (
    MalformedPayloadError,
    SecretNotFoundError,
    SecretSyncError,
    UnauthorizedError,
    UnavailableError,
)
from secret_sync.infrastructure.config.settings import PayloadDecoding
from secret_sync.infrastructure.secrets.secrets_manager_adapter import SecretsManagerSource


def _client_error(code: str, operation: str = "GetSecretValue") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} happened"}}, operation)


def _source(response=None, side_effect=None, decoding=PayloadDecoding.STRICT):
    client = mock.MagicMock()
    client.get_secret_value.return_value = response
    client.get_secret_value.side_effect = side_effect
    return SecretsManagerSource(region="us-east-1", decoding=decoding, client=client), client


def test_json_object_becomes_one_key_per_entry() -> None:
    source, client = _source({"SecretString": json.dumps({"username": "admin", "password": "s3cr3t"})})

    payload = source.fetch("eks-sync-db")

    client.get_secret_value.assert_called_once_with(SecretId="eks-sync-db")
    assert dict(payload) == {"username": b"admin", "password": b"s3cr3t"}


def test_binary_secret_is_stored_under_secret_key() -> None:
    source, _ = _source({"SecretBinary": b"\x00\x01binary"})
    assert dict(source.fetch("eks-sync-cert")) == {"secret": b"\x00\x01binary"}


def test_unicode_values_are_utf8_encoded() -> None:
    source, _ = _source({"SecretString": json.dumps({"greeting": "héllo"})})
    assert source.fetch("x")["greeting"] == "héllo".encode("utf-8")


@pytest.mark.parametrize(
    "secret_string",
    ["not json at all", json.dumps(["a", "b"]), json.dumps("plain"), json.dumps({"port": 5432})],
    ids=["plain-text", "json-list", "json-string", "non-string-value"],
)
def test_strict_decoding_rejects_malformed_values(secret_string: str) -> None:
    source, _ = _source({"SecretString": secret_string})
    with pytest.raises(MalformedPayloadError):
        source.fetch("eks-sync-db")


def test_lenient_decoding_wraps_plain_text(caplog) -> None:
    source, _ = _source({"SecretString": "hunter2"}, decoding=PayloadDecoding.LENIENT)

    with caplog.at_level("WARNING"):
        payload = source.fetch("eks-sync-db")

    assert dict(payload) == {"secret": b"hunter2"}
    assert "eks-sync-db" in caplog.text
    assert "hunter2" not in caplog.text


def test_lenient_decoding_serialises_non_string_values() -> None:
    source, _ = _source(
        {"SecretString": json.dumps({"port": 5432, "tls": True, "opts": {"a": 1}, "user": "app"})},
        decoding=PayloadDecoding.LENIENT,
    )

    assert dict(source.fetch("eks-sync-db")) == {
        "port": b"5432",
        "tls": b"true",
        "opts": b'{"a":1}',
        "user": b"app",
    }


def test_secret_without_value_is_malformed() -> None:
    source, _ = _source({"Name": "empty"})
    with pytest.raises(MalformedPayloadError):
        source.fetch("empty")


@pytest.mark.parametrize(
    "code, expected",
    [
        ("ResourceNotFoundException", SecretNotFoundError),
        ("AccessDeniedException", UnauthorizedError),
        ("DecryptionFailure", UnauthorizedError),
        ("ThrottlingException", UnavailableError),
        ("InternalServiceError", UnavailableError),
        ("InvalidParameterException", SecretSyncError),
    ],
)
def test_client_errors_are_translated(code: str, expected: type) -> None:
    source, _ = _source(side_effect=_client_error(code))

    with pytest.raises(expected) as excinfo:
        source.fetch("eks-sync-db")

    assert isinstance(excinfo.value.__cause__, ClientError)


def test_missing_credentials_are_unauthorized() -> None:
    source, _ = _source(side_effect=NoCredentialsError())
    with pytest.raises(UnauthorizedError):
        source.fetch("eks-sync-db")


def test_connection_failure_is_unavailable() -> None:
    source, _ = _source(side_effect=EndpointConnectionError(endpoint_url="https://secretsmanager"))
    with pytest.raises(UnavailableError):
        source.fetch("eks-sync-db")


def test_list_secret_names_filters_by_prefix() -> None:
    client = mock.MagicMock()
    client.get_paginator.return_value.paginate.return_value = [
        {"SecretList": [{"Name": "eks-sync-b"}, {"Name": "other-eks-sync"}]},
        {"SecretList": [{"Name": "eks-sync-a"}]},
    ]
    source = SecretsManagerSource(region="us-east-1", client=client)

    assert source.list_secret_names("eks-sync-") == ["eks-sync-a", "eks-sync-b"]
    client.get_paginator.assert_called_once_with("list_secrets")
    client.get_paginator.return_value.paginate.assert_called_once_with(
        Filters=[{"Key": "name", "Values": ["eks-sync-"]}]
    )


def test_list_secret_names_translates_errors() -> None:
    client = mock.MagicMock()
    client.get_paginator.return_value.paginate.side_effect = _client_error(
        "AccessDeniedException", "ListSecrets"
    )
    source = SecretsManagerSource(region="us-east-1", client=client)

    with pytest.raises(UnauthorizedError):
        source.list_secret_names("eks-sync-")
