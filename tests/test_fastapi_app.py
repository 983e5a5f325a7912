from unittest import mock

import pytest
from fastapi.testclient import TestClient

from secret_sync.domain.entities.secret import SecretPayload
from secret_sync.domain.errors import UnauthorizedError, UnavailableError
from secret_sync.infrastructure.config.settings import SyncSettings
from secret_sync.infrastructure.entrypoints import fastapi_app


@pytest.fixture
def api(use_case):
    settings = SyncSettings.from_env({"AWS_REGION": "us-east-1", "K8S_NAMESPACE": "apps"})
    fastapi_app.app.dependency_overrides[fastapi_app.get_settings] = lambda: settings
    fastapi_app.app.dependency_overrides[fastapi_app.get_use_case] = lambda: use_case
    with TestClient(fastapi_app.app) as test_client:
        yield test_client
    fastapi_app.app.dependency_overrides.clear()


def _event(secret_id: str = "eks-sync-db") -> dict:
    return {
        "detail-type": "AWS API Call via CloudTrail",
        "detail": {
            "eventSource": "secretsmanager.amazonaws.com",
            "eventName": "PutSecretValue",
            "requestParameters": {"secretId": secret_id},
        },
    }


def test_health(api) -> None:
    response = api.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_event_endpoint_syncs(api, source, sink) -> None:
    source.secrets["eks-sync-db"] = SecretPayload.from_text({"password": "s3cr3t"})

    response = api.post("/events", json=_event())

    assert response.status_code == 200
    assert response.json()["decision"] == "create"
    assert ("apps", "eks-sync-db") in sink.secrets


def test_event_endpoint_reports_skips(api) -> None:
    response = api.post("/events", json=_event("unrelated"))
    assert response.status_code == 200
    assert response.json()["status"] == "skipped"


def test_event_endpoint_rejects_bad_detail(api) -> None:
    response = api.post("/events", json={"detail": "nope"})
    assert response.status_code == 400


def test_sync_endpoint_defaults_target(api, source, sink) -> None:
    source.secrets["eks-sync-db"] = SecretPayload.from_text({"a": "1"})

    response = api.post("/sync", json={"source_name": "eks-sync-db"})

    assert response.status_code == 200
    assert response.json() == {
        "source": "eks-sync-db",
        "namespace": "apps",
        "name": "eks-sync-db",
        "decision": "create",
    }


def test_sync_endpoint_explicit_target(api, source, sink) -> None:
    source.secrets["eks-sync-db"] = SecretPayload.from_text({"a": "1"})

    response = api.post(
        "/sync", json={"source_name": "eks-sync-db", "namespace": "web", "name": "db"}
    )

    assert response.status_code == 200
    assert ("web", "db") in sink.secrets


@pytest.mark.parametrize(
    "error, status_code",
    [
        (None, 404),
        (UnauthorizedError("denied"), 502),
        (UnavailableError("throttled"), 503),
    ],
)
def test_sync_errors_map_to_status_codes(api, source, error, status_code) -> None:
    source.error = error
    response = api.post("/sync", json={"source_name": "eks-sync-missing"})
    assert response.status_code == status_code


def test_sync_request_requires_source(api) -> None:
    response = api.post("/sync", json={"source_name": ""})
    assert response.status_code == 422


def test_startup_loads_dotenv_only_through_settings(use_case, monkeypatch) -> None:
    monkeypatch.setenv("AWS_REGION", "us-east-1")
    fastapi_app.get_settings.cache_clear()
    fastapi_app.app.dependency_overrides[fastapi_app.get_use_case] = lambda: use_case
    try:
        with mock.patch("secret_sync.infrastructure.config.settings.load_dotenv") as load_dotenv:
            with TestClient(fastapi_app.app) as test_client:
                assert test_client.get("/health").status_code == 200
        load_dotenv.assert_called_once_with()
    finally:
        fastapi_app.app.dependency_overrides.clear()
        fastapi_app.get_settings.cache_clear()
