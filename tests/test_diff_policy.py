import pytest

from secret_sync.application.services.diff_policy import decide
from secret_sync.domain.entities.secret import SecretPayload, SyncDecision


def _payload(**values: str) -> SecretPayload:
    return SecretPayload.from_text(values)


def test_absent_observed_creates() -> None:
    assert decide(_payload(user="admin"), None) is SyncDecision.CREATE


def test_empty_desired_with_absent_observed_still_creates() -> None:
    assert decide(SecretPayload(), None) is SyncDecision.CREATE


def test_equal_payloads_are_noop() -> None:
    desired = _payload(user="admin", password="s3cr3t")
    observed = _payload(password="s3cr3t", user="admin")
    assert decide(desired, observed) is SyncDecision.NOOP


def test_empty_payloads_are_noop() -> None:
    assert decide(SecretPayload(), SecretPayload()) is SyncDecision.NOOP


@pytest.mark.parametrize(
    "desired, observed",
    [
        ({"user": "admin", "password": "new"}, {"user": "admin", "password": "old"}),
        ({"user": "admin", "password": "x"}, {"user": "admin"}),
        ({"user": "admin"}, {"user": "admin", "stale": "x"}),
        ({"user": "admin"}, {"login": "admin"}),
        ({}, {"stale": "x"}),
    ],
    ids=["changed-value", "added-key", "removed-key", "renamed-key", "emptied"],
)
def test_differences_update(desired: dict, observed: dict) -> None:
    assert decide(_payload(**desired), _payload(**observed)) is SyncDecision.UPDATE


def test_comparison_is_byte_exact() -> None:
    desired = SecretPayload({"token": b"abc\n"})
    observed = SecretPayload({"token": b"abc"})
    assert decide(desired, observed) is SyncDecision.UPDATE

    assert decide(SecretPayload({"k": b"\xff\x00"}), SecretPayload({"k": b"\xff\x00"})) is SyncDecision.NOOP
    assert decide(SecretPayload({"k": b"A"}), SecretPayload({"k": b"a"})) is SyncDecision.UPDATE
