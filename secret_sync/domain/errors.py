"""
Domain error taxonomy shared by ports, adapters, and triggers.
Adapters translate client-library exceptions into these classes so that the
application layer never imports boto3 or kubernetes.
"""


class SecretSyncError(Exception):
    """Base error for a failed sync cycle."""


class SecretNotFoundError(SecretSyncError):
    CUSTOM_ERROR_MESSAGE = "Secret {} was not found"

    def __init__(self, name: str) -> None:
        super().__init__(self.CUSTOM_ERROR_MESSAGE.format(name))
        self.name = name


class UnauthorizedError(SecretSyncError):
    """Credentials were rejected or lack permission for the request."""


class UnavailableError(SecretSyncError):
    """Transient network, throttling, or server-side failure."""


class MalformedPayloadError(SecretSyncError):
    CUSTOM_ERROR_MESSAGE = "Secret {} has a malformed value: {}"

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(self.CUSTOM_ERROR_MESSAGE.format(name, reason))
        self.name = name
        self.reason = reason


class SyncCancelledError(SecretSyncError):
    """The cycle was cancelled at a step boundary before writing."""


class ConfigError(Exception):
    """Startup configuration is missing or invalid."""


class TargetConflictError(Exception):
    CUSTOM_ERROR_MESSAGE = "Secret {}/{} is already reconciled for another binding"

    def __init__(self, namespace: str, name: str) -> None:
        super().__init__(self.CUSTOM_ERROR_MESSAGE.format(namespace, name))
        self.namespace = namespace
        self.name = name
