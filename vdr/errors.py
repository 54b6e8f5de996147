from __future__ import annotations


class VdrError(Exception):
    pass


class ConfigError(VdrError):
    """Invalid or missing startup configuration. The only fatal error."""


class TransientExternalFailure(VdrError):
    """An external service could not answer this tick. Retried next tick."""


class OracleUnavailable(TransientExternalFailure):
    pass


class RuntimeUnavailable(TransientExternalFailure):
    pass


class ContainerNotFound(RuntimeUnavailable):
    pass


class ActionFailed(VdrError):
    def __init__(self, kind: str, message: str):
        super().__init__(f"{kind} action failed: {message}")
        self.kind = kind


class StateStoreError(VdrError):
    pass


class StateNotFound(StateStoreError):
    pass


class StateDecodeError(StateStoreError):
    pass


class StateWriteError(StateStoreError):
    pass


class PersistedStateCorrupt(VdrError):
    """A container's snapshot exists but cannot be used; the container is excluded."""
