from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, Protocol

from .actions import Runtime, dispatch
from .errors import (
    ActionFailed,
    OracleUnavailable,
    PersistedStateCorrupt,
    RuntimeUnavailable,
    StateNotFound,
    StateStoreError,
    StateWriteError,
)
from .events import EventLog
from .models import ContainerDescriptor, Version
from .state_store import ReconciliationState, StateStore
from .status import FleetStatus

log = logging.getLogger(__name__)


class Oracle(Protocol):
    def fetch_version(self, catalog_id: int) -> Version: ...


class Notifier(Protocol):
    def updated(self, container: str, old_version: Any, new_version: Any) -> None: ...

    def excluded(self, container: str, detail: str) -> None: ...


class OutcomeKind(str, Enum):
    UP_TO_DATE = "up_to_date"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"
    # Not reconciled this tick: still waiting for a first oracle answer,
    # or dropped after a corrupt snapshot.
    PENDING = "pending"
    EXCLUDED = "excluded"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    version: Version | None = None
    reason: str | None = None
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.kind is OutcomeKind.FAILED


class ContainerReconciler:
    """Owns one container's tracked version.

    `current_version` only ever takes a value the oracle returned, and only
    changes after the configured action completed. All work for the
    container goes through `step()`, which holds the container's lock.
    """

    def __init__(
        self,
        descriptor: ContainerDescriptor,
        store: StateStore,
        oracle: Oracle,
        runtime: Runtime,
        events: EventLog | None = None,
        status: FleetStatus | None = None,
        notifier: Notifier | None = None,
    ):
        self.descriptor = descriptor
        self.store = store
        self.oracle = oracle
        self.runtime = runtime
        self.events = events
        self.status = status
        self.notifier = notifier

        self.lock = Lock()
        self.state: ReconciliationState | None = None
        self.excluded = False
        # Set when the in-memory version is ahead of the saved record.
        self.dirty = False

        if self.status is not None:
            self.status.register(descriptor.name, descriptor.catalog_id, descriptor.action.kind)

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def bootstrapped(self) -> bool:
        return self.state is not None

    def _event(self, level: str, message: str, version: Any = None) -> None:
        if self.events is not None:
            self.events.log_event(level, message, container=self.name, version=version)
        else:
            log.log(logging.getLevelName(level), "[%s] %s", self.name, message)

    def _record(self, **changes) -> None:
        if self.status is not None:
            self.status.update(self.name, **changes)

    def _persist(self) -> bool:
        if self.state is None:
            raise RuntimeError(f"{self.name} is not bootstrapped")
        try:
            self.store.save(self.name, self.state, catalog_id=self.descriptor.catalog_id)
        except StateWriteError as e:
            self.dirty = True
            self._event("ERROR", f"FAILED saving state to disk: {e}", self.state.current_version)
            return False
        self.dirty = False
        return True

    def bootstrap(self) -> ReconciliationState:
        """Hydrate from the state store, or seed from the oracle.

        Raises PersistedStateCorrupt when a snapshot exists but cannot be
        used (the container is then excluded for the process lifetime) and
        OracleUnavailable when there is no snapshot and the oracle cannot
        answer (bootstrap is retried next tick).
        """
        d = self.descriptor
        self._event("DEBUG", f"Initialising container (appid {d.catalog_id})")

        if self.store.exists(self.name):
            try:
                state = self.store.load(self.name)
            except StateNotFound:
                state = None
            except StateStoreError as e:
                self.excluded = True
                self._event("ERROR", f"FAILED to load saved state, container excluded: {e}")
                self._record(phase="excluded", last_outcome=OutcomeKind.EXCLUDED.value, last_reason=str(e))
                if self.notifier is not None:
                    self.notifier.excluded(self.name, str(e))
                raise PersistedStateCorrupt(f"{self.name}: {e}") from e
            if state is not None:
                self.state = state
                self._event("INFO", f"Saved state found at {self.store.path_for(self.name)}", state.current_version)
                self._record(phase="active", current_version=state.current_version)
                return state

        version = self.oracle.fetch_version(d.catalog_id)
        self.state = ReconciliationState(current_version=version)
        self._event("INFO", f"Initialised container (appid {d.catalog_id}): version {version} found", version)
        self._persist()
        self._record(phase="active", current_version=version)
        return self.state

    def reconcile(self) -> Outcome:
        """One drift check for a bootstrapped container."""
        if self.state is None:
            raise RuntimeError(f"{self.name} is not bootstrapped")
        d = self.descriptor
        current = self.state.current_version

        try:
            new_version = self.oracle.fetch_version(d.catalog_id)
        except OracleUnavailable as e:
            self._event("WARN", f"FAILED to check version (appid {d.catalog_id}): {e}", current)
            return Outcome(OutcomeKind.FAILED, current, "version check failed", e)

        if new_version == current:
            if self.dirty and not self._persist():
                return Outcome(OutcomeKind.FAILED, current, "state not saved")
            self._event("DEBUG", f"UP-TO-DATE at version {current}", current)
            return Outcome(OutcomeKind.UP_TO_DATE, current)

        self._event("INFO", f"Version changed {current} -> {new_version}", new_version)

        try:
            running = self.runtime.is_running(self.name)
        except RuntimeUnavailable as e:
            self._event("WARN", f"FAILED inspecting container: {e}", current)
            return Outcome(OutcomeKind.FAILED, current, "inspect failed", e)
        if not running:
            self._event("INFO", "Container not running, skipping update action", current)
            return Outcome(OutcomeKind.SKIPPED, current, "not running")

        try:
            dispatch(d, self.runtime)
        except ActionFailed as e:
            self._event("ERROR", f"FAILED to update via {d.action.kind}: {e}", current)
            return Outcome(OutcomeKind.FAILED, current, "action failed", e)

        self.state.current_version = new_version
        self._event("INFO", f"Successfully updated via {d.action.kind}: {current} -> {new_version}", new_version)
        if self.notifier is not None:
            self.notifier.updated(self.name, current, new_version)
        if not self._persist():
            return Outcome(OutcomeKind.FAILED, new_version, "updated but state not saved")
        return Outcome(OutcomeKind.UPDATED, new_version)

    def step(self) -> Outcome:
        """Bootstrap if needed, then reconcile. Safe to call from any thread."""
        with self.lock:
            if self.excluded:
                return Outcome(OutcomeKind.EXCLUDED, reason="corrupt saved state")
            if self.state is None:
                try:
                    self.bootstrap()
                except PersistedStateCorrupt as e:
                    return Outcome(OutcomeKind.EXCLUDED, reason=str(e), error=e)
                except OracleUnavailable as e:
                    self._event("WARN", f"FAILED to initialise container (appid {self.descriptor.catalog_id}): {e}")
                    self._record(last_outcome=OutcomeKind.PENDING.value, last_reason=str(e))
                    return Outcome(OutcomeKind.PENDING, reason="bootstrap: version check failed", error=e)

            outcome = self.reconcile()
            self._record(
                current_version=self.state.current_version if self.state else None,
                last_outcome=outcome.kind.value,
                last_reason=outcome.reason,
            )
            return outcome
