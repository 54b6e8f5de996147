from __future__ import annotations

from dataclasses import dataclass, replace
from threading import Lock

from .events import utc_now
from .models import Version


@dataclass(frozen=True)
class ContainerStatus:
    name: str
    catalog_id: int
    action: str
    phase: str = "pending"  # pending|active|excluded
    current_version: Version | None = None
    last_outcome: str | None = None
    last_reason: str | None = None
    last_checked_at: str | None = None


class FleetStatus:
    """In-memory per-container status shared between the scheduler and the API."""

    def __init__(self) -> None:
        self.lock = Lock()
        self._by_name: dict[str, ContainerStatus] = {}

    def register(self, name: str, catalog_id: int, action: str) -> None:
        with self.lock:
            self._by_name.setdefault(name, ContainerStatus(name=name, catalog_id=catalog_id, action=action))

    def update(self, name: str, **changes) -> ContainerStatus:
        with self.lock:
            cur = self._by_name[name]
            if "last_outcome" in changes:
                changes.setdefault("last_checked_at", utc_now())
            st = replace(cur, **changes)
            self._by_name[name] = st
            return st

    def get(self, name: str) -> ContainerStatus | None:
        with self.lock:
            return self._by_name.get(name)

    def list(self) -> list[ContainerStatus]:
        with self.lock:
            return list(self._by_name.values())
