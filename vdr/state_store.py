from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import StateDecodeError, StateNotFound, StateWriteError
from .events import utc_now
from .models import Version

log = logging.getLogger(__name__)

SCHEMA_VERSION = 1


@dataclass
class ReconciliationState:
    current_version: Version
    # Fields written alongside the version; unknown keys in older/newer
    # records are ignored on load.
    extra: dict[str, Any] = field(default_factory=dict)


class StateStore:
    """One ``<container name>.json`` record per container under `directory`.

    Writes go to a temp file in the same directory and are moved into place
    with ``os.replace``, so a crash leaves either the old or the new record.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def path_for(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def load(self, name: str) -> ReconciliationState:
        path = self.path_for(name)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise StateNotFound(f"No saved state for {name} at {path}") from e
        except OSError as e:
            raise StateDecodeError(f"Could not read state file {path}: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StateDecodeError(f"Could not decode state file {path}: {e}") from e
        if not isinstance(data, dict) or "current_version" not in data:
            raise StateDecodeError(f"State file {path} has no current_version")

        version = data.pop("current_version")
        if isinstance(version, bool) or not isinstance(version, (int, str)):
            raise StateDecodeError(f"State file {path} has an invalid current_version: {version!r}")
        return ReconciliationState(current_version=version, extra=data)

    def save(self, name: str, state: ReconciliationState, **fields: Any) -> Path:
        path = self.path_for(name)
        record = {
            **state.extra,
            **fields,
            "name": name,
            "current_version": state.current_version,
            "schema": SCHEMA_VERSION,
            "saved_at": utc_now(),
        }
        tmp_name: str | None = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=self.directory)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(record, fh, indent=2, sort_keys=True)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            raise StateWriteError(f"Could not save state for {name} to {path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    log.debug("Could not remove temp state file %s", tmp_name)
        log.debug("Saved state for %s to %s", name, path)
        return path
