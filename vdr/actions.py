from __future__ import annotations

import logging
from typing import Callable, Protocol

from .errors import ActionFailed, TransientExternalFailure
from .models import BuildAction, ContainerDescriptor, CustomAction, PullAction

log = logging.getLogger(__name__)


class Runtime(Protocol):
    def is_running(self, name: str) -> bool: ...

    def restart(self, name: str) -> None: ...

    def pull(self, image: str, tag: str) -> str: ...

    def build(self, context_path: str, tag: str) -> str: ...

    def recreate(self, name: str, image_ref: str) -> None: ...

    def run_command(self, cwd: str, command: str, timeout_s: float | None = None) -> int: ...


def _restart(desc: ContainerDescriptor, runtime: Runtime) -> None:
    # Images with an update step in their entrypoint pick up the new version on restart.
    runtime.restart(desc.name)


def _pull(desc: ContainerDescriptor, runtime: Runtime) -> None:
    action = desc.action
    assert isinstance(action, PullAction)
    image_ref = runtime.pull(action.image, action.tag)
    runtime.recreate(desc.name, image_ref)


def _build(desc: ContainerDescriptor, runtime: Runtime) -> None:
    action = desc.action
    assert isinstance(action, BuildAction)
    tag = desc.options.get("tag") or f"{desc.name}:latest"
    image_ref = runtime.build(action.context_path, tag)
    runtime.recreate(desc.name, image_ref)


def _custom(desc: ContainerDescriptor, runtime: Runtime) -> None:
    action = desc.action
    assert isinstance(action, CustomAction)
    timeout_s: float | None = None
    if desc.options.get("timeout_s"):
        try:
            timeout_s = float(desc.options["timeout_s"])
        except ValueError:
            log.warning("Ignoring invalid timeout_s option for %s: %r", desc.name, desc.options["timeout_s"])
    status = runtime.run_command(action.chdir, action.command, timeout_s=timeout_s)
    if status != 0:
        raise ActionFailed("custom", f"command exited with status {status}")


HANDLERS: dict[str, Callable[[ContainerDescriptor, Runtime], None]] = {
    "restart": _restart,
    "pull": _pull,
    "build": _build,
    "custom": _custom,
}


def dispatch(desc: ContainerDescriptor, runtime: Runtime) -> None:
    """Run the descriptor's action to completion or raise ActionFailed.

    Pull and build only count once the container runs the new image; a
    pulled-but-not-applied image is a failure. Every handler is safe to
    re-run after a partial failure.
    """
    kind = desc.action.kind
    handler = HANDLERS.get(kind)
    if handler is None:
        raise ActionFailed(kind, "no handler registered")
    log.debug("Dispatching %s action for %s", kind, desc.name)
    try:
        handler(desc, runtime)
    except TransientExternalFailure as e:
        raise ActionFailed(kind, str(e)) from e
