from __future__ import annotations

import logging
import subprocess
from typing import Any

import docker
import requests
from docker.errors import DockerException, NotFound

from .errors import ContainerNotFound, RuntimeUnavailable

log = logging.getLogger(__name__)

DEFAULT_UNIX_SOCKET = "unix:///var/run/docker.sock"

# The SDK raises transport failures (daemon gone, socket missing) straight
# from requests, unwrapped.
DOCKER_ERRORS = (DockerException, requests.exceptions.RequestException)


def make_client(connect_mode: str = "unix_socket", docker_url: str | None = None) -> docker.DockerClient:
    """Build a docker client for one of the supported connect modes.

    - unix_socket: local daemon socket (or `docker_url` if given)
    - http: plain TCP, `docker_url` or DOCKER_HOST
    - ssl: TLS settings from DOCKER_HOST / DOCKER_CERT_PATH / DOCKER_TLS_VERIFY
    """
    if connect_mode == "unix_socket":
        return docker.DockerClient(base_url=docker_url or DEFAULT_UNIX_SOCKET)
    if connect_mode == "http":
        if docker_url:
            return docker.DockerClient(base_url=docker_url)
        return docker.from_env()
    if connect_mode == "ssl":
        return docker.from_env()
    raise ValueError(f"Unknown docker connect mode: {connect_mode}")


class DockerRuntime:
    """The container runtime as the reconciler sees it.

    Every docker SDK error is translated to RuntimeUnavailable (or its
    ContainerNotFound subclass). Methods return only on success.
    """

    def __init__(self, client: docker.DockerClient):
        self.client = client

    def _get(self, name: str) -> Any:
        try:
            return self.client.containers.get(name)
        except NotFound as e:
            raise ContainerNotFound(f"No such container: {name}") from e
        except DOCKER_ERRORS as e:
            raise RuntimeUnavailable(f"Inspecting {name} failed: {e}") from e

    def is_running(self, name: str) -> bool:
        cont = self._get(name)
        state = cont.attrs.get("State")
        if not isinstance(state, dict):
            raise RuntimeUnavailable(f"Inspecting {name} failed: no state returned by docker")
        return state.get("Running") is True

    def restart(self, name: str) -> None:
        cont = self._get(name)
        try:
            cont.restart()
        except DOCKER_ERRORS as e:
            raise RuntimeUnavailable(f"Restarting {name} failed: {e}") from e
        log.info("Container %s restarted", name)

    def pull(self, image: str, tag: str) -> str:
        try:
            img = self.client.images.pull(image, tag=tag)
        except DOCKER_ERRORS as e:
            raise RuntimeUnavailable(f"Pulling {image}:{tag} failed: {e}") from e
        log.info("Pulled %s:%s (%s)", image, tag, getattr(img, "id", "?"))
        return f"{image}:{tag}"

    def build(self, context_path: str, tag: str) -> str:
        try:
            self.client.images.build(path=context_path, tag=tag, rm=True)
        except (*DOCKER_ERRORS, TypeError) as e:
            raise RuntimeUnavailable(f"Building {context_path} as {tag} failed: {e}") from e
        log.info("Built %s from %s", tag, context_path)
        return tag

    def recreate(self, name: str, image_ref: str) -> None:
        """Replace container `name` with one created from `image_ref`.

        The old container is renamed aside until the new one is running and
        is put back on any failure.
        """
        cont = self._get(name)
        config = cont.attrs.get("Config") or {}
        host_config = cont.attrs.get("HostConfig")
        exposed = config.get("ExposedPorts")
        networks = (cont.attrs.get("NetworkSettings") or {}).get("Networks") or {}
        api = self.client.api

        create_kwargs = {
            "image": image_ref,
            "name": name,
            "command": config.get("Cmd"),
            "entrypoint": config.get("Entrypoint"),
            "environment": config.get("Env"),
            "healthcheck": config.get("Healthcheck"),
            "host_config": host_config,
            "hostname": config.get("Hostname"),
            "labels": config.get("Labels"),
            "ports": list(exposed.keys()) if isinstance(exposed, dict) else None,
            "stop_signal": config.get("StopSignal"),
            "tty": config.get("Tty"),
            "user": config.get("User"),
            "volumes": config.get("Volumes"),
            "working_dir": config.get("WorkingDir"),
        }
        if networks:
            endpoints = {
                net: api.create_endpoint_config(aliases=cfg.get("Aliases"), links=cfg.get("Links"))
                for net, cfg in networks.items()
            }
            create_kwargs["networking_config"] = api.create_networking_config(endpoints)
        create_kwargs = {k: v for k, v in create_kwargs.items() if v is not None}

        old_name = f"{name}-vdr-old-{cont.id[:8]}"
        new_id: str | None = None
        renamed = False
        try:
            api.rename(cont.id, old_name)
            renamed = True
            created = api.create_container(**create_kwargs)
            new_id = created.get("Id")
            if new_id is None:
                raise DockerException("create_container returned no Id")
            cont.stop()
            api.start(new_id)
        except DOCKER_ERRORS as e:
            log.error("Recreating %s from %s failed, rolling back: %s", name, image_ref, e)
            if new_id is not None:
                try:
                    api.remove_container(new_id, force=True)
                except DOCKER_ERRORS:
                    log.debug("Cleanup failed for new container %s", new_id)
            try:
                if renamed:
                    api.rename(cont.id, name)
                cont.start()
            except DOCKER_ERRORS as rollback_error:
                log.warning("Rollback failed for %s: %s", name, rollback_error)
            raise RuntimeUnavailable(f"Recreating {name} from {image_ref} failed: {e}") from e

        try:
            cont.remove()
        except DOCKER_ERRORS:
            log.debug("Could not remove old container %s", old_name)
        log.info("Container %s recreated from %s", name, image_ref)

    def run_command(self, cwd: str, command: str, timeout_s: float | None = None) -> int:
        """Run an operator-supplied shell command. Returns its exit status."""
        try:
            proc = subprocess.run(command, shell=True, cwd=cwd, timeout=timeout_s, check=False)
        except subprocess.TimeoutExpired as e:
            raise RuntimeUnavailable(f"Command timed out after {timeout_s}s: {command}") from e
        except OSError as e:
            raise RuntimeUnavailable(f"Command could not start in {cwd}: {e}") from e
        return proc.returncode
