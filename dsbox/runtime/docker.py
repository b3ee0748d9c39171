"""Thin wrappers over the Docker engine used by the launcher.

Inspection (published ports, image lookup) goes through the Docker SDK. The
container itself is started with the ``docker`` CLI so the session stays
attached to the user's terminal.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

import docker
import requests
from docker.errors import DockerException, ImageNotFound

from dsbox.config import Config
from dsbox.core.models import PortMapping
from dsbox.utils.ports import ProbeUnavailable

logger = logging.getLogger(__name__)

DOCKER_CLI = "docker"


class ContainerRuntimeError(RuntimeError):
    """Raised when the Docker engine or CLI cannot be reached."""


@dataclass(frozen=True)
class ContainerSettings:
    """Deployment settings shared by every launched container."""

    workspace: str = "/workspace/project"
    user: str = "developer"
    publish_host: str = "127.0.0.1"
    volumes: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Config) -> "ContainerSettings":
        return cls(
            workspace=config.container.workspace,
            user=config.container.user,
            publish_host=config.ports.publish_host,
            volumes=dict(config.container.volumes),
        )


def _host_ports(port_bindings: Mapping[str, object] | None) -> set[int]:
    ports: set[int] = set()
    for bindings in (port_bindings or {}).values():
        # Exposed but unpublished ports map to None
        for binding in bindings or []:
            host_port = binding.get("HostPort") if isinstance(binding, dict) else None
            if host_port:
                try:
                    ports.add(int(host_port))
                except ValueError:
                    continue
    return ports


def published_ports() -> set[int]:
    """Return host ports published by running containers."""
    try:
        client = docker.from_env()
    except DockerException as exc:
        raise ProbeUnavailable(f"docker engine unavailable: {exc}") from exc

    try:
        containers = client.containers.list()
        ports: set[int] = set()
        for container in containers:
            ports |= _host_ports(container.ports)
        return ports
    except (DockerException, requests.exceptions.RequestException) as exc:
        raise ProbeUnavailable(f"cannot list containers: {exc}") from exc
    finally:
        client.close()


def is_published(port: int) -> bool:
    return port in published_ports()


def image_exists(image: str) -> bool:
    """Check whether ``image`` is available locally."""
    try:
        client = docker.from_env()
    except DockerException as exc:
        raise ContainerRuntimeError(f"Cannot connect to Docker: {exc}") from exc

    try:
        client.images.get(image)
        return True
    except ImageNotFound:
        return False
    except (DockerException, requests.exceptions.RequestException) as exc:
        raise ContainerRuntimeError(f"Cannot inspect image {image}: {exc}") from exc
    finally:
        client.close()


def build_run_args(
    *,
    image: str,
    name: str,
    project_dir: Path,
    command: str,
    settings: ContainerSettings,
    ports: Sequence[PortMapping] = (),
    env: Sequence[tuple[str, str]] = (),
) -> list[str]:
    """Build the ``docker run`` argument vector for an interactive session."""
    args = [DOCKER_CLI, "run", "-it", "--rm", "--name", name]
    args += ["-v", f"{project_dir}:{settings.workspace}:rw"]
    for volume, target in settings.volumes.items():
        args += ["-v", f"{volume}:{target}"]
    args += ["-w", settings.workspace]
    for mapping in ports:
        args += ["-p", mapping.to_publish_arg()]
    for key, value in env:
        args += ["-e", f"{key}={value}"]
    args += ["--user", settings.user, image, "bash", "-c", command]
    return args


def run_container(args: Sequence[str]) -> int:
    """Run the container in the foreground and return its exit code."""
    logger.info("Executing: %s", " ".join(args))
    try:
        result = subprocess.run(list(args))
    except FileNotFoundError as exc:
        raise ContainerRuntimeError(f"{DOCKER_CLI} CLI not found on PATH") from exc
    logger.info("Container exited with code %d", result.returncode)
    return result.returncode


__all__ = [
    "ContainerRuntimeError",
    "ContainerSettings",
    "build_run_args",
    "image_exists",
    "is_published",
    "published_ports",
    "run_container",
]
