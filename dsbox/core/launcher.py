"""Turn a project directory and launch options into a ``docker run`` plan."""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from dsbox.config import Config, get_config
from dsbox.core.models import EnvAssignment, PortMapping
from dsbox.core.profiles import (
    JUPYTER,
    STREAMLIT,
    ImageProfile,
    ServiceSpec,
    load_profiles,
    resolve_profile,
)
from dsbox.runtime.docker import (
    ContainerSettings,
    build_run_args,
    image_exists,
    run_container,
)
from dsbox.utils.ports import (
    AllocationResult,
    PortProbe,
    default_probes,
    find_available_port,
)

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = "bash"


class LaunchError(RuntimeError):
    """Raised when a project cannot be launched."""


class PortAllocationError(LaunchError):
    """Raised when no free host port is found and the policy is to abort."""


def jupyter_command(port: int = 8888) -> str:
    return f"jupyter lab --ip=0.0.0.0 --port={port} --no-browser --allow-root"


def streamlit_command(app: str, port: int = 8501) -> str:
    return f"streamlit run {shlex.quote(app)} --server.address=0.0.0.0 --server.port={port}"


@dataclass(frozen=True)
class ServicePort:
    service: ServiceSpec
    allocation: AllocationResult

    @property
    def host_port(self) -> int:
        return self.allocation.port

    @property
    def found(self) -> bool:
        return self.allocation.found

    @property
    def requested(self) -> int:
        return self.service.default_host_port

    @property
    def substituted(self) -> bool:
        return self.found and self.host_port != self.requested

    def mapping(self, host_ip: str | None) -> PortMapping:
        return PortMapping(
            host_port=self.host_port,
            container_port=self.service.container_port,
            host_ip=host_ip or None,
        )


@dataclass
class LaunchPlan:
    name: str
    image: str
    project_dir: Path
    command: str
    profile: ImageProfile
    settings: ContainerSettings
    service_ports: list[ServicePort] = field(default_factory=list)
    extra_ports: list[PortMapping] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)

    def service_port(self, name: str) -> ServicePort | None:
        for service_port in self.service_ports:
            if service_port.service.name == name:
                return service_port
        return None

    def port_mappings(self) -> list[PortMapping]:
        mappings = [sp.mapping(self.settings.publish_host) for sp in self.service_ports]
        return mappings + list(self.extra_ports)

    def docker_args(self) -> list[str]:
        return build_run_args(
            image=self.image,
            name=self.name,
            project_dir=self.project_dir,
            command=self.command,
            settings=self.settings,
            ports=self.port_mappings(),
            env=list(self.env.items()),
        )

    def access_urls(self) -> dict[str, str]:
        urls: dict[str, str] = {}
        jupyter = self.service_port(JUPYTER)
        if jupyter:
            urls[JUPYTER] = f"http://localhost:{jupyter.host_port}/lab"
        streamlit = self.service_port(STREAMLIT)
        if streamlit:
            urls[STREAMLIT] = f"http://localhost:{streamlit.host_port}"
        return urls


def resolve_project_dir(project_path: str | Path, projects_dir: Path | None = None) -> Path:
    """Resolve ``project_path`` against ``projects_dir`` (default: cwd)."""
    path = Path(project_path).expanduser()
    if not path.is_absolute():
        path = (projects_dir or Path.cwd()) / path
    path = path.resolve()
    if not path.is_dir():
        raise LaunchError(f"Project directory not found: {path}")
    return path


def _title(name: str) -> str:
    return name.capitalize()


def allocate_service_ports(
    services: Iterable[ServiceSpec],
    *,
    max_attempts: int,
    on_exhausted: str = "warn",
    probes: Sequence[PortProbe] | None = None,
    reserved: Iterable[int] = (),
) -> list[ServicePort]:
    """Pick a host port for each service in order.

    Ports in ``reserved`` and ports handed to earlier services are treated as
    occupied so two mappings never share a host port.
    """
    claimed = set(reserved)

    def is_claimed(port: int) -> bool:
        return port in claimed

    base_probes = tuple(default_probes() if probes is None else probes)
    result: list[ServicePort] = []
    for service in services:
        requested = service.default_host_port
        allocation = find_available_port(
            requested, max_attempts, probes=(is_claimed, *base_probes)
        )
        port, found = allocation
        if not found:
            last = min(requested + max_attempts - 1, 65535)
            message = (
                f"No free port for {_title(service.name)} in {requested}-{last}"
            )
            if on_exhausted == "abort":
                raise PortAllocationError(message)
            logger.warning("%s, using port %d anyway", message, port)
        elif port != requested:
            logger.warning(
                "Port %d in use, using port %d for %s",
                requested,
                port,
                _title(service.name),
            )
        claimed.add(port)
        result.append(ServicePort(service, allocation))
    return result


def _detect_service(command: str) -> str | None:
    for name in (JUPYTER, STREAMLIT):
        if name in command:
            return name
    return None


def plan_launch(
    project_path: str | Path,
    *,
    image: str | None = None,
    command: str = DEFAULT_COMMAND,
    service: str | None = None,
    extra_ports: Sequence[PortMapping] = (),
    env: Sequence[EnvAssignment] = (),
    name: str | None = None,
    strict_ports: bool = False,
    config: Config | None = None,
    probes: Sequence[PortProbe] | None = None,
) -> LaunchPlan:
    """Build a launch plan, allocating host ports for the image's services.

    ``service`` names the service the command starts (``jupyter`` or
    ``streamlit``); it only affects diagnostics.
    """
    config = config or get_config()
    image = image or config.container.default_image
    project_dir = resolve_project_dir(project_path, config.paths.projects_dir)
    name = name or project_dir.name

    profiles = load_profiles(config.profiles)
    profile = resolve_profile(image, profiles)
    service = service or _detect_service(command)
    if service and profile.service(service) is None:
        logger.warning(
            "%s requires an image that provides it (e.g. ds-extended). Current image: %s",
            _title(service),
            image,
        )

    on_exhausted = "abort" if strict_ports else config.ports.on_exhausted
    service_ports = allocate_service_ports(
        profile.services,
        max_attempts=config.ports.max_attempts,
        on_exhausted=on_exhausted,
        probes=probes,
        reserved=[mapping.host_port for mapping in extra_ports],
    )

    settings = ContainerSettings.from_config(config)
    workspace = settings.workspace
    base_env = {
        "PYTHONUNBUFFERED": "1",
        "PYTHONDONTWRITEBYTECODE": "1",
        "PYTHONPATH": f"{workspace}:{workspace}/src",
        "PROJECT_NAME": name,
    }
    for assignment in env:
        base_env[assignment.key] = assignment.value

    plan = LaunchPlan(
        name=name,
        image=image,
        project_dir=project_dir,
        command=command,
        profile=profile,
        settings=settings,
        service_ports=service_ports,
        extra_ports=list(extra_ports),
        env=base_env,
    )
    logger.info(
        "Planned %s from %s with image %s (profile %s)",
        name,
        project_dir,
        image,
        profile.name,
    )
    return plan


def launch(plan: LaunchPlan) -> int:
    """Verify the image exists and run the container; returns its exit code."""
    if not image_exists(plan.image):
        raise LaunchError(f"Docker image not found: {plan.image}")
    return run_container(plan.docker_args())


__all__ = [
    "DEFAULT_COMMAND",
    "LaunchError",
    "LaunchPlan",
    "PortAllocationError",
    "ServicePort",
    "allocate_service_ports",
    "jupyter_command",
    "launch",
    "plan_launch",
    "resolve_project_dir",
    "streamlit_command",
]
