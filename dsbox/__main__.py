"""Command-line interface entrypoint for dsbox."""

from __future__ import annotations

import shlex
from typing import Optional

import click

from .config import get_config, reload_config
from .core.launcher import (
    DEFAULT_COMMAND,
    LaunchError,
    jupyter_command,
    launch,
    plan_launch,
    streamlit_command,
)
from .core.models import EnvAssignment, PortMapping
from .core.profiles import JUPYTER, STREAMLIT, load_profiles
from .runtime.docker import ContainerRuntimeError
from .utils.persistence import setup_logging
from .utils.ports import InvalidPortError, check_port_free, find_available_port


def _status(message: str) -> None:
    click.secho("[RUN]", fg="green", nl=False)
    click.echo(f" {message}")


def _info(message: str) -> None:
    click.secho("[INFO]", fg="blue", nl=False)
    click.echo(f" {message}")


def _error(message: str) -> None:
    click.secho("[ERROR]", fg="red", nl=False, err=True)
    click.echo(f" {message}", err=True)


def _parse_ports(ctx, param, values: tuple[str, ...]) -> list[PortMapping]:
    try:
        return [PortMapping.parse(value) for value in values]
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc


def _parse_env(ctx, param, values: tuple[str, ...]) -> list[EnvAssignment]:
    try:
        return [EnvAssignment.parse(value) for value in values]
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Show debug output.")
def cli(verbose: bool) -> None:
    """Run data science projects inside ds-* containers."""
    setup_logging(reload_config(), verbose=verbose)


@cli.command()
@click.argument("project_path")
@click.option("-i", "--image", default=None, help="Docker image to use.")
@click.option("-c", "--command", default=None, help="Command to run in the container.")
@click.option("-j", "--jupyter", is_flag=True, help="Start Jupyter Lab instead of bash.")
@click.option("-s", "--streamlit", "streamlit_app", default=None, help="Run a streamlit app file.")
@click.option(
    "-p",
    "--port",
    "ports",
    multiple=True,
    callback=_parse_ports,
    help="Additional HOST:CONTAINER port to expose (repeatable).",
)
@click.option(
    "-e",
    "--env",
    "env",
    multiple=True,
    callback=_parse_env,
    help="Environment variable KEY=VALUE (repeatable).",
)
@click.option("-n", "--name", default=None, help="Container name (default: project directory name).")
@click.option("--strict-ports", is_flag=True, help="Abort if no free host port is found.")
@click.option("--dry-run", is_flag=True, help="Print the docker command without running it.")
@click.pass_context
def run(
    ctx: click.Context,
    project_path: str,
    image: Optional[str],
    command: Optional[str],
    jupyter: bool,
    streamlit_app: Optional[str],
    ports: list[PortMapping],
    env: list[EnvAssignment],
    name: Optional[str],
    strict_ports: bool,
    dry_run: bool,
) -> None:
    """Run a project directory in a Docker container."""
    # --streamlit wins over --jupyter, which wins over --command
    service: Optional[str] = None
    if streamlit_app is not None:
        if not streamlit_app.strip():
            raise click.BadParameter("Streamlit requires an app file path", param_hint="--streamlit")
        command, service = streamlit_command(streamlit_app), STREAMLIT
    elif jupyter:
        command, service = jupyter_command(), JUPYTER
    command = command or DEFAULT_COMMAND

    try:
        plan = plan_launch(
            project_path,
            image=image,
            command=command,
            service=service,
            extra_ports=ports,
            env=env,
            name=name,
            strict_ports=strict_ports,
        )
    except (LaunchError, InvalidPortError) as exc:
        _error(str(exc))
        ctx.exit(1)

    args = plan.docker_args()
    _info(f"Container name: {plan.name}")
    _info(f"Project path: {plan.project_dir}")
    _info(f"Image: {plan.image}")
    _info(f"Command: {plan.command}")
    for service_port in plan.service_ports:
        _info(f"{service_port.service.name.capitalize()} port: {service_port.host_port}")

    urls = plan.access_urls()
    if service and service in urls:
        label = "Jupyter Lab" if service == JUPYTER else "Streamlit app"
        _status(f"{label} will be available at: {urls[service]}")
    elif urls and not service:
        joined = " | ".join(f"{key.capitalize()} {url}" for key, url in urls.items())
        _status(f"Services available at: {joined}")

    if dry_run:
        click.echo(shlex.join(args))
        return

    _status("Running project in Docker container...")
    try:
        code = launch(plan)
    except LaunchError as exc:
        _error(str(exc))
        _info("Build the base images first (ds-minimal, ds-extended)")
        ctx.exit(1)
    except ContainerRuntimeError as exc:
        _error(str(exc))
        ctx.exit(1)
    ctx.exit(code)


@cli.group()
def ports() -> None:
    """Inspect host port availability."""


@ports.command("check")
@click.argument("port", type=int)
@click.pass_context
def check_port(ctx: click.Context, port: int) -> None:
    """Exit 0 if PORT is free, 1 if occupied."""
    try:
        free = check_port_free(port)
    except InvalidPortError as exc:
        raise click.BadParameter(str(exc), param_hint="PORT") from exc
    click.echo(f"{port}: {'free' if free else 'in use'}")
    ctx.exit(0 if free else 1)


@ports.command("find")
@click.argument("start", type=int)
@click.option("--max-attempts", type=int, default=None, help="Number of ports to try.")
@click.pass_context
def find_port(ctx: click.Context, start: int, max_attempts: Optional[int]) -> None:
    """Print the first free port at or after START."""
    if max_attempts is None:
        max_attempts = get_config().ports.max_attempts
    try:
        port, found = find_available_port(start, max_attempts)
    except InvalidPortError as exc:
        raise click.BadParameter(str(exc)) from exc
    click.echo(port)
    if not found:
        last = min(start + max_attempts - 1, 65535)
        click.secho("[WARNING]", fg="yellow", nl=False, err=True)
        click.echo(
            f" No free port in {start}-{last}, returning {start}",
            err=True,
        )
        ctx.exit(1)


@cli.command(name="profiles")
def list_profiles() -> None:
    """List image profiles and the services they expose."""
    for profile in load_profiles(get_config().profiles).values():
        services = ", ".join(
            f"{spec.name}:{spec.container_port}" for spec in profile.services
        )
        click.echo(f"{profile.name}: {profile.image} ({services or 'no services'})")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
