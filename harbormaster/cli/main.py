from __future__ import annotations

from collections.abc import Callable, Sequence
from functools import wraps
from pathlib import Path
from typing import ParamSpec, TypeVar

import typer  # type: ignore[import]

from harbormaster.provisioning import DescriptorFileError, load_descriptor
from harbormaster.provisioning.catalog import SERVICES
from harbormaster.utils.docker import DockerError, DockerRuntime
from harbormaster.utils.log_utils import logger

from . import up
from .helpers import build_provisioner, load_settings, provision_all


app = typer.Typer(
    help="Provision self-hosted services as Docker containers",
)


_P = ParamSpec("_P")
_T = TypeVar("_T")


def _interruptible(handler: Callable[_P, _T]) -> Callable[_P, _T]:
    @wraps(handler)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _T:
        try:
            return handler(*args, **kwargs)
        except KeyboardInterrupt as err:
            logger.info("Interrupted by user")
            raise typer.Exit(code=130) from err

    return wrapper


_ENV_FILE_OPTION = typer.Option(
    None,
    "--env-file",
    help="Path to a .env file with HARBORMASTER_* settings.",
)


@app.command("services")
def services_command() -> int:
    """List the services that `up` can provision."""
    for key in sorted(SERVICES):
        doc = (SERVICES[key].__doc__ or "").strip().splitlines()
        logger.info(f"{key:<12} {doc[0] if doc else ''}")
    return 0


@app.command("up")
@_interruptible
def up_command(
    service: str = typer.Argument(
        ...,
        help=f"Service to provision. Choices: {', '.join(up.SERVICE_CHOICES)}.",
    ),
    name: str | None = typer.Option(None, "--name", help="Override the container name."),
    port: int | None = typer.Option(
        None,
        "--port",
        help="Host port for the service's main endpoint (HTTP for nginx, admin UI for pihole).",
    ),
    data_root: Path | None = typer.Option(
        None,
        "--data-root",
        help="Base directory for host volumes. Defaults to HARBORMASTER_DATA_ROOT.",
        file_okay=False,
        dir_okay=True,
    ),
    gpu: str | None = typer.Option(
        None,
        "--gpu",
        help="GPU mode for the langchain image: nvidia, amd or none.",
    ),
    model: str | None = typer.Option(None, "--model", help="Model served by openllm."),
    image: str | None = typer.Option(None, "--image", help="Override the image reference."),
    https_port: int | None = typer.Option(None, "--https-port", help="HTTPS host port for nginx."),
    no_https: bool = typer.Option(False, "--no-https", help="Publish nginx on HTTP only."),
    upstream: str | None = typer.Option(
        None, "--upstream", help="Upstream URL written to the default nginx config."
    ),
    with_tunnel: bool = typer.Option(
        False,
        "--with-tunnel",
        help="Also deploy a Cloudflare tunnel sidecar after nginx.",
    ),
    timezone: str | None = typer.Option(None, "--timezone", help="TZ for pihole."),
    web_password: str | None = typer.Option(
        None, "--web-password", help="Admin password for pihole."
    ),
    env_file: str | None = _ENV_FILE_OPTION,
) -> int:
    """Provision a catalog service."""
    settings = load_settings(env_file)
    options = up.UpOptions(
        service=service,
        name=name,
        port=port,
        data_root=data_root,
        gpu=gpu,
        model=model,
        https_port=https_port,
        no_https=no_https,
        upstream=upstream,
        with_tunnel=with_tunnel,
        timezone=timezone,
        web_password=web_password,
        image=image,
    )
    result = up.run(options, settings)
    if result != 0:
        raise typer.Exit(code=result)
    return result


@app.command("apply")
@_interruptible
def apply_command(
    descriptor_file: Path = typer.Argument(
        ...,
        help="JSON service descriptor.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    env_file: str | None = _ENV_FILE_OPTION,
) -> int:
    """Provision the service described by a JSON file."""
    settings = load_settings(env_file)
    try:
        descriptor = load_descriptor(descriptor_file)
    except DescriptorFileError as e:
        logger.error(f"Invalid descriptor file {descriptor_file}: {e}")
        raise typer.Exit(code=1) from e
    result = provision_all(build_provisioner(settings), [descriptor])
    if result != 0:
        raise typer.Exit(code=result)
    return result


@app.command("status")
def status_command(
    name: str = typer.Argument(..., help="Container name."),
    env_file: str | None = _ENV_FILE_OPTION,
) -> int:
    """Show the runtime state of a named container."""
    load_settings(env_file)
    try:
        containers = DockerRuntime().list_containers(name)
    except DockerError as e:
        logger.error(str(e))
        raise typer.Exit(code=1) from e
    if not containers:
        logger.info(f"No container named '{name}'")
        raise typer.Exit(code=1)
    for c in containers:
        ports = ", ".join(f"{p}/{proto}" for p, proto in c.published) or "-"
        logger.info(f"{c.name}  {c.state}  {c.id[:12]}  image={c.image or '-'}  ports={ports}")
    if not any(c.running for c in containers):
        raise typer.Exit(code=1)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    try:
        result = app(args=list(argv) if argv is not None else None, standalone_mode=False)
        return int(result or 0)
    except SystemExit as exc:
        return int(exc.code or 0)


if __name__ == "__main__":  # pragma: no cover
    app()
