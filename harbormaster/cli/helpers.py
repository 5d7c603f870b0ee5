from __future__ import annotations

from collections.abc import Sequence
import os

from harbormaster.config import HarbormasterSettings, get_settings
from harbormaster.provisioning import (
    HostEnvironment,
    Provisioner,
    ProvisionResult,
    ServiceDescriptor,
)
from harbormaster.utils.docker import DockerRuntime
from harbormaster.utils.log_utils import configure_logging, logger


def load_settings(env_file: str | None) -> HarbormasterSettings:
    """Load settings and point the shared logger at the configured sinks."""
    settings = get_settings(env_file, reload=env_file is not None)
    configure_logging(
        level=settings.logging.level,
        file_path=settings.logging.file_path,
        force=True,
    )
    return settings


def build_provisioner(settings: HarbormasterSettings) -> Provisioner:
    """Wire the Docker runtime and local host into a provisioner."""
    provisioning = settings.provisioning
    return Provisioner(
        DockerRuntime(),
        HostEnvironment(
            require_root=provisioning.require_root,
            docker_socket=_docker_socket_path(),
        ),
        verify_timeout=provisioning.verify_timeout,
        stop_timeout=provisioning.stop_timeout,
    )


def _docker_socket_path() -> str:
    docker_host = os.getenv("DOCKER_HOST", "")
    if docker_host.startswith("unix://"):
        return docker_host[len("unix://") :]
    return "/var/run/docker.sock"


def access_hints(descriptor: ServiceDescriptor) -> list[str]:
    """Human-readable pointers printed after a successful run."""
    hints = [f"'{descriptor.name}' runs image {descriptor.image}"]
    hints += [
        f"Access via http://<host-ip>:{m.host_port}"
        for m in descriptor.port_mappings
        if m.protocol == "tcp" and m.container_port in (80, 443, 3000, 8080)
    ]
    for volume in descriptor.volume_mappings:
        hints.append(f"Host data for {volume.container_path} lives in {volume.host_path}")
    hints.append(f"To stop the container: docker stop {descriptor.name}")
    hints.append(f"To remove it: docker rm {descriptor.name}")
    return hints


def provision_all(provisioner: Provisioner, descriptors: Sequence[ServiceDescriptor]) -> int:
    """Provision descriptors in order, stopping at the first failure.

    Returns:
        Exit code of the last run (0 when every container is running).
    """
    result: ProvisionResult | None = None
    for descriptor in descriptors:
        result = provisioner.provision(descriptor)
        if not result.ok:
            logger.error(
                f"Provisioning '{descriptor.name}' finished with status {result.status.value}"
            )
            return result.status.exit_code
        for hint in access_hints(descriptor):
            logger.info(hint)
    return 0
