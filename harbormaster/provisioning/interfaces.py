"""Contracts for the collaborators a provisioner talks to."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol

from harbormaster.utils.docker import ContainerSummary

from .descriptor import SeedFile


class ContainerHandle(Protocol):
    id: str
    name: str


class ContainerRuntime(Protocol):
    """What the provisioner needs from a container runtime.

    Implementations raise ``DockerError`` (``ContainerNotFound`` for unknown
    names, ``DockerBuildError`` for failed builds) with the runtime's own
    message.
    """

    def ping(self) -> None: ...

    def pull(self, reference: str) -> str: ...

    def build(self, context_dir: Path, tag: str) -> str: ...

    def list_containers(self, name: str) -> list[ContainerSummary]: ...

    def stop(self, name: str, timeout: float = 10.0) -> None: ...

    def remove(self, name: str) -> None: ...

    def run(
        self,
        *,
        image: str,
        name: str,
        ports: Sequence[tuple[int, int, str]] = (),
        volumes: Sequence[tuple[str, str, str]] = (),
        flags: Sequence[str] = (),
        command: Sequence[str] | None = None,
        environment: Mapping[str, str] | None = None,
    ) -> ContainerHandle: ...

    def logs(self, name: str, tail: int = 50) -> str: ...


class Host(Protocol):
    """What the provisioner needs from the host operating system."""

    def has_admin_privilege(self) -> bool: ...

    def is_port_free(self, port: int, protocol: str = "tcp") -> bool: ...

    def ensure_directory(self, path: Path) -> bool: ...

    def write_seed_file(self, seed: SeedFile) -> bool: ...


__all__ = ["ContainerHandle", "ContainerRuntime", "Host"]
