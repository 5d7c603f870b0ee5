"""Declarative service descriptors and provisioning results."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
import re
from types import MappingProxyType
from typing import Union


# Same character rules the Docker daemon enforces for container names.
_CONTAINER_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")
_PROTOCOLS = ("tcp", "udp")
_VOLUME_MODES = ("rw", "ro")


def _frozen_mapping(values: Mapping[str, str] | None) -> Mapping[str, str]:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True, slots=True)
class PortMapping:
    """Publish ``container_port`` on ``host_port`` of the host."""

    host_port: int
    container_port: int
    protocol: str = "tcp"

    def __post_init__(self) -> None:
        for port in (self.host_port, self.container_port):
            if not 0 < int(port) < 65536:
                raise ValueError(f"Port {port} is outside the range 1-65535.")
        if self.protocol not in _PROTOCOLS:
            raise ValueError(f"Unsupported protocol '{self.protocol}', expected tcp or udp.")

    def __str__(self) -> str:
        return f"{self.host_port}:{self.container_port}/{self.protocol}"


@dataclass(frozen=True, slots=True)
class VolumeMapping:
    """Bind-mount ``host_path`` into the container at ``container_path``."""

    host_path: Path
    container_path: str
    mode: str = "rw"

    def __post_init__(self) -> None:
        object.__setattr__(self, "host_path", Path(self.host_path).expanduser())
        if self.mode not in _VOLUME_MODES:
            raise ValueError(f"Unsupported volume mode '{self.mode}', expected rw or ro.")
        if not self.container_path.startswith("/"):
            raise ValueError(f"Container path '{self.container_path}' must be absolute.")

    def __str__(self) -> str:
        return f"{self.host_path}:{self.container_path}:{self.mode}"


@dataclass(frozen=True, slots=True)
class SeedFile:
    """A file placed on the host once, before the container first starts.

    Existing files are never overwritten so operator edits survive re-runs.
    """

    path: Path
    content: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path).expanduser())


@dataclass(frozen=True, slots=True)
class PullSource:
    """Image fetched from a registry."""

    reference: str

    def __post_init__(self) -> None:
        if not self.reference.strip():
            raise ValueError("Image reference must not be empty.")


@dataclass(frozen=True, slots=True)
class BuildSource:
    """Image built locally from an in-memory Dockerfile.

    Attributes:
        tag: Image name assigned to the build result.
        dockerfile_content: Full Dockerfile text.
        context_files: Extra files (relative path -> content) written next to
            the Dockerfile in the build context.
    """

    tag: str
    dockerfile_content: str
    context_files: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.tag.strip():
            raise ValueError("Build tag must not be empty.")
        if not self.dockerfile_content.strip():
            raise ValueError("Dockerfile content must not be empty.")
        for rel in self.context_files:
            candidate = Path(rel)
            if candidate.is_absolute() or ".." in candidate.parts:
                raise ValueError(f"Context file '{rel}' must stay inside the build context.")
        object.__setattr__(self, "context_files", _frozen_mapping(self.context_files))


ImageSource = Union[PullSource, BuildSource]


@dataclass(frozen=True, slots=True)
class ServiceDescriptor:
    """Everything needed to provision one named container.

    Built once per run by the caller and never mutated afterwards.
    """

    name: str
    image_source: ImageSource
    port_mappings: tuple[PortMapping, ...] = ()
    volume_mappings: tuple[VolumeMapping, ...] = ()
    runtime_flags: tuple[str, ...] = ()
    command: tuple[str, ...] | None = None
    environment: Mapping[str, str] = field(default_factory=dict)
    seed_files: tuple[SeedFile, ...] = ()

    def __post_init__(self) -> None:
        if not _CONTAINER_NAME_RE.match(self.name):
            raise ValueError(
                f"Invalid container name '{self.name}'. "
                "Use letters, digits, '_', '.', or '-' and start with a letter or digit."
            )
        if not isinstance(self.image_source, (PullSource, BuildSource)):
            raise TypeError(f"Unsupported image source: {self.image_source!r}")
        object.__setattr__(self, "port_mappings", tuple(self.port_mappings))
        object.__setattr__(self, "volume_mappings", tuple(self.volume_mappings))
        object.__setattr__(self, "runtime_flags", tuple(self.runtime_flags))
        object.__setattr__(self, "seed_files", tuple(self.seed_files))
        if self.command is not None:
            object.__setattr__(self, "command", tuple(self.command))
        object.__setattr__(self, "environment", _frozen_mapping(self.environment))

        seen: set[tuple[int, str]] = set()
        for mapping in self.port_mappings:
            key = (mapping.host_port, mapping.protocol)
            if key in seen:
                raise ValueError(f"Host port {mapping.host_port}/{mapping.protocol} mapped twice.")
            seen.add(key)

    @property
    def image(self) -> str:
        """Image reference the container will run."""
        if isinstance(self.image_source, PullSource):
            return self.image_source.reference
        return self.image_source.tag


class ProvisionStatus(str, Enum):
    RUNNING = "Running"
    FAILED_VALIDATION = "FailedValidation"
    FAILED_IMAGE_RESOLUTION = "FailedImageResolution"
    FAILED_LAUNCH = "FailedLaunch"
    FAILED_VERIFICATION = "FailedVerification"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES: dict[ProvisionStatus, int] = {
    ProvisionStatus.RUNNING: 0,
    ProvisionStatus.FAILED_VALIDATION: 2,
    ProvisionStatus.FAILED_IMAGE_RESOLUTION: 3,
    ProvisionStatus.FAILED_LAUNCH: 4,
    ProvisionStatus.FAILED_VERIFICATION: 5,
}


@dataclass(slots=True)
class ProvisionResult:
    """Outcome of one provisioning run."""

    status: ProvisionStatus
    container_id: str | None = None
    diagnostics: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is ProvisionStatus.RUNNING


__all__ = [
    "BuildSource",
    "ImageSource",
    "PortMapping",
    "ProvisionResult",
    "ProvisionStatus",
    "PullSource",
    "SeedFile",
    "ServiceDescriptor",
    "VolumeMapping",
]
