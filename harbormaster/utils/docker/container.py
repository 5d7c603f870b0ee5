"""Dataclass wrappers for Docker containers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import DockerError


@dataclass(frozen=True, slots=True)
class ContainerSummary:
    """One row of a container listing.

    Attributes:
        id: Container ID (hash string).
        name: Container name without the leading slash.
        state: Runtime state (``created``, ``running``, ``exited``, ...).
        image: Image reference the container was created from, if known.
        published: Host ``(port, protocol)`` pairs bound by the container.
    """

    id: str
    name: str
    state: str
    image: str | None = None
    published: tuple[tuple[int, str], ...] = ()

    @property
    def running(self) -> bool:
        return self.state == "running"


@dataclass(slots=True)
class DockerContainer:
    """A lightweight handle to a launched Docker container.

    Attributes:
        id: Container ID (hash string).
        name: Container name.
        image: Image reference used to create it.
    """

    id: str
    name: str
    image: str
    _container: Any = field(repr=False, default=None)

    def logs(self, tail: int | None = None) -> str:
        """Return combined stdout/stderr logs as text snapshot."""
        if self._container is None:
            return ""
        try:
            logs = self._container.logs(tail=tail if tail is not None else "all", stdout=True, stderr=True)
            if isinstance(logs, bytes | bytearray):
                return logs.decode("utf-8", errors="replace")
            return str(logs)
        except Exception as e:  # pragma: no cover
            raise DockerError("Failed to retrieve container logs.") from e


__all__ = ["ContainerSummary", "DockerContainer"]
