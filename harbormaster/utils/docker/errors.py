"""Custom exception types for Docker helpers."""

from __future__ import annotations


class DockerError(RuntimeError):
    """Raised when the daemon is unreachable or rejects a request.

    The message carries the daemon's own explanation where there is one.
    """


class ContainerNotFound(DockerError):
    """Raised when a container referenced by name does not exist."""

    pass


class DockerBuildError(DockerError):
    """Raised when an image build exits unsuccessfully.

    Attributes:
        log: Build output collected up to the failure.
    """

    def __init__(self, message: str, *, log: str = "") -> None:
        super().__init__(message)
        self.log = log


__all__ = ["ContainerNotFound", "DockerBuildError", "DockerError"]
