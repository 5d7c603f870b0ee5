"""High-level Docker utilities package.

This package provides structured helpers for:
    * Connecting to the Docker daemon lazily (``connect``)
    * Pulling and building images, listing, stopping, removing and running
        containers by name (``DockerRuntime``)
    * Translating ``docker run`` style flags into SDK keyword arguments
        (``translate_runtime_flags``)

Principles:
    * Keep low-level SDK usage encapsulated (see ``sdk.py``) so higher-level
        code can be easily mocked in tests.
    * Avoid side effects at import time (no client construction until needed).
    * Surface every SDK failure as ``DockerError`` with the daemon's message.

Public API (re-exported):
        - DockerError
        - DockerBuildError
        - ContainerNotFound
        - ContainerSummary
        - DockerContainer
        - DockerRuntime
        - translate_runtime_flags
"""

from .container import ContainerSummary, DockerContainer
from .errors import ContainerNotFound, DockerBuildError, DockerError
from .runtime import DockerRuntime
from .sdk import translate_runtime_flags


__all__ = [
    "ContainerNotFound",
    "ContainerSummary",
    "DockerBuildError",
    "DockerContainer",
    "DockerError",
    "DockerRuntime",
    "translate_runtime_flags",
]
