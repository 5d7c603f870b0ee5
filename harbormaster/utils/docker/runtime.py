"""Docker-backed container runtime: pull, build, list, stop, remove, run."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
import os
from pathlib import Path
from typing import Any

from docker import DockerClient
from docker.errors import BuildError, NotFound

from harbormaster.utils.log_utils import log_output, logger

from .container import ContainerSummary, DockerContainer
from .errors import ContainerNotFound, DockerBuildError, DockerError
from .sdk import connect, translate_runtime_flags


__all__ = ["DockerRuntime"]


def _build_log_text(chunks: Iterable[Mapping[str, Any]]) -> str:
    """Flatten the JSON chunks of a build stream into plain text."""
    lines: list[str] = []
    for chunk in chunks:
        if not isinstance(chunk, Mapping):
            continue
        text = chunk.get("stream") or chunk.get("status") or chunk.get("error")
        if text:
            lines.append(str(text).rstrip("\n"))
    return "\n".join(lines)


def _published_ports(container: Any) -> tuple[tuple[int, str], ...]:
    """Return host (port, protocol) pairs from a container's port bindings."""
    bindings = getattr(container, "ports", None) or {}
    published: list[tuple[int, str]] = []
    for spec, hosts in bindings.items():
        _, _, proto = str(spec).partition("/")
        for binding in hosts or []:
            host_port = str(binding.get("HostPort") or "")
            if host_port.isdigit():
                pair = (int(host_port), proto or "tcp")
                if pair not in published:
                    published.append(pair)
    return tuple(published)


def _is_not_found(exc: BaseException) -> bool:
    if isinstance(exc, NotFound):
        return True
    status = getattr(getattr(exc, "response", None), "status_code", None)
    return status == 404


class DockerRuntime:
    """Container runtime collaborator implemented with the Docker SDK.

    The client is created lazily on first use so constructing a runtime never
    touches the daemon. Every SDK failure surfaces as :class:`DockerError`
    carrying the daemon's message.
    """

    def __init__(self, client: DockerClient | None = None):
        self._client = client

    @property
    def client(self) -> DockerClient:
        if self._client is None:
            self._client = connect()
        return self._client

    def ping(self) -> None:
        """Raise DockerError when the daemon cannot be reached."""
        try:
            self.client.ping()
        except DockerError:
            raise
        except Exception as e:
            raise DockerError(f"Docker daemon did not answer ping: {e}") from e

    def pull(self, reference: str) -> str:
        """Pull ``reference`` from its registry and return the reference."""
        logger.info(
            f"Pulling Docker image '{reference}', this may take a while on first use"
        )
        try:
            self.client.images.pull(reference)
        except Exception as e:
            raise DockerError(str(e) or f"Failed to pull image '{reference}'.") from e
        return reference

    def build(self, context_dir: Path, tag: str) -> str:
        """Build the Dockerfile in ``context_dir`` and tag the result.

        Raises:
            DockerBuildError: If the build exits unsuccessfully; ``log`` holds
                the build output up to the failing step.
        """
        logger.info(f"Building Docker image '{tag}' from {context_dir}")
        try:
            _image, chunks = self.client.images.build(path=str(context_dir), tag=tag, rm=True)
        except BuildError as e:
            log = _build_log_text(getattr(e, "build_log", None) or [])
            log_output(log, level="debug")
            raise DockerBuildError(getattr(e, "msg", None) or str(e), log=log) from e
        except Exception as e:
            raise DockerBuildError(str(e) or f"Failed to build image '{tag}'.") from e
        log_output(_build_log_text(chunks), level="debug")
        return tag

    def list_containers(self, name: str) -> list[ContainerSummary]:
        """Return running and stopped containers whose name equals ``name``.

        The daemon's name filter is a substring match, so results are narrowed
        to exact matches here.
        """
        try:
            found = self.client.containers.list(all=True, filters={"name": name})
        except Exception as e:
            raise DockerError(f"Failed to list containers named '{name}': {e}") from e
        summaries: list[ContainerSummary] = []
        for c in found:
            c_name = str(getattr(c, "name", "") or "").lstrip("/")
            if c_name != name:
                continue
            tags = getattr(getattr(c, "image", None), "tags", None) or []
            summaries.append(
                ContainerSummary(
                    id=str(getattr(c, "id", "")),
                    name=c_name,
                    state=str(getattr(c, "status", "unknown")),
                    image=tags[0] if tags else None,
                    published=_published_ports(c),
                )
            )
        return summaries

    def _get(self, name: str) -> Any:
        try:
            return self.client.containers.get(name)
        except Exception as e:
            if _is_not_found(e):
                raise ContainerNotFound(f"No such container: {name}") from e
            raise DockerError(f"Failed to look up container '{name}': {e}") from e

    def stop(self, name: str, timeout: float = 10.0) -> None:
        container = self._get(name)
        try:
            container.stop(timeout=int(timeout))
        except Exception as e:
            if _is_not_found(e):
                raise ContainerNotFound(f"No such container: {name}") from e
            raise DockerError(f"Failed to stop container '{name}': {e}") from e

    def remove(self, name: str) -> None:
        container = self._get(name)
        try:
            container.remove(force=True)
        except Exception as e:
            if _is_not_found(e):
                raise ContainerNotFound(f"No such container: {name}") from e
            raise DockerError(f"Failed to remove container '{name}': {e}") from e

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
    ) -> DockerContainer:
        """Start a detached container and return a handle.

        Args:
            image: Image reference (``repository[:tag]``) to run.
            name: Container name.
            ports: ``(host_port, container_port, protocol)`` triples.
            volumes: ``(host_path, container_path, mode)`` triples.
            flags: ``docker run`` style flags (see ``translate_runtime_flags``).
            command: Override default image command with this sequence.
            environment: Environment variables to inject.

        Raises:
            DockerError: On unsupported flags or when the daemon rejects the launch.
        """
        extra = translate_runtime_flags(flags)

        # One container port may be published on several host ports.
        ports_map: dict[str, int | list[int]] | None = None
        if ports:
            grouped: dict[str, list[int]] = {}
            for host, container, proto in ports:
                grouped.setdefault(f"{container}/{proto}", []).append(host)
            ports_map = {key: hosts[0] if len(hosts) == 1 else hosts for key, hosts in grouped.items()}

        # List form keeps every mount, including one host path bound twice.
        binds: list[str] | None = None
        if volumes:
            binds = [f"{os.path.expanduser(h)}:{c}:{mode}" for h, c, mode in volumes]

        try:
            container = self.client.containers.run(
                image=image,
                name=name,
                environment=dict(environment) if environment else None,
                volumes=binds,
                ports=ports_map,
                detach=True,
                command=list(command) if command else None,
                **extra,
            )
        except Exception as e:
            raise DockerError(str(e) or "Failed to start Docker container via SDK.") from e

        resolved_name = getattr(container, "name", name) or name
        return DockerContainer(
            id=str(getattr(container, "id", "")),
            name=resolved_name,
            image=image,
            _container=container,
        )

    def logs(self, name: str, tail: int = 50) -> str:
        """Return the last ``tail`` log lines of a container."""
        container = self._get(name)
        return DockerContainer(
            id=str(getattr(container, "id", "")),
            name=name,
            image="",
            _container=container,
        ).logs(tail=tail)
