"""In-memory stand-ins for the container runtime, the host and the clock."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import itertools
from pathlib import Path

from harbormaster.provisioning import SeedFile
from harbormaster.utils.docker import (
    ContainerNotFound,
    ContainerSummary,
    DockerBuildError,
    DockerError,
)


@dataclass
class FakeContainer:
    id: str
    name: str
    image: str
    state: str = "running"
    published: tuple[tuple[int, str], ...] = ()
    run_kwargs: dict[str, object] = field(default_factory=dict)


@dataclass
class FakeHandle:
    id: str
    name: str


class FakeRuntime:
    """Container runtime double that records every call."""

    def __init__(self) -> None:
        self.containers: dict[str, FakeContainer] = {}
        self.images: set[str] = set()
        self.calls: list[tuple[str, object]] = []
        self.build_contexts: list[Path] = []
        self.build_dockerfiles: list[str] = []
        self.pull_error: str | None = None
        self.build_error: str | None = None
        self.run_error: str | None = None
        self.stop_error: str | None = None
        self.remove_error: str | None = None
        self.ping_error: str | None = None
        self.launch_states: list[str] = ["running"]
        self.log_text = ""
        self._ids = itertools.count(1)

    def add_container(
        self,
        name: str,
        *,
        image: str = "old:1",
        state: str = "running",
        published: tuple[tuple[int, str], ...] = (),
    ) -> FakeContainer:
        container = FakeContainer(
            id=f"{next(self._ids):064x}", name=name, image=image, state=state, published=published
        )
        self.containers[name] = container
        return container

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def ping(self) -> None:
        self.calls.append(("ping", None))
        if self.ping_error:
            raise DockerError(self.ping_error)

    def pull(self, reference: str) -> str:
        self.calls.append(("pull", reference))
        if self.pull_error:
            raise DockerError(self.pull_error)
        self.images.add(reference)
        return reference

    def build(self, context_dir: Path, tag: str) -> str:
        self.calls.append(("build", tag))
        self.build_contexts.append(context_dir)
        self.build_dockerfiles.append((context_dir / "Dockerfile").read_text(encoding="utf-8"))
        if self.build_error:
            raise DockerBuildError("The command returned a non-zero code: 1", log=self.build_error)
        self.images.add(tag)
        return tag

    def list_containers(self, name: str) -> list[ContainerSummary]:
        self.calls.append(("list", name))
        container = self.containers.get(name)
        if container is None:
            return []
        # Freshly launched containers walk through ``launch_states``; the last entry sticks.
        if container.state == "created":
            if len(self.launch_states) > 1:
                container.state = self.launch_states.pop(0)
            else:
                container.state = self.launch_states[0]
        return [
            ContainerSummary(
                id=container.id,
                name=container.name,
                state=container.state,
                image=container.image,
                published=container.published,
            )
        ]

    def stop(self, name: str, timeout: float = 10.0) -> None:
        self.calls.append(("stop", name))
        if self.stop_error:
            raise DockerError(self.stop_error)
        if name not in self.containers:
            raise ContainerNotFound(f"No such container: {name}")
        self.containers[name].state = "exited"

    def remove(self, name: str) -> None:
        self.calls.append(("remove", name))
        if self.remove_error:
            raise DockerError(self.remove_error)
        if name not in self.containers:
            raise ContainerNotFound(f"No such container: {name}")
        del self.containers[name]

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
    ) -> FakeHandle:
        self.calls.append(("run", name))
        if self.run_error:
            raise DockerError(self.run_error)
        if name in self.containers:
            raise DockerError(f'Conflict. The container name "/{name}" is already in use.')
        if image not in self.images:
            raise DockerError(f"No such image: {image}")
        container_id = f"{next(self._ids):061x}new"
        self.containers[name] = FakeContainer(
            id=container_id,
            name=name,
            image=image,
            state="created",
            published=tuple((host, proto) for host, _, proto in ports),
            run_kwargs={
                "ports": list(ports),
                "volumes": list(volumes),
                "flags": list(flags),
                "command": command,
                "environment": dict(environment or {}),
            },
        )
        return FakeHandle(id=container_id, name=name)

    def logs(self, name: str, tail: int = 50) -> str:
        self.calls.append(("logs", name))
        if name not in self.containers:
            raise ContainerNotFound(f"No such container: {name}")
        return self.log_text


class FakeHost:
    """Host double with configurable privilege and busy ports."""

    def __init__(self) -> None:
        self.privileged = True
        self.busy_ports: set[tuple[int, str]] = set()
        self.created: list[Path] = []
        self.seeded: list[Path] = []

    def has_admin_privilege(self) -> bool:
        return self.privileged

    def is_port_free(self, port: int, protocol: str = "tcp") -> bool:
        return (port, protocol) not in self.busy_ports

    def ensure_directory(self, path: Path) -> bool:
        if path.is_dir():
            return False
        path.mkdir(parents=True, exist_ok=True)
        self.created.append(path)
        return True

    def write_seed_file(self, seed: SeedFile) -> bool:
        if seed.path.exists():
            return False
        seed.path.write_text(seed.content, encoding="utf-8")
        self.seeded.append(seed.path)
        return True


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds

