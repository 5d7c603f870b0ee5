"""Idempotent container provisioning: validate, resolve, replace, verify.

A run walks four steps in strict order and stops at the first failure:

    1. ``validate``          host privilege, free host ports, volume directories
    2. ``resolve_image``     pull or build the image
    3. ``replace_container`` evict any container with the same name, launch anew
    4. ``verify``            observe the new container in the ``running`` state

Each step raises a :class:`~harbormaster.provisioning.errors.ProvisionError`
subclass; ``provision`` is the only place those become a
:class:`~harbormaster.provisioning.descriptor.ProvisionResult`.

Concurrent runs for the same container name are not coordinated. Callers
must serialize them.
"""

from __future__ import annotations

from collections.abc import Callable
import time

from harbormaster.utils.docker import ContainerNotFound, ContainerSummary, DockerError
from harbormaster.utils.log_utils import log_output, logger, tagged

from .descriptor import ImageSource, ProvisionResult, ProvisionStatus, ServiceDescriptor
from .errors import (
    LaunchError,
    PortInUse,
    PrivilegeError,
    ProvisionError,
    ValidationError,
    VerificationError,
)
from .images import resolve_image
from .interfaces import ContainerHandle, ContainerRuntime, Host


DEFAULT_VERIFY_TIMEOUT = 5.0
DEFAULT_STOP_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_LOG_TAIL = 20

# States a freshly launched container may pass through before it runs.
PENDING_STATES = frozenset({"created", "restarting"})


class Provisioner:
    """Drive one service descriptor to a single running container.

    Args:
        runtime: Container runtime collaborator (``DockerRuntime`` in production).
        host: Host environment collaborator (``HostEnvironment`` in production).
        verify_timeout: Upper bound in seconds for observing the running state.
        stop_timeout: Grace period handed to the runtime when stopping a prior container.
        poll_interval: Delay between listing polls while the container is pending.
        log_tail: Container log lines attached to diagnostics when verification fails.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        host: Host,
        *,
        verify_timeout: float = DEFAULT_VERIFY_TIMEOUT,
        stop_timeout: float = DEFAULT_STOP_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        log_tail: int = DEFAULT_LOG_TAIL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.runtime = runtime
        self.host = host
        self.verify_timeout = verify_timeout
        self.stop_timeout = stop_timeout
        self.poll_interval = poll_interval
        self.log_tail = log_tail
        self._clock = clock
        self._sleep = sleep

    def provision(self, descriptor: ServiceDescriptor) -> ProvisionResult:
        """Run all steps for ``descriptor`` and report the outcome."""
        diagnostics: list[str] = []
        name = descriptor.name
        logger.info(tagged(name, f"Provisioning container '{name}'"))
        try:
            self.validate(descriptor, diagnostics=diagnostics)
            image = self.resolve_image(descriptor.image_source, diagnostics=diagnostics)
            handle = self.replace_container(
                name, image, descriptor, diagnostics=diagnostics
            )
            proof = self.verify(
                handle, name, self.verify_timeout, diagnostics=diagnostics
            )
        except ProvisionError as e:
            _note(diagnostics, name, str(e), level="error")
            if isinstance(e, VerificationError):
                self._attach_logs(name, diagnostics)
            return ProvisionResult(status=e.status, diagnostics=diagnostics)

        container_id = proof.id or handle.id
        _note(diagnostics, name, f"Container '{name}' is running ({container_id[:12]})")
        return ProvisionResult(
            status=ProvisionStatus.RUNNING,
            container_id=container_id,
            diagnostics=diagnostics,
        )

    def validate(
        self, descriptor: ServiceDescriptor, *, diagnostics: list[str] | None = None
    ) -> None:
        """Check host preconditions, creating volume directories as needed.

        Checks run in order and stop at the first failure: privilege, daemon
        reachability, free host ports, volume directories, seed files.
        Directories created before a later failure are left in place.

        Ports currently published by a container that this run is about to
        replace count as free, so re-provisioning a running service works.
        """
        diagnostics = diagnostics if diagnostics is not None else []
        name = descriptor.name

        if not self.host.has_admin_privilege():
            raise PrivilegeError("run as root or with sudo")
        try:
            self.runtime.ping()
        except DockerError as e:
            raise ValidationError(f"Docker daemon unreachable: {e}") from e
        _note(diagnostics, name, "Privilege check passed")

        owned = self._ports_held_by(descriptor.name)
        for mapping in descriptor.port_mappings:
            key = (mapping.host_port, mapping.protocol)
            if key in owned:
                _note(
                    diagnostics,
                    name,
                    f"Port {mapping.host_port}/{mapping.protocol} is held by the container being replaced",
                )
                continue
            if not self.host.is_port_free(mapping.host_port, mapping.protocol):
                raise PortInUse(mapping.host_port, mapping.protocol)
        if descriptor.port_mappings:
            _note(diagnostics, name, "Host ports are available")

        for volume in descriptor.volume_mappings:
            created = self.host.ensure_directory(volume.host_path)
            verb = "Created" if created else "Using existing"
            _note(diagnostics, name, f"{verb} directory {volume.host_path}")

        for seed in descriptor.seed_files:
            if self.host.write_seed_file(seed):
                _note(diagnostics, name, f"Placed default file {seed.path}")

    def resolve_image(
        self, image_source: ImageSource, *, diagnostics: list[str] | None = None
    ) -> str:
        """Pull or build the image and return the reference to run."""
        diagnostics = diagnostics if diagnostics is not None else []
        image = resolve_image(image_source, self.runtime)
        _note(diagnostics, None, f"Image '{image}' resolved")
        return image

    def replace_container(
        self,
        name: str,
        image: str,
        descriptor: ServiceDescriptor,
        *,
        diagnostics: list[str] | None = None,
    ) -> ContainerHandle:
        """Evict any container called ``name`` and launch a fresh one from ``image``.

        Stopping and removing the prior container is best-effort; if removal
        silently failed the runtime rejects the duplicate name at launch.
        There is no rollback when the launch fails.
        """
        diagnostics = diagnostics if diagnostics is not None else []
        try:
            existing = self.runtime.list_containers(name)
        except DockerError as e:
            _note(diagnostics, name, f"Could not list existing containers: {e}", level="warning")
            existing = []

        for prior in existing:
            _note(
                diagnostics,
                name,
                f"A container named {name} already exists ({prior.state}). Stopping and removing it...",
            )
            self._best_effort(
                lambda: self.runtime.stop(name, timeout=self.stop_timeout),
                "stop",
                name,
                diagnostics,
            )
            self._best_effort(lambda: self.runtime.remove(name), "remove", name, diagnostics)

        try:
            handle = self.runtime.run(
                image=image,
                name=name,
                ports=[
                    (m.host_port, m.container_port, m.protocol) for m in descriptor.port_mappings
                ],
                volumes=[
                    (str(v.host_path), v.container_path, v.mode)
                    for v in descriptor.volume_mappings
                ],
                flags=descriptor.runtime_flags,
                command=descriptor.command,
                environment=descriptor.environment,
            )
        except DockerError as e:
            raise LaunchError(str(e)) from e
        _note(diagnostics, name, f"Launched container {handle.id[:12]} from '{image}'")
        return handle

    def verify(
        self,
        handle: ContainerHandle,
        name: str,
        timeout: float,
        *,
        diagnostics: list[str] | None = None,
    ) -> ContainerSummary:
        """Confirm the runtime lists ``name`` as running.

        The first check happens immediately. Only a container still in a
        pending state (``created``/``restarting``) is polled again, and never
        beyond ``timeout`` seconds. Exited, dead or missing containers fail at
        once; the failure is terminal and not retried.
        """
        diagnostics = diagnostics if diagnostics is not None else []
        deadline = self._clock() + timeout
        while True:
            try:
                listing = self.runtime.list_containers(name)
            except DockerError as e:
                raise VerificationError(name, f"unknown ({e})") from e
            match = next((c for c in listing if c.id == handle.id), None)
            if match is None and listing:
                match = listing[0]
            if match is not None and match.running:
                _note(diagnostics, name, f"Container '{name}' observed running")
                return match
            state = match.state if match is not None else None
            if state in PENDING_STATES and self._clock() < deadline:
                self._sleep(self.poll_interval)
                continue
            raise VerificationError(name, state)

    def _ports_held_by(self, name: str) -> set[tuple[int, str]]:
        try:
            existing = self.runtime.list_containers(name)
        except DockerError:
            return set()
        return {pair for c in existing if c.running for pair in c.published}

    def _best_effort(
        self,
        action: Callable[[], None],
        verb: str,
        name: str,
        diagnostics: list[str],
    ) -> None:
        try:
            action()
        except ContainerNotFound:
            _note(diagnostics, name, f"Container '{name}' already gone, nothing to {verb}")
        except DockerError as e:
            _note(diagnostics, name, f"Could not {verb} container '{name}': {e}", level="warning")

    def _attach_logs(self, name: str, diagnostics: list[str]) -> None:
        try:
            tail = self.runtime.logs(name, tail=self.log_tail)
        except DockerError:
            return
        if not tail.strip():
            return
        diagnostics.append(f"Last {self.log_tail} log lines of '{name}':\n{tail.rstrip()}")
        log_output(tail, name, level="error")


def _note(
    diagnostics: list[str], name: str | None, message: str, *, level: str = "info"
) -> None:
    """Record a step outcome and log it."""
    diagnostics.append(message)
    log_fn = getattr(logger, level, logger.info)
    log_fn(tagged(name, message))


__all__ = [
    "DEFAULT_STOP_TIMEOUT",
    "DEFAULT_VERIFY_TIMEOUT",
    "PENDING_STATES",
    "Provisioner",
]
