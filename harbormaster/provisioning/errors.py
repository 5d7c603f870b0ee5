"""Exception hierarchy for the provisioning workflow.

Each step of :class:`~harbormaster.provisioning.provisioner.Provisioner`
raises one of these; only ``Provisioner.provision`` turns them into a
:class:`~harbormaster.provisioning.descriptor.ProvisionResult`. The ``status``
class attribute names the result status a failure maps to.
"""

from __future__ import annotations

from pathlib import Path

from .descriptor import ProvisionStatus


class ProvisionError(RuntimeError):
    """Base class for failures that end a provisioning run."""

    status: ProvisionStatus = ProvisionStatus.FAILED_LAUNCH


class ValidationError(ProvisionError):
    """A host precondition is not met."""

    status = ProvisionStatus.FAILED_VALIDATION


class PrivilegeError(ValidationError):
    def __init__(self, detail: str = "insufficient privilege to manage the container runtime"):
        super().__init__(f"PrivilegeError: {detail}")


class PortInUse(ValidationError):
    def __init__(self, port: int, protocol: str = "tcp"):
        self.port = port
        self.protocol = protocol
        super().__init__(f"PortInUse({port}): host port {port}/{protocol} is already bound")


class DirectoryCreateFailed(ValidationError):
    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"DirectoryCreateFailed({path}): {reason}")


class SeedFileWriteFailed(ValidationError):
    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"SeedFileWriteFailed({path}): {reason}")


class ResolutionError(ProvisionError):
    """The image could not be obtained."""

    status = ProvisionStatus.FAILED_IMAGE_RESOLUTION


class PullFailed(ResolutionError):
    def __init__(self, reference: str, reason: str):
        self.reference = reference
        super().__init__(f"PullFailed({reference}): {reason}")


class BuildFailed(ResolutionError):
    def __init__(self, tag: str, log: str):
        self.tag = tag
        self.log = log
        super().__init__(f"BuildFailed({tag}): {log}")


class LaunchError(ProvisionError):
    """The runtime rejected the container launch."""

    status = ProvisionStatus.FAILED_LAUNCH

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"LaunchError: {reason}")


class VerificationError(ProvisionError):
    """The launched container was not observed running."""

    status = ProvisionStatus.FAILED_VERIFICATION

    def __init__(self, name: str, state: str | None):
        self.name = name
        self.state = state
        observed = state or "absent"
        super().__init__(f"VerificationError(NotRunning): container '{name}' is {observed}")


__all__ = [
    "BuildFailed",
    "DirectoryCreateFailed",
    "LaunchError",
    "PortInUse",
    "PrivilegeError",
    "ProvisionError",
    "PullFailed",
    "ResolutionError",
    "SeedFileWriteFailed",
    "ValidationError",
    "VerificationError",
]
