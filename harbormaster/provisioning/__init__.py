"""Idempotent container provisioning.

Build a :class:`ServiceDescriptor` (by hand, from the ``catalog`` or from a
JSON file via ``load_descriptor``) and hand it to
:meth:`Provisioner.provision`.
"""

from .descriptor import (
    BuildSource,
    ImageSource,
    PortMapping,
    ProvisionResult,
    ProvisionStatus,
    PullSource,
    SeedFile,
    ServiceDescriptor,
    VolumeMapping,
)
from .errors import (
    BuildFailed,
    DirectoryCreateFailed,
    LaunchError,
    PortInUse,
    PrivilegeError,
    ProvisionError,
    PullFailed,
    ResolutionError,
    SeedFileWriteFailed,
    ValidationError,
    VerificationError,
)
from .host import HostEnvironment
from .loader import DescriptorFileError, load_descriptor, parse_descriptor
from .provisioner import Provisioner


__all__ = [
    "BuildFailed",
    "BuildSource",
    "DescriptorFileError",
    "DirectoryCreateFailed",
    "HostEnvironment",
    "ImageSource",
    "LaunchError",
    "PortInUse",
    "PortMapping",
    "PrivilegeError",
    "ProvisionError",
    "ProvisionResult",
    "ProvisionStatus",
    "Provisioner",
    "PullFailed",
    "PullSource",
    "ResolutionError",
    "SeedFile",
    "SeedFileWriteFailed",
    "ServiceDescriptor",
    "ValidationError",
    "VerificationError",
    "VolumeMapping",
    "load_descriptor",
    "parse_descriptor",
]
