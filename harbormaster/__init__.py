"""harbormaster: idempotent provisioning of self-hosted services in Docker."""

__version__ = "0.1.0"
