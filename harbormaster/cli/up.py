from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from harbormaster.config import HarbormasterSettings
from harbormaster.provisioning import ServiceDescriptor
from harbormaster.provisioning.catalog import SERVICES, GpuSupport, cloudflared_tunnel
from harbormaster.utils.log_utils import logger

from .helpers import build_provisioner, provision_all


SERVICE_CHOICES = sorted(SERVICES)


@dataclass(slots=True)
class UpOptions:
    service: str
    name: str | None = None
    port: int | None = None
    data_root: Path | None = None
    gpu: str | None = None
    model: str | None = None
    https_port: int | None = None
    no_https: bool = False
    upstream: str | None = None
    with_tunnel: bool = False
    timezone: str | None = None
    web_password: str | None = None
    image: str | None = None


def _validate_options(options: UpOptions) -> int:
    if options.service not in SERVICES:
        logger.error(
            f"Unknown service '{options.service}'. Choose one of: {', '.join(SERVICE_CHOICES)}."
        )
        return 1
    if options.gpu is not None and options.service != "langchain":
        logger.error("--gpu only applies to the 'langchain' service.")
        return 1
    if options.with_tunnel and options.service != "nginx":
        logger.error("--with-tunnel only applies to the 'nginx' service.")
        return 1
    if options.gpu is not None:
        try:
            GpuSupport.parse(options.gpu)
        except ValueError as e:
            logger.error(str(e))
            return 1
    return 0


def _builder_kwargs(options: UpOptions, data_root: Path) -> dict[str, Any]:
    """Map CLI options onto the keyword arguments of the catalog builder."""
    kwargs: dict[str, Any] = {"data_root": data_root}
    if options.name:
        kwargs["name"] = options.name
    service = options.service
    if options.port is not None:
        port_key = {"nginx": "http_port", "pihole": "web_port"}.get(service, "port")
        if service != "cloudflared":
            kwargs[port_key] = options.port
    if options.image:
        kwargs["tag" if service == "langchain" else "image"] = options.image
    if service == "openllm" and options.model:
        kwargs["model"] = options.model
    if service == "langchain" and options.gpu is not None:
        kwargs["gpu"] = GpuSupport.parse(options.gpu)
    if service == "nginx":
        if options.no_https:
            kwargs["https_port"] = None
        elif options.https_port is not None:
            kwargs["https_port"] = options.https_port
        if options.upstream:
            kwargs["upstream"] = options.upstream
    if service == "pihole":
        if options.timezone:
            kwargs["timezone"] = options.timezone
        if options.web_password:
            kwargs["web_password"] = options.web_password
    return kwargs


def build_descriptors(
    options: UpOptions, settings: HarbormasterSettings
) -> list[ServiceDescriptor]:
    """Return the descriptors to provision, in order."""
    data_root = options.data_root or settings.provisioning.data_root
    builder = SERVICES[options.service]
    descriptors = [builder(**_builder_kwargs(options, data_root))]
    if options.with_tunnel:
        descriptors.append(cloudflared_tunnel(data_root=data_root))
    return descriptors


def run(options: UpOptions, settings: HarbormasterSettings) -> int:
    if _validate_options(options) != 0:
        return 1
    try:
        descriptors = build_descriptors(options, settings)
    except (TypeError, ValueError) as e:
        logger.error(f"Invalid options for '{options.service}': {e}")
        return 1
    logger.info(f"Starting setup for '{options.service}' ({len(descriptors)} container(s))")
    return provision_all(build_provisioner(settings), descriptors)
