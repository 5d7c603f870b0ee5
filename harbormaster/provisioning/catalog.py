"""Ready-made service descriptors for common self-hosted services.

Each builder returns a :class:`ServiceDescriptor` populated with sensible
defaults that can be overridden through keyword arguments. ``data_root``
anchors every host directory so a whole deployment can be relocated at once.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from pathlib import Path
import textwrap

from .descriptor import (
    BuildSource,
    PortMapping,
    PullSource,
    SeedFile,
    ServiceDescriptor,
    VolumeMapping,
)


DEFAULT_DATA_ROOT = Path("/srv")

OPENLLM_IMAGE = "bentoml/openllm:latest"
OPENLLM_MODEL = "stabilityai/stablelm-tuned-alpha-7b"
PIHOLE_IMAGE = "pihole/pihole:latest"
NGINX_IMAGE = "nginx:latest"
CLOUDFLARED_IMAGE = "cloudflare/cloudflared:latest"
LANGCHAIN_IMAGE_TAG = "myorg/langchain-libraries-gpu:latest"
LANGCHAIN_PACKAGES = ("langchain", "langgraph", "langsmith")

_PYTHON_ON_UBUNTU = textwrap.dedent(
    """\
    # Install Python 3.10 and pip on top of the vendor base image
    RUN apt-get update && apt-get install -y python3.10 python3.10-distutils curl && \\
        ln -sf /usr/bin/python3.10 /usr/bin/python && \\
        curl -sS https://bootstrap.pypa.io/get-pip.py | python
    """
)


class GpuSupport(Enum):
    """GPU acceleration mode for built images.

    Each member carries the Dockerfile base image, the extra instructions
    needed on top of it, and the ``docker run`` flags that expose the GPU.
    """

    NVIDIA = ("nvidia/cuda:12.1.1-cudnn8-runtime-ubuntu22.04", _PYTHON_ON_UBUNTU, ("--gpus=all",))
    AMD = (
        "rocm/dev-ubuntu-22.04:5.6-complete",
        _PYTHON_ON_UBUNTU,
        ("--device=/dev/kfd", "--device=/dev/dri", "--group-add=video"),
    )
    NONE = ("python:3.10", "", ())

    def __init__(self, base_image: str, extra_instructions: str, runtime_flags: tuple[str, ...]):
        self.base_image = base_image
        self.extra_instructions = extra_instructions
        self.runtime_flags = runtime_flags

    @classmethod
    def parse(cls, value: str | GpuSupport) -> GpuSupport:
        """Accept ``nvidia``/``amd``/``none`` in any case."""
        if isinstance(value, GpuSupport):
            return value
        try:
            return cls[value.strip().upper()]
        except KeyError as e:
            choices = ", ".join(m.name.lower() for m in cls)
            raise ValueError(f"Unknown GPU mode '{value}'. Choose one of: {choices}.") from e


def render_langchain_dockerfile(
    gpu: GpuSupport,
    *,
    packages: tuple[str, ...] = LANGCHAIN_PACKAGES,
    container_port: int = 3000,
) -> str:
    """Render the Dockerfile for the LangChain demo image."""
    lines = [
        "# Auto-generated Dockerfile for LangChain, LangGraph, LangSmith",
        f"# GPU support: {gpu.name}",
        f"FROM {gpu.base_image}",
        "",
        "ENV DEBIAN_FRONTEND=noninteractive",
        "",
    ]
    if gpu.extra_instructions:
        lines += [gpu.extra_instructions.rstrip(), ""]
    lines += [
        f"RUN pip install --no-cache-dir {' '.join(packages)}",
        "",
        f"EXPOSE {container_port}",
        "",
        "WORKDIR /app",
        "",
        f'CMD ["langgraph", "serve", "--host", "0.0.0.0", "--port", "{container_port}"]',
    ]
    return "\n".join(lines) + "\n"


def render_nginx_proxy_conf(upstream: str, *, listen_port: int = 80) -> str:
    """Render a minimal reverse-proxy ``server`` block."""
    return textwrap.dedent(
        f"""\
        server {{
            listen {listen_port};
            server_name _;

            location / {{
                proxy_pass {upstream};
                proxy_set_header Host $host;
                proxy_set_header X-Real-IP $remote_addr;
                proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
                proxy_set_header X-Forwarded-Proto $scheme;
            }}
        }}
        """
    )


def openllm(
    *,
    name: str = "openllm_container",
    image: str = OPENLLM_IMAGE,
    model: str = OPENLLM_MODEL,
    port: int = 3000,
    data_dir: Path | None = None,
    data_root: Path = DEFAULT_DATA_ROOT,
) -> ServiceDescriptor:
    """OpenLLM model server."""
    data_dir = data_dir or data_root / "openllm_data"
    return ServiceDescriptor(
        name=name,
        image_source=PullSource(image),
        port_mappings=(PortMapping(port, 3000),),
        volume_mappings=(VolumeMapping(data_dir, "/openllm_data"),),
        command=("start", "--model", model, "--port", "3000"),
    )


def pihole(
    *,
    name: str = "pihole",
    image: str = PIHOLE_IMAGE,
    dns_port: int = 53,
    web_port: int = 80,
    timezone: str = "UTC",
    web_password: str | None = None,
    data_dir: Path | None = None,
    data_root: Path = DEFAULT_DATA_ROOT,
) -> ServiceDescriptor:
    """Pi-hole DNS ad-blocker with its admin interface."""
    data_dir = data_dir or data_root / "pihole"
    environment = {"TZ": timezone}
    if web_password:
        environment["WEBPASSWORD"] = web_password
    return ServiceDescriptor(
        name=name,
        image_source=PullSource(image),
        port_mappings=(
            PortMapping(dns_port, 53, "tcp"),
            PortMapping(dns_port, 53, "udp"),
            PortMapping(web_port, 80),
        ),
        volume_mappings=(
            VolumeMapping(data_dir / "etc-pihole", "/etc/pihole"),
            VolumeMapping(data_dir / "etc-dnsmasq.d", "/etc/dnsmasq.d"),
        ),
        runtime_flags=("--cap-add=NET_ADMIN", "--restart=unless-stopped"),
        environment=environment,
    )


def nginx_reverse_proxy(
    *,
    name: str = "nginx_reverse_proxy",
    image: str = NGINX_IMAGE,
    http_port: int = 80,
    https_port: int | None = 443,
    upstream: str = "http://127.0.0.1:8080",
    config_dir: Path | None = None,
    certs_dir: Path | None = None,
    data_root: Path = DEFAULT_DATA_ROOT,
) -> ServiceDescriptor:
    """Nginx reverse proxy.

    A ``default.conf`` forwarding to ``upstream`` is placed in the config
    directory on first run. The certificate directory is only mounted when
    an HTTPS port is published.
    """
    config_dir = config_dir or data_root / "nginx_config"
    ports = [PortMapping(http_port, 80)]
    volumes = [VolumeMapping(config_dir, "/etc/nginx/conf.d")]
    if https_port:
        ports.append(PortMapping(https_port, 443))
        volumes.append(VolumeMapping(certs_dir or data_root / "nginx_certs", "/etc/nginx/certs"))
    return ServiceDescriptor(
        name=name,
        image_source=PullSource(image),
        port_mappings=tuple(ports),
        volume_mappings=tuple(volumes),
        seed_files=(SeedFile(config_dir / "default.conf", render_nginx_proxy_conf(upstream)),),
    )


def cloudflared_tunnel(
    *,
    name: str = "cloudflared_tunnel",
    image: str = CLOUDFLARED_IMAGE,
    credentials_dir: Path | None = None,
    data_root: Path = DEFAULT_DATA_ROOT,
) -> ServiceDescriptor:
    """Cloudflare tunnel sidecar sharing the host network.

    Expects ``config.yml`` and the tunnel credentials in ``credentials_dir``.
    """
    credentials_dir = credentials_dir or data_root / "cloudflared"
    return ServiceDescriptor(
        name=name,
        image_source=PullSource(image),
        volume_mappings=(VolumeMapping(credentials_dir, "/home/nonroot/.cloudflared"),),
        runtime_flags=("--network=host",),
        command=("tunnel", "run"),
    )


def langchain_gpu(
    *,
    name: str = "langchain_gpu_container",
    tag: str = LANGCHAIN_IMAGE_TAG,
    gpu: GpuSupport | str = GpuSupport.NONE,
    port: int = 3000,
    data_dir: Path | None = None,
    data_root: Path = DEFAULT_DATA_ROOT,
) -> ServiceDescriptor:
    """LangChain/LangGraph/LangSmith image built locally for the chosen GPU mode."""
    mode = GpuSupport.parse(gpu)
    data_dir = data_dir or data_root / "langchain_data"
    return ServiceDescriptor(
        name=name,
        image_source=BuildSource(tag=tag, dockerfile_content=render_langchain_dockerfile(mode)),
        port_mappings=(PortMapping(port, 3000),),
        volume_mappings=(VolumeMapping(data_dir, "/app/data"),),
        runtime_flags=mode.runtime_flags,
    )


SERVICES: dict[str, Callable[..., ServiceDescriptor]] = {
    "openllm": openllm,
    "pihole": pihole,
    "nginx": nginx_reverse_proxy,
    "cloudflared": cloudflared_tunnel,
    "langchain": langchain_gpu,
}


__all__ = [
    "GpuSupport",
    "SERVICES",
    "cloudflared_tunnel",
    "langchain_gpu",
    "nginx_reverse_proxy",
    "openllm",
    "pihole",
    "render_langchain_dockerfile",
    "render_nginx_proxy_conf",
]
