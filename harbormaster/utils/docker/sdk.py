"""Docker SDK connection and ``docker run`` flag translation (internal)."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import docker
from docker import DockerClient
from docker.errors import DockerException
from docker.types import DeviceRequest

from .errors import DockerError


def connect() -> DockerClient:
    """Connect to the daemon named by the environment (``DOCKER_HOST`` or the local socket).

    Raises:
        DockerError: With a hint on how to fix the connection.
    """
    try:
        client = docker.from_env()
        client.ping()
    except PermissionError as e:
        raise DockerError(
            "Permission denied on the Docker socket. Run as root or join the 'docker' group."
        ) from e
    except DockerException as e:
        raise DockerError(
            f"Cannot reach the Docker daemon ({e}). Start it with 'systemctl start docker' and retry."
        ) from e
    return client


def gpu_device_requests(selection: str) -> list[DeviceRequest]:
    """Turn a ``--gpus`` value into SDK device requests.

    Accepts ``all``, a GPU count such as ``2``, or ``device=0,1``.
    """
    value = selection.strip().strip('"').lower()
    if value.startswith("device="):
        ids = [part.strip() for part in value.split("=", 1)[1].split(",") if part.strip()]
        if not ids:
            raise DockerError(f"No GPU device ids in '--gpus={selection}'.")
        return [DeviceRequest(device_ids=ids, capabilities=[["gpu"]])]
    if value.isdigit():
        return [DeviceRequest(count=int(value), capabilities=[["gpu"]])]
    if value == "all":
        return [DeviceRequest(count=-1, capabilities=[["gpu"]])]
    raise DockerError(f"Unsupported GPU selection '{selection}'.")


def _split_flag(token: str) -> tuple[str, str | None]:
    token = token.strip()
    if "=" in token:
        flag, value = token.split("=", 1)
        return flag, value.strip()
    parts = token.split(None, 1)
    if len(parts) == 2:
        return parts[0], parts[1].strip()
    return token, None


def _restart_policy(value: str) -> dict[str, Any]:
    name, _, retries = value.partition(":")
    policy: dict[str, Any] = {"Name": name}
    if retries:
        policy["MaximumRetryCount"] = int(retries)
    return policy


_LIST_FLAGS = {"--device": "devices", "--group-add": "group_add", "--cap-add": "cap_add"}
_SCALAR_FLAGS = {
    "--network": "network_mode",
    "--net": "network_mode",
    "--ipc": "ipc_mode",
    "--shm-size": "shm_size",
    "--runtime": "runtime",
    "--user": "user",
    "--hostname": "hostname",
    "--pid": "pid_mode",
}


def translate_runtime_flags(flags: Iterable[str]) -> dict[str, Any]:
    """Convert ``docker run`` style flags into ``containers.run`` keyword arguments.

    Each flag is a single string, either ``--name=value``, ``--name value`` or a
    bare switch such as ``--privileged``.

    Raises:
        DockerError: For flags that have no SDK equivalent or lack a value.
    """
    kwargs: dict[str, Any] = {}
    for token in flags:
        flag, value = _split_flag(token)
        if flag == "--privileged":
            kwargs["privileged"] = True
            continue
        if value is None or value == "":
            raise DockerError(f"Runtime flag '{token}' requires a value.")
        if flag == "--gpus":
            kwargs["device_requests"] = gpu_device_requests(value)
        elif flag in _LIST_FLAGS:
            kwargs.setdefault(_LIST_FLAGS[flag], []).append(value)
        elif flag in _SCALAR_FLAGS:
            kwargs[_SCALAR_FLAGS[flag]] = value
        elif flag == "--restart":
            try:
                kwargs["restart_policy"] = _restart_policy(value)
            except ValueError as e:
                raise DockerError(f"Invalid restart policy '{value}'.") from e
        elif flag == "--add-host":
            host, sep, address = value.partition(":")
            if not sep:
                raise DockerError(f"Runtime flag '{token}' expects HOST:IP.")
            kwargs.setdefault("extra_hosts", {})[host] = address
        else:
            raise DockerError(f"Unsupported runtime flag '{token}'.")
    return kwargs

