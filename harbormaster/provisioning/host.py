"""Host environment checks: privilege, port availability, directories."""

from __future__ import annotations

import os
from pathlib import Path
import socket

from harbormaster.utils.log_utils import logger

from .descriptor import SeedFile
from .errors import DirectoryCreateFailed, SeedFileWriteFailed


DEFAULT_DOCKER_SOCKET = "/var/run/docker.sock"


class HostEnvironment:
    """The local machine as seen by the provisioner.

    Args:
        require_root: Only an effective uid of 0 counts as privileged. When
            False, read/write access to the Docker socket is enough.
        docker_socket: Socket path checked when ``require_root`` is False.
        bind_address: Interface used to probe port availability.
    """

    def __init__(
        self,
        *,
        require_root: bool = True,
        docker_socket: str = DEFAULT_DOCKER_SOCKET,
        bind_address: str = "0.0.0.0",
    ):
        self.require_root = require_root
        self.docker_socket = docker_socket
        self.bind_address = bind_address

    def has_admin_privilege(self) -> bool:
        if os.geteuid() == 0:
            return True
        if self.require_root:
            return False
        return os.access(self.docker_socket, os.R_OK | os.W_OK)

    def is_port_free(self, port: int, protocol: str = "tcp") -> bool:
        """Return True when ``port`` can be bound on ``bind_address``."""
        kind = socket.SOCK_DGRAM if protocol == "udp" else socket.SOCK_STREAM
        with socket.socket(socket.AF_INET, kind) as sock:
            if kind == socket.SOCK_STREAM:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            try:
                sock.bind((self.bind_address, port))
            except OSError:
                return False
        return True

    def ensure_directory(self, path: Path) -> bool:
        """Create ``path`` (and parents) if needed.

        Returns:
            True when the directory was created, False when it already existed.

        Raises:
            DirectoryCreateFailed: If the path is not a directory or cannot be created.
        """
        path = Path(path).expanduser()
        if path.is_dir():
            logger.debug(f"Directory {path} already exists")
            return False
        if path.exists():
            raise DirectoryCreateFailed(path, "path exists and is not a directory")
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryCreateFailed(path, e.strerror or str(e)) from e
        logger.info(f"Created directory {path}")
        return True

    def write_seed_file(self, seed: SeedFile) -> bool:
        """Write ``seed`` unless a file is already present at its path.

        Returns:
            True when the file was written.
        """
        if seed.path.exists():
            logger.debug(f"Keeping existing {seed.path}")
            return False
        try:
            seed.path.parent.mkdir(parents=True, exist_ok=True)
            seed.path.write_text(seed.content, encoding="utf-8")
        except OSError as e:
            raise SeedFileWriteFailed(seed.path, e.strerror or str(e)) from e
        logger.info(f"Placed default file {seed.path}")
        return True


__all__ = ["DEFAULT_DOCKER_SOCKET", "HostEnvironment"]
