"""Image resolution: pull from a registry or build from an in-memory Dockerfile."""

from __future__ import annotations

from pathlib import Path
import tempfile

from harbormaster.utils.docker import DockerBuildError, DockerError
from harbormaster.utils.log_utils import logger

from .descriptor import BuildSource, ImageSource, PullSource
from .errors import BuildFailed, PullFailed
from .interfaces import ContainerRuntime


BUILD_CONTEXT_PREFIX = "harbormaster-build-"


def resolve_image(source: ImageSource, runtime: ContainerRuntime) -> str:
    """Make the image described by ``source`` available locally.

    Returns:
        The image reference to launch containers from.

    Raises:
        PullFailed: Registry unreachable or unknown reference.
        BuildFailed: The build exited unsuccessfully.
    """
    if isinstance(source, BuildSource):
        return _build(source, runtime)
    if isinstance(source, PullSource):
        return _pull(source, runtime)
    raise TypeError(f"Unsupported image source: {source!r}")


def _pull(source: PullSource, runtime: ContainerRuntime) -> str:
    try:
        runtime.pull(source.reference)
    except DockerError as e:
        raise PullFailed(source.reference, str(e)) from e
    logger.info(f"Image '{source.reference}' is available")
    return source.reference


def write_build_context(source: BuildSource, context_dir: Path) -> Path:
    """Materialize the Dockerfile and extra context files; return the Dockerfile path."""
    dockerfile = context_dir / "Dockerfile"
    dockerfile.write_text(source.dockerfile_content, encoding="utf-8")
    for rel, content in source.context_files.items():
        target = context_dir / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    return dockerfile


def _build(source: BuildSource, runtime: ContainerRuntime) -> str:
    # The context only lives for the duration of the build, success or not.
    with tempfile.TemporaryDirectory(prefix=BUILD_CONTEXT_PREFIX) as tmp:
        context_dir = Path(tmp)
        try:
            dockerfile = write_build_context(source, context_dir)
        except OSError as e:
            raise BuildFailed(source.tag, f"could not write build context: {e}") from e
        logger.debug(f"Dockerfile written to {dockerfile}")
        try:
            runtime.build(context_dir, source.tag)
        except DockerBuildError as e:
            detail = str(e)
            if e.log:
                detail = f"{detail}\n{e.log}"
            raise BuildFailed(source.tag, detail) from e
        except DockerError as e:
            raise BuildFailed(source.tag, str(e)) from e
    logger.info(f"Image '{source.tag}' built")
    return source.tag


__all__ = ["BUILD_CONTEXT_PREFIX", "resolve_image", "write_build_context"]
