"""Load service descriptors from JSON files.

Example::

    {
      "name": "svc1",
      "image": "nginx:latest",
      "ports": [{"host": 8080, "container": 80}],
      "volumes": [{"host": "/tmp/cfg", "container": "/etc/nginx/conf.d"}]
    }

Use ``"build": {"tag": ..., "dockerfile": ...}`` (or ``"dockerfile_path"``,
resolved relative to the descriptor file) instead of ``"image"`` for locally
built images.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .descriptor import (
    BuildSource,
    ImageSource,
    PortMapping,
    PullSource,
    SeedFile,
    ServiceDescriptor,
    VolumeMapping,
)


class DescriptorFileError(ValueError):
    """Raised when a descriptor file cannot be read or is invalid."""


class _PortModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: int = Field(ge=1, le=65535)
    container: int = Field(ge=1, le=65535)
    protocol: str = "tcp"


class _VolumeModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: str
    container: str
    mode: str = "rw"


class _SeedModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str
    content: str


class _BuildModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tag: str
    dockerfile: str | None = None
    dockerfile_path: str | None = None
    context_files: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def exactly_one_dockerfile(self) -> _BuildModel:
        if (self.dockerfile is None) == (self.dockerfile_path is None):
            raise ValueError("Provide exactly one of 'dockerfile' or 'dockerfile_path'.")
        return self


class _DescriptorModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    image: str | None = None
    build: _BuildModel | None = None
    ports: list[_PortModel] = Field(default_factory=list)
    volumes: list[_VolumeModel] = Field(default_factory=list)
    runtime_flags: list[str] = Field(default_factory=list)
    command: list[str] | None = None
    environment: dict[str, str] = Field(default_factory=dict)
    seed_files: list[_SeedModel] = Field(default_factory=list)

    @model_validator(mode="after")
    def exactly_one_image_source(self) -> _DescriptorModel:
        if (self.image is None) == (self.build is None):
            raise ValueError("Provide exactly one of 'image' or 'build'.")
        return self


def _image_source(model: _DescriptorModel, base_dir: Path) -> ImageSource:
    build = model.build
    if build is None:
        return PullSource(model.image or "")
    content = build.dockerfile
    if build.dockerfile_path is not None:
        path = (base_dir / build.dockerfile_path).expanduser()
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise DescriptorFileError(f"Cannot read Dockerfile {path}: {e}") from e
    return BuildSource(
        tag=build.tag,
        dockerfile_content=content or "",
        context_files=build.context_files,
    )


def parse_descriptor(text: str, *, base_dir: Path | None = None) -> ServiceDescriptor:
    """Parse JSON text into a :class:`ServiceDescriptor`.

    Raises:
        DescriptorFileError: On malformed JSON, unknown keys or invalid values.
    """
    try:
        model = _DescriptorModel.model_validate_json(text)
    except ValidationError as e:
        raise DescriptorFileError(str(e)) from e
    base_dir = base_dir or Path.cwd()
    try:
        return ServiceDescriptor(
            name=model.name,
            image_source=_image_source(model, base_dir),
            port_mappings=tuple(
                PortMapping(p.host, p.container, p.protocol) for p in model.ports
            ),
            volume_mappings=tuple(
                VolumeMapping(Path(v.host), v.container, v.mode) for v in model.volumes
            ),
            runtime_flags=tuple(model.runtime_flags),
            command=tuple(model.command) if model.command is not None else None,
            environment=model.environment,
            seed_files=tuple(SeedFile(Path(s.path), s.content) for s in model.seed_files),
        )
    except DescriptorFileError:
        raise
    except (TypeError, ValueError) as e:
        raise DescriptorFileError(str(e)) from e


def load_descriptor(path: Path | str) -> ServiceDescriptor:
    """Read and parse a JSON descriptor file."""
    path = Path(path).expanduser()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DescriptorFileError(f"Cannot read descriptor file {path}: {e}") from e
    return parse_descriptor(text, base_dir=path.parent)


__all__ = ["DescriptorFileError", "load_descriptor", "parse_descriptor"]
