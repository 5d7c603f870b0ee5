"""Tests for pulling and building images."""

from __future__ import annotations

import pytest

from harbormaster.provisioning import BuildFailed, BuildSource, PullFailed, PullSource
from harbormaster.provisioning.images import resolve_image

from fakes import FakeRuntime


def test_pull_returns_reference(runtime: FakeRuntime) -> None:
    assert resolve_image(PullSource("nginx:latest"), runtime) == "nginx:latest"
    assert runtime.calls == [("pull", "nginx:latest")]


def test_pull_failure_names_reference(runtime: FakeRuntime) -> None:
    runtime.pull_error = "manifest unknown"

    with pytest.raises(PullFailed, match="nginx:nope") as excinfo:
        resolve_image(PullSource("nginx:nope"), runtime)
    assert "manifest unknown" in str(excinfo.value)


def test_build_writes_context_and_never_pulls(runtime: FakeRuntime) -> None:
    source = BuildSource(
        tag="local/app:dev",
        dockerfile_content="FROM python:3.10\nCOPY app.py /app.py\n",
        context_files={"app.py": "print('hi')\n", "conf/app.ini": "[app]\n"},
    )
    seen: dict[str, str] = {}
    original_build = runtime.build

    def capture(context_dir, tag):
        seen["app"] = (context_dir / "app.py").read_text(encoding="utf-8")
        seen["ini"] = (context_dir / "conf" / "app.ini").read_text(encoding="utf-8")
        return original_build(context_dir, tag)

    runtime.build = capture

    assert resolve_image(source, runtime) == "local/app:dev"
    assert "pull" not in runtime.call_names()
    assert runtime.build_dockerfiles == [source.dockerfile_content]
    assert seen == {"app": "print('hi')\n", "ini": "[app]\n"}


def test_build_context_removed_after_success(runtime: FakeRuntime) -> None:
    resolve_image(BuildSource(tag="local/app:dev", dockerfile_content="FROM scratch\n"), runtime)

    (context_dir,) = runtime.build_contexts
    assert not context_dir.exists()


def test_build_failure_carries_log_and_cleans_up(runtime: FakeRuntime) -> None:
    runtime.build_error = "Step 2/3 : RUN false\nreturned a non-zero code: 1"

    with pytest.raises(BuildFailed) as excinfo:
        resolve_image(BuildSource(tag="local/app:dev", dockerfile_content="FROM scratch\n"), runtime)

    message = str(excinfo.value)
    assert "local/app:dev" in message
    assert "RUN false" in message
    (context_dir,) = runtime.build_contexts
    assert not context_dir.exists()


def test_unknown_source_type_is_rejected(runtime: FakeRuntime) -> None:
    with pytest.raises(TypeError):
        resolve_image("nginx:latest", runtime)
