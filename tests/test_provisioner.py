"""Tests for the provisioning workflow against in-memory collaborators."""

from __future__ import annotations

from pathlib import Path

import pytest

from harbormaster.provisioning import (
    BuildSource,
    DirectoryCreateFailed,
    PortInUse,
    PortMapping,
    PrivilegeError,
    ProvisionStatus,
    PullSource,
    SeedFile,
    ServiceDescriptor,
    ValidationError,
    VolumeMapping,
)
from harbormaster.provisioning.provisioner import Provisioner

from fakes import FakeClock, FakeHost, FakeRuntime


def _nginx_descriptor(cfg_dir: Path, *, image: str = "nginx:latest") -> ServiceDescriptor:
    return ServiceDescriptor(
        name="svc1",
        image_source=PullSource(image),
        port_mappings=(PortMapping(8080, 80),),
        volume_mappings=(VolumeMapping(cfg_dir, "/etc/nginx/conf.d"),),
    )


def test_fresh_host_provisions_running_container(
    provisioner: Provisioner, runtime: FakeRuntime, tmp_path: Path
) -> None:
    cfg = tmp_path / "cfg"
    result = provisioner.provision(_nginx_descriptor(cfg))

    assert result.status is ProvisionStatus.RUNNING
    assert result.container_id
    assert result.container_id == runtime.containers["svc1"].id
    assert cfg.is_dir()
    run_kwargs = runtime.containers["svc1"].run_kwargs
    assert run_kwargs["ports"] == [(8080, 80, "tcp")]
    assert run_kwargs["volumes"] == [(str(cfg), "/etc/nginx/conf.d", "rw")]
    assert result.diagnostics[-1].startswith("Container 'svc1' is running")


def test_second_run_replaces_and_keeps_single_container(
    provisioner: Provisioner, runtime: FakeRuntime, tmp_path: Path
) -> None:
    descriptor = _nginx_descriptor(tmp_path / "cfg")

    first = provisioner.provision(descriptor)
    second = provisioner.provision(descriptor)

    assert first.status is ProvisionStatus.RUNNING
    assert second.status is ProvisionStatus.RUNNING
    assert first.container_id != second.container_id
    assert list(runtime.containers) == ["svc1"]
    assert runtime.containers["svc1"].id == second.container_id
    assert runtime.call_names().count("stop") == 1
    assert runtime.call_names().count("remove") == 1


def test_rerun_tolerates_port_held_by_replaced_container(
    provisioner: Provisioner, runtime: FakeRuntime, host: FakeHost, tmp_path: Path
) -> None:
    runtime.images.add("nginx:latest")
    runtime.add_container("svc1", image="nginx:latest", published=((8080, "tcp"),))
    # The old container's docker-proxy is what keeps the port busy.
    host.busy_ports.add((8080, "tcp"))

    result = provisioner.provision(_nginx_descriptor(tmp_path / "cfg"))

    assert result.status is ProvisionStatus.RUNNING
    assert any("held by the container being replaced" in d for d in result.diagnostics)


def test_port_occupied_by_unrelated_process_fails_validation(
    provisioner: Provisioner, runtime: FakeRuntime, host: FakeHost, tmp_path: Path
) -> None:
    descriptor = _nginx_descriptor(tmp_path / "cfg")
    assert provisioner.provision(descriptor).status is ProvisionStatus.RUNNING

    runtime.containers["svc1"].state = "exited"
    host.busy_ports.add((8080, "tcp"))
    calls_before = len(runtime.calls)

    result = provisioner.provision(descriptor)

    assert result.status is ProvisionStatus.FAILED_VALIDATION
    assert result.container_id is None
    assert any("PortInUse(8080)" in d for d in result.diagnostics)
    assert "pull" not in runtime.call_names()[calls_before:]
    assert "run" not in runtime.call_names()[calls_before:]


def test_port_failure_creates_no_directories(
    provisioner: Provisioner, host: FakeHost, tmp_path: Path
) -> None:
    host.busy_ports.add((8080, "tcp"))
    cfg = tmp_path / "cfg"

    with pytest.raises(PortInUse) as excinfo:
        provisioner.validate(_nginx_descriptor(cfg))

    assert excinfo.value.port == 8080
    assert not cfg.exists()
    assert host.created == []


def test_validate_succeeds_for_free_ports_and_creatable_paths(
    provisioner: Provisioner, host: FakeHost, tmp_path: Path
) -> None:
    descriptor = ServiceDescriptor(
        name="multi",
        image_source=PullSource("busybox:latest"),
        port_mappings=(PortMapping(5300, 53, "udp"), PortMapping(5300, 53, "tcp")),
        volume_mappings=(
            VolumeMapping(tmp_path / "a" / "b", "/data"),
            VolumeMapping(tmp_path / "existing", "/existing"),
        ),
    )
    (tmp_path / "existing").mkdir()

    provisioner.validate(descriptor)

    assert host.created == [tmp_path / "a" / "b"]


def test_missing_privilege_fails_before_anything_else(
    provisioner: Provisioner, runtime: FakeRuntime, host: FakeHost, tmp_path: Path
) -> None:
    host.privileged = False
    host.busy_ports.add((8080, "tcp"))

    with pytest.raises(PrivilegeError):
        provisioner.validate(_nginx_descriptor(tmp_path / "cfg"))

    result = provisioner.provision(_nginx_descriptor(tmp_path / "cfg"))
    assert result.status is ProvisionStatus.FAILED_VALIDATION
    assert "PrivilegeError" in result.diagnostics[-1]
    assert runtime.calls == []


def test_unreachable_daemon_fails_validation(
    provisioner: Provisioner, runtime: FakeRuntime, tmp_path: Path
) -> None:
    runtime.ping_error = "connection refused"

    with pytest.raises(ValidationError, match="connection refused"):
        provisioner.validate(_nginx_descriptor(tmp_path / "cfg"))


def test_directory_blocked_by_file_fails_validation(runtime: FakeRuntime, tmp_path: Path) -> None:
    from harbormaster.provisioning import HostEnvironment

    blocker = tmp_path / "cfg"
    blocker.write_text("not a directory")
    host = HostEnvironment(require_root=False)
    host.has_admin_privilege = lambda: True  # type: ignore[method-assign]
    host.is_port_free = lambda port, protocol="tcp": True  # type: ignore[method-assign]
    provisioner = Provisioner(runtime, host)

    with pytest.raises(DirectoryCreateFailed):
        provisioner.validate(_nginx_descriptor(blocker))

    result = provisioner.provision(_nginx_descriptor(blocker))
    assert result.status is ProvisionStatus.FAILED_VALIDATION
    assert any("DirectoryCreateFailed" in d for d in result.diagnostics)


def test_seed_files_written_once(
    provisioner: Provisioner, host: FakeHost, tmp_path: Path
) -> None:
    cfg = tmp_path / "cfg"
    descriptor = ServiceDescriptor(
        name="proxy",
        image_source=PullSource("nginx:latest"),
        volume_mappings=(VolumeMapping(cfg, "/etc/nginx/conf.d"),),
        seed_files=(SeedFile(cfg / "default.conf", "server {}\n"),),
    )

    provisioner.validate(descriptor)
    (cfg / "default.conf").write_text("edited\n")
    provisioner.validate(descriptor)

    assert (cfg / "default.conf").read_text() == "edited\n"
    assert host.seeded == [cfg / "default.conf"]


def test_pull_failure_maps_to_image_resolution(
    provisioner: Provisioner, runtime: FakeRuntime, tmp_path: Path
) -> None:
    runtime.pull_error = "manifest for nginx:nope not found"

    result = provisioner.provision(_nginx_descriptor(tmp_path / "cfg", image="nginx:nope"))

    assert result.status is ProvisionStatus.FAILED_IMAGE_RESOLUTION
    assert any("manifest for nginx:nope not found" in d for d in result.diagnostics)
    assert "run" not in runtime.call_names()


def test_build_with_missing_base_image_fails_resolution(
    provisioner: Provisioner, runtime: FakeRuntime
) -> None:
    runtime.build_error = "pull access denied for doesnotexist/base, repository does not exist"
    descriptor = ServiceDescriptor(
        name="built",
        image_source=BuildSource(tag="local/built:1", dockerfile_content="FROM doesnotexist/base\n"),
    )

    result = provisioner.provision(descriptor)

    assert result.status is ProvisionStatus.FAILED_IMAGE_RESOLUTION
    assert any("doesnotexist/base" in d for d in result.diagnostics)
    assert "pull" not in runtime.call_names()


def test_replacement_swaps_image_under_same_name(
    provisioner: Provisioner, runtime: FakeRuntime, tmp_path: Path
) -> None:
    old = runtime.add_container("svc1", image="nginx:1.25")

    result = provisioner.provision(_nginx_descriptor(tmp_path / "cfg", image="nginx:1.27"))

    assert result.status is ProvisionStatus.RUNNING
    current = runtime.containers["svc1"]
    assert current.id != old.id
    assert current.image == "nginx:1.27"
    names = runtime.call_names()
    assert names.index("stop") < names.index("remove") < names.index("run")


def test_stop_and_remove_failures_are_tolerated(
    provisioner: Provisioner, runtime: FakeRuntime, tmp_path: Path
) -> None:
    runtime.add_container("svc1")
    runtime.stop_error = "container is stuck"
    runtime.remove_error = "removal in progress"

    result = provisioner.provision(_nginx_descriptor(tmp_path / "cfg"))

    # The stale container was never removed, so the runtime rejects the name.
    assert result.status is ProvisionStatus.FAILED_LAUNCH
    assert any("Could not stop" in d for d in result.diagnostics)
    assert any("Could not remove" in d for d in result.diagnostics)
    assert any("Conflict" in d for d in result.diagnostics)


def test_already_gone_container_is_not_an_error(
    provisioner: Provisioner, runtime: FakeRuntime, tmp_path: Path
) -> None:
    runtime.add_container("svc1")
    original_stop = runtime.stop

    def stop_after_vanishing(name: str, timeout: float = 10.0) -> None:
        runtime.containers.pop(name, None)
        original_stop(name, timeout)

    runtime.stop = stop_after_vanishing  # type: ignore[method-assign]

    result = provisioner.provision(_nginx_descriptor(tmp_path / "cfg"))

    assert result.status is ProvisionStatus.RUNNING
    assert any("already gone" in d for d in result.diagnostics)


def test_runtime_rejection_maps_to_failed_launch(
    provisioner: Provisioner, runtime: FakeRuntime, tmp_path: Path
) -> None:
    runtime.run_error = "Bind for 0.0.0.0:8080 failed: port is already allocated"

    result = provisioner.provision(_nginx_descriptor(tmp_path / "cfg"))

    assert result.status is ProvisionStatus.FAILED_LAUNCH
    assert "port is already allocated" in result.diagnostics[-1]


def test_pending_container_is_polled_until_running(
    provisioner: Provisioner, runtime: FakeRuntime, clock: FakeClock, tmp_path: Path
) -> None:
    runtime.launch_states = ["created", "created", "running"]

    result = provisioner.provision(_nginx_descriptor(tmp_path / "cfg"))

    assert result.status is ProvisionStatus.RUNNING
    assert clock.now == pytest.approx(1.0)


def test_pending_container_times_out(
    provisioner: Provisioner, runtime: FakeRuntime, clock: FakeClock, tmp_path: Path
) -> None:
    runtime.launch_states = ["created"]

    result = provisioner.provision(_nginx_descriptor(tmp_path / "cfg"))

    assert result.status is ProvisionStatus.FAILED_VERIFICATION
    assert clock.now <= 2.5


def test_exited_container_fails_verification_with_logs(
    provisioner: Provisioner, runtime: FakeRuntime, clock: FakeClock, tmp_path: Path
) -> None:
    runtime.launch_states = ["exited"]
    runtime.log_text = "nginx: [emerg] unknown directive\n"

    result = provisioner.provision(_nginx_descriptor(tmp_path / "cfg"))

    assert result.status is ProvisionStatus.FAILED_VERIFICATION
    assert result.container_id is None
    assert any("VerificationError(NotRunning)" in d for d in result.diagnostics)
    assert "unknown directive" in result.diagnostics[-1]
    assert clock.now == 0.0


def test_launch_passes_flags_command_and_environment(
    provisioner: Provisioner, runtime: FakeRuntime
) -> None:
    descriptor = ServiceDescriptor(
        name="tunnel",
        image_source=PullSource("cloudflare/cloudflared:latest"),
        runtime_flags=("--network=host",),
        command=("tunnel", "run"),
        environment={"TUNNEL_TOKEN": "abc"},
    )

    result = provisioner.provision(descriptor)

    assert result.ok
    run_kwargs = runtime.containers["tunnel"].run_kwargs
    assert run_kwargs["flags"] == ["--network=host"]
    assert run_kwargs["command"] == ("tunnel", "run")
    assert run_kwargs["environment"] == {"TUNNEL_TOKEN": "abc"}
