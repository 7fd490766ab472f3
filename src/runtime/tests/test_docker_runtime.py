import subprocess

import pytest

from shared.config.settings import VerifierSettings
from src.runtime.docker_runtime import DockerRuntime, RunOptions, random_id
from src.verifier.errors import MalformedDataError, RuntimeCommandError


class FakeRun:
    """Replaces subprocess.run; answers by docker sub-command."""

    def __init__(self, outputs=None, returncode=0):
        self.calls = []
        self.outputs = outputs or {}
        self.returncode = returncode

    def __call__(self, cmd, **kwargs):
        self.calls.append(cmd)
        key = cmd[1] if cmd[1] != "inspect" else cmd[3]
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=self.outputs.get(key, "") + "\n")


@pytest.fixture
def settings():
    return VerifierSettings(docker_bin="docker", docker_runtime="runsc", command_timeout=5)


def test_random_id():
    a, b = random_id("runsc-"), random_id("runsc-")
    assert a.startswith("runsc-") and a != b


def test_run_args(settings):
    rt = DockerRuntime(settings, name="c1")
    args = rt.run_args(RunOptions(image="alpine", memory_kb=262144, extra=["--cpu-shares=1000"]), ["sleep", "1"])
    assert args == ["run", "-d", "--name", "c1", "--runtime=runsc", "--memory=262144k",
                    "--cpu-shares=1000", "alpine", "sleep", "1"]


def test_spawn_inspect_cleanup(settings, monkeypatch):
    fake = FakeRun({"{{.Id}}": "f00ba4", "{{.State.Pid}}": "4242"})
    monkeypatch.setattr(subprocess, "run", fake)
    with DockerRuntime(settings, name="c1") as rt:
        rt.spawn(RunOptions(image="alpine"), "sleep", "10000")
        assert rt.container_id() == "f00ba4"
        assert rt.sandbox_pid() == 4242
    assert fake.calls[0][:2] == ["docker", "run"]
    assert fake.calls[-1] == ["docker", "rm", "-f", "c1"]


def test_cleanup_without_spawn_is_noop(settings, monkeypatch):
    fake = FakeRun()
    monkeypatch.setattr(subprocess, "run", fake)
    DockerRuntime(settings).cleanup()
    assert fake.calls == []


def test_failed_command(settings, monkeypatch):
    monkeypatch.setattr(subprocess, "run", FakeRun({"run": "no such image"}, returncode=125))
    rt = DockerRuntime(settings, name="c1")
    with pytest.raises(RuntimeCommandError) as exc:
        rt.spawn(RunOptions(image="missing"))
    assert "no such image" in str(exc.value)
    assert exc.value.command[:2] == ["docker", "run"]


def test_sandbox_pid_not_a_number(settings, monkeypatch):
    monkeypatch.setattr(subprocess, "run", FakeRun({"{{.State.Pid}}": "<no value>"}))
    with pytest.raises(MalformedDataError):
        DockerRuntime(settings, name="c1").sandbox_pid()


def test_sandbox_pid_not_running(settings, monkeypatch):
    monkeypatch.setattr(subprocess, "run", FakeRun({"{{.State.Pid}}": "0"}))
    with pytest.raises(RuntimeCommandError):
        DockerRuntime(settings, name="c1").sandbox_pid()


def test_timeout(settings, monkeypatch):
    def boom(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])
    monkeypatch.setattr(subprocess, "run", boom)
    with pytest.raises(RuntimeCommandError):
        DockerRuntime(settings, name="c1").container_id()


def test_missing_cli():
    rt = DockerRuntime(VerifierSettings(docker_bin="/nonexistent/docker"), name="c1")
    assert not rt.available()
    with pytest.raises(RuntimeCommandError):
        rt.container_id()
