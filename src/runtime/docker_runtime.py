from __future__ import annotations

import logging
import shutil
import subprocess
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from shared.config.settings import VerifierSettings
from src.verifier.errors import MalformedDataError, RuntimeCommandError

logger = logging.getLogger(__name__)


def random_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex[:12]}"


@dataclass
class RunOptions:
    image: str
    # docker's -m flag; kept in KiB like the runtime expects
    memory_kb: Optional[int] = None
    extra: List[str] = field(default_factory=list)


class DockerRuntime:
    """
    Minimal docker CLI wrapper: one container per instance.

    Only what the cgroup checks need: spawn detached, look up the container id
    (which names its cgroup) and the sandbox pid, and remove it again.
    """

    def __init__(self, settings: Optional[VerifierSettings] = None, name: Optional[str] = None):
        self.settings = settings or VerifierSettings.from_env()
        self.name = name or random_id("cgverify-")
        self._spawned = False

    def __enter__(self) -> "DockerRuntime":
        return self

    def __exit__(self, *exc) -> None:
        self.cleanup()

    def available(self) -> bool:
        return shutil.which(self.settings.docker_bin) is not None

    def _run(self, args: List[str]) -> str:
        cmd = [self.settings.docker_bin, *args]
        logger.debug("exec: %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.settings.command_timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise RuntimeCommandError(f"timed out after {e.timeout}s: {' '.join(cmd)}", command=cmd) from None
        except FileNotFoundError:
            raise RuntimeCommandError(f"runtime CLI not found: {cmd[0]}", command=cmd) from None
        if proc.returncode != 0:
            raise RuntimeCommandError(
                f"{' '.join(cmd)} failed with exit code {proc.returncode}: {proc.stdout.strip()}",
                command=cmd,
                output=proc.stdout,
            )
        return proc.stdout.strip()

    def run_args(self, opts: RunOptions, command: List[str]) -> List[str]:
        args = ["run", "-d", "--name", self.name]
        if self.settings.docker_runtime:
            args.append(f"--runtime={self.settings.docker_runtime}")
        if opts.memory_kb is not None:
            args.append(f"--memory={opts.memory_kb}k")
        args.extend(opts.extra)
        args.append(opts.image)
        args.extend(command)
        return args

    def spawn(self, opts: RunOptions, *command: str) -> None:
        self._spawned = True
        self._run(self.run_args(opts, list(command)))
        logger.info("spawned container %s (%s)", self.name, opts.image)

    def _inspect(self, fmt: str) -> str:
        return self._run(["inspect", "-f", fmt, self.name])

    def container_id(self) -> str:
        return self._inspect("{{.Id}}")

    def sandbox_pid(self) -> int:
        out = self._inspect("{{.State.Pid}}")
        try:
            pid = int(out)
        except ValueError:
            raise MalformedDataError(f"docker inspect returned a non-integer pid: {out!r}") from None
        if pid <= 0:
            raise RuntimeCommandError(f"container {self.name} is not running (pid {pid})",
                                      command=["inspect", self.name])
        return pid

    def cleanup(self) -> None:
        if not self._spawned:
            return
        try:
            self._run(["rm", "-f", self.name])
        except RuntimeCommandError as e:
            logger.warning("cleanup of %s failed: %s", self.name, e)
        finally:
            self._spawned = False
