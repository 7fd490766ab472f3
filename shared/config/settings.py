from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _env_str(name: str, default: str) -> str:
    return os.getenv(name, default).rstrip("/") or default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_optional(name: str) -> Optional[str]:
    raw = os.getenv(name, "").strip()
    return raw or None


@dataclass(frozen=True)
class VerifierSettings:
    cgroup_mount: str = "/sys/fs/cgroup"
    docker_parent: str = "docker"
    proc_root: str = "/proc"
    poll_interval: float = 0.1
    poll_deadline: float = 30.0
    docker_bin: str = "docker"
    docker_runtime: Optional[str] = None
    command_timeout: float = 60.0

    @staticmethod
    def from_env() -> "VerifierSettings":
        return VerifierSettings(
            cgroup_mount=_env_str("CGROUP_MOUNT", "/sys/fs/cgroup"),
            docker_parent=os.getenv("CGROUP_DOCKER_PARENT", "docker").strip("/"),
            proc_root=_env_str("PROC_ROOT", "/proc"),
            poll_interval=_env_float("POLL_INTERVAL", 0.1),
            poll_deadline=_env_float("POLL_DEADLINE", 30.0),
            docker_bin=os.getenv("DOCKER_BIN", "docker"),
            docker_runtime=_env_optional("DOCKER_RUNTIME"),
            command_timeout=_env_float("DOCKER_COMMAND_TIMEOUT", 60.0),
        )
