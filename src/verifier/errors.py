from __future__ import annotations

from typing import Any, List, Optional


class VerificationError(Exception):
    """Base error for everything the verifier reports."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path


class CgroupNotFoundError(VerificationError):
    """A cgroup directory, control file or /proc record does not exist."""


class MalformedDataError(VerificationError):
    """Kernel-provided content did not parse (non-integer pid, bad record line)."""


class AttributeMismatchError(VerificationError):
    def __init__(self, message: str, got: str, want: str, path: Optional[str] = None) -> None:
        super().__init__(message, path=path)
        self.got = got
        self.want = want


class MembershipError(VerificationError):
    def __init__(self, message: str, pid: int, observed: List[int], path: Optional[str] = None) -> None:
        super().__init__(message, path=path)
        self.pid = pid
        self.observed = observed


class ConvergenceTimeoutError(VerificationError):
    def __init__(self, message: str, last_value: Any, elapsed: float) -> None:
        super().__init__(message)
        self.last_value = last_value
        self.elapsed = elapsed


class RuntimeCommandError(VerificationError):
    """The container runtime CLI exited non-zero or timed out."""

    def __init__(self, message: str, command: List[str], output: str = "") -> None:
        super().__init__(message)
        self.command = command
        self.output = output
