from __future__ import annotations

import logging
import os
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from shared.config.settings import VerifierSettings
from shared.schemas.cgroup_schema import MEMBERSHIP_CONTROLLERS, AttributeExpectation, ControllerName
from src.cgroups.path_resolver import CgroupPathResolver, Controller, join_parent
from src.cgroups.proc_loader import ProcessCgroupLoader
from src.runtime.docker_runtime import DockerRuntime, RunOptions, random_id
from src.verifier.attribute_verifier import AttributeResult, AttributeVerifier, read_int_attribute
from src.verifier.errors import CgroupNotFoundError, VerificationError
from src.verifier.membership_verifier import MembershipResult, MembershipVerifier
from src.verifier.poller import PollResult, poll_until

logger = logging.getLogger(__name__)

ALPINE_IMAGE = os.getenv("ALPINE_IMAGE", "alpine:3")
PYTHON_IMAGE = os.getenv("PYTHON_IMAGE", "python:3-alpine")

MEMORY_LIMIT_FILE = "memory.limit_in_bytes"
MEMORY_MAX_USAGE_FILE = "memory.max_usage_in_bytes"

# Not every attribute there is. cpusets are left out: they fail when set on
# the single-CPU machines these checks usually run on.
ATTRIBUTE_TABLE: List[AttributeExpectation] = [
    AttributeExpectation("--cpu-shares=1000", ControllerName.CPU, "cpu.shares", "1000"),
    AttributeExpectation("--cpu-period=2000", ControllerName.CPU, "cpu.cfs_period_us", "2000"),
    AttributeExpectation("--cpu-quota=3000", ControllerName.CPU, "cpu.cfs_quota_us", "3000"),
    AttributeExpectation("--kernel-memory=100MB", ControllerName.MEMORY, "memory.kmem.limit_in_bytes", "104857600"),
    AttributeExpectation("--memory=1GB", ControllerName.MEMORY, MEMORY_LIMIT_FILE, "1073741824"),
    AttributeExpectation("--memory-reservation=500MB", ControllerName.MEMORY, "memory.soft_limit_in_bytes", "524288000"),
    # swap accounting may be disabled on the host
    AttributeExpectation("--memory-swap=2GB", ControllerName.MEMORY, "memory.memsw.limit_in_bytes", "2147483648",
                         optional=True),
    AttributeExpectation("--memory-swappiness=5", ControllerName.MEMORY, "memory.swappiness", "5"),
    # blkio groups may not be available
    AttributeExpectation("--blkio-weight=750", ControllerName.BLKIO, "blkio.weight", "750", optional=True),
    AttributeExpectation("--pids-limit=1000", ControllerName.PIDS, "pids.max", "1000"),
]


@dataclass
class ScenarioReport:
    cgroup_id: str
    pid: Optional[int] = None
    attributes: List[AttributeResult] = field(default_factory=list)
    membership: Dict[str, MembershipResult] = field(default_factory=OrderedDict)
    failures: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def spawn_arguments(table: Iterable[AttributeExpectation]) -> List[str]:
    return [attr.arg for attr in table]


def verify_attributes(cgroup_id: str, table: Iterable[AttributeExpectation], parent: Optional[str] = None,
                      verifier: Optional[AttributeVerifier] = None) -> List[AttributeResult]:
    verifier = verifier or AttributeVerifier()
    return [verifier.verify_expectation(cgroup_id, attr, parent) for attr in table]


def check_cgroup_attributes(runtime: DockerRuntime,
                            table: Sequence[AttributeExpectation] = ATTRIBUTE_TABLE,
                            controllers: Iterable[Controller] = MEMBERSHIP_CONTROLLERS,
                            image: str = ALPINE_IMAGE,
                            resolver: Optional[CgroupPathResolver] = None) -> ScenarioReport:
    """Spawn with every table argument, then check each attribute and the sandbox's membership."""
    resolver = resolver or CgroupPathResolver(runtime.settings.cgroup_mount, runtime.settings.docker_parent)
    runtime.spawn(RunOptions(image=image, extra=spawn_arguments(table)), "sleep", "10000")
    cgroup_id = runtime.container_id()
    logger.info("cgroup ID: %s", cgroup_id)

    report = ScenarioReport(cgroup_id=cgroup_id)
    report.attributes = verify_attributes(cgroup_id, table, verifier=AttributeVerifier(resolver))
    for attr, result in zip(table, report.attributes):
        if not result.ok:
            report.failures.append(f"arg: {attr.arg!r}, cgroup attribute {attr.controller}/{attr.file}, "
                                   f"{result.describe()}")

    report.pid = runtime.sandbox_pid()
    membership = MembershipVerifier(resolver)
    for ctrl in controllers:
        path = resolver.resolve(ctrl, cgroup_id)
        try:
            result = membership.verify_membership(report.pid, path)
        except VerificationError as e:
            report.failures.append(f"cgroup control {str(ctrl)!r} processes: {e}")
            continue
        report.membership[str(ctrl)] = result
        if not result.present:
            report.failures.append(f"cgroup control {str(ctrl)!r} processes: {result.describe()}")
    return report


def memory_usage_predicate(path: str, alloc_size: int, alloc_limit: int):
    """
    Build a poll predicate: done once the limit is in place and max usage has
    reached `alloc_size`. The observed value is the last usage read, in bytes.
    """
    last_usage: Optional[int] = None

    def predicate() -> Tuple[bool, Optional[int]]:
        nonlocal last_usage
        limit = read_int_attribute(path, MEMORY_LIMIT_FILE)
        if limit != alloc_limit:
            # the limit may not have been applied yet
            logger.debug("memory limit is %d, waiting for %d", limit, alloc_limit)
            return False, last_usage
        last_usage = read_int_attribute(path, MEMORY_MAX_USAGE_FILE)
        logger.debug("read usage: %d, wanted: %d", last_usage, alloc_size)
        return last_usage >= alloc_size, last_usage
    return predicate


def check_memory_usage(runtime: DockerRuntime, alloc_size: int = 128 << 20,
                       interval: Optional[float] = None, deadline: Optional[float] = None,
                       image: str = PYTHON_IMAGE,
                       resolver: Optional[CgroupPathResolver] = None) -> PollResult:
    """
    Start a container that allocates `alloc_size` bytes under a limit of twice
    that, and wait for the memory cgroup to account for the allocation.
    """
    settings = runtime.settings
    interval = settings.poll_interval if interval is None else interval
    deadline = settings.poll_deadline if deadline is None else deadline
    resolver = resolver or CgroupPathResolver(settings.cgroup_mount, settings.docker_parent)

    alloc_limit = 2 * alloc_size
    runtime.spawn(
        RunOptions(image=image, memory_kb=alloc_limit // 1024),
        "python", "-c", f"import time; s = 'a' * {alloc_size}; time.sleep(100)",
    )
    cgroup_id = runtime.container_id()
    logger.info("cgroup ID: %s", cgroup_id)

    path = resolver.resolve(ControllerName.MEMORY, cgroup_id)
    result = poll_until(memory_usage_predicate(path, alloc_size, alloc_limit), interval, deadline)
    if result.converged:
        logger.info("memory usage %dMB reached after %.1fs", result.value >> 20, result.elapsed)
    else:
        usage = result.value or 0
        logger.info("%dMB is less than %dMB", usage >> 20, alloc_size >> 20)
    return result


def parent_cgroup_path(pid: int, controller: Controller = ControllerName.MEMORY,
                       loader: Optional[ProcessCgroupLoader] = None) -> str:
    """Cgroup path (relative to the controller root) of `pid`'s parent process."""
    loader = loader or ProcessCgroupLoader()
    ppid = loader.load_parent_pid(pid)
    paths = loader.load_controller_paths(ppid)
    try:
        return paths[str(controller)]
    except KeyError:
        raise CgroupNotFoundError(f"process {ppid} has no {controller} cgroup: {sorted(paths)}") from None


def check_cgroup_parent(runtime: DockerRuntime, parent: Optional[str] = None, image: str = ALPINE_IMAGE,
                        resolver: Optional[CgroupPathResolver] = None,
                        loader: Optional[ProcessCgroupLoader] = None) -> MembershipResult:
    """
    Spawn under --cgroup-parent and check the sandbox landed in
    memory/<parent process's memory cgroup>/<parent>/<id>.
    """
    settings: VerifierSettings = runtime.settings
    resolver = resolver or CgroupPathResolver(settings.cgroup_mount, settings.docker_parent)
    loader = loader or ProcessCgroupLoader(settings.proc_root)
    parent = parent or random_id("runsc-")

    runtime.spawn(RunOptions(image=image, extra=[f"--cgroup-parent={parent}"]), "sleep", "10000")
    cgroup_id = runtime.container_id()
    logger.info("cgroup ID: %s", cgroup_id)

    pid = runtime.sandbox_pid()
    base = parent_cgroup_path(pid, ControllerName.MEMORY, loader)
    path = resolver.resolve(ControllerName.MEMORY, cgroup_id, join_parent(base, parent))
    return MembershipVerifier(resolver).verify_membership(pid, path)
