from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List


class ControllerName(str, Enum):
    BLKIO = "blkio"
    CPU = "cpu"
    CPUACCT = "cpuacct"
    CPUSET = "cpuset"
    DEVICES = "devices"
    FREEZER = "freezer"
    HUGETLB = "hugetlb"
    MEMORY = "memory"
    NET_CLS = "net_cls"
    NET_PRIO = "net_prio"
    PERF_EVENT = "perf_event"
    PIDS = "pids"
    RDMA = "rdma"
    SYSTEMD = "systemd"

    def __str__(self) -> str:
        return self.value


# controllers whose cgroup.procs must list the sandbox process
MEMBERSHIP_CONTROLLERS: List[ControllerName] = [
    ControllerName.BLKIO,
    ControllerName.CPU,
    ControllerName.CPUSET,
    ControllerName.MEMORY,
    ControllerName.NET_CLS,
    ControllerName.NET_PRIO,
    ControllerName.DEVICES,
    ControllerName.FREEZER,
    ControllerName.PERF_EVENT,
    ControllerName.PIDS,
    ControllerName.SYSTEMD,
]

PROCS_FILE = "cgroup.procs"


@dataclass(frozen=True)
class AttributeExpectation:
    """
    One row of a verification table.

    `arg` is the runtime flag that configures the attribute, `file` the control
    file it lands in and `want` the exact text the kernel should report.
    `optional` rows may be absent on hosts where the controller or accounting
    feature is disabled.
    """
    arg: str
    controller: ControllerName
    file: str
    want: str
    optional: bool = False
