from __future__ import annotations

import logging
import os
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from shared.schemas.cgroup_schema import MEMBERSHIP_CONTROLLERS, PROCS_FILE
from src.cgroups.kernel_files import parse_decimal, read_text
from src.cgroups.path_resolver import CgroupPathResolver, Controller
from src.verifier.errors import MembershipError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MembershipResult:
    pid: int
    path: str
    present: bool
    observed: List[int] = field(default_factory=list)

    def describe(self) -> str:
        if self.present:
            return f"{self.path}: pid {self.pid} present"
        return f"{self.path}: got: {self.observed}, want: {self.pid}"

    def raise_for_status(self) -> None:
        if not self.present:
            raise MembershipError(self.describe(), pid=self.pid, observed=list(self.observed), path=self.path)


def read_procs(path: str) -> List[int]:
    """Read <path>/cgroup.procs; any line that is not a plain decimal pid fails the whole read."""
    file_path = os.path.join(path, PROCS_FILE)
    return [parse_decimal(line, file_path) for line in read_text(file_path).splitlines()]


class MembershipVerifier:
    def __init__(self, resolver: Optional[CgroupPathResolver] = None):
        self.resolver = resolver or CgroupPathResolver()

    def verify_membership(self, pid: int, path: str) -> MembershipResult:
        observed = read_procs(path)
        present = pid in observed
        logger.debug("pid %s in %s: %s (observed %s)", pid, path, present, observed)
        if present:
            return MembershipResult(pid=pid, path=path, present=True)
        return MembershipResult(pid=pid, path=path, present=False, observed=observed)

    def verify_controllers(self, pid: int, cgroup_id: str,
                           controllers: Iterable[Controller] = MEMBERSHIP_CONTROLLERS,
                           parent: Optional[str] = None) -> Dict[str, MembershipResult]:
        results: Dict[str, MembershipResult] = OrderedDict()
        for ctrl, path in self.resolver.resolve_all(controllers, cgroup_id, parent).items():
            results[ctrl] = self.verify_membership(pid, path)
        return results
