from __future__ import annotations

import logging
import os
from typing import Dict, Optional

from shared.config.settings import VerifierSettings
from src.cgroups.kernel_files import parse_decimal, read_text
from src.verifier.errors import CgroupNotFoundError, MalformedDataError

logger = logging.getLogger(__name__)

_NAMED_PREFIX = "name="


def _read_record(path: str) -> str:
    try:
        return read_text(path)
    except CgroupNotFoundError:
        raise CgroupNotFoundError(f"process record not found: {path}", path=path) from None
    except ProcessLookupError:
        raise CgroupNotFoundError(f"process record not found: {path}", path=path) from None
    except PermissionError as e:
        raise CgroupNotFoundError(f"cannot read process record {path}: {e}", path=path) from None


def parse_cgroup_record(text: str, path: str = "") -> Dict[str, str]:
    """
    Parse a /proc/<pid>/cgroup record into {controller: path}.

    Each line is "hierarchy-id:controller-list:path". Co-mounted controllers
    ("cpu,cpuacct") each get their own key and the "name=" prefix of named
    hierarchies is dropped ("name=systemd" -> "systemd"). The unified v2 entry
    ("0::/...") has no controllers and contributes nothing.
    """
    paths: Dict[str, str] = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        # the path field may itself contain ":"
        tokens = line.split(":", 2)
        if len(tokens) != 3:
            raise MalformedDataError(f"invalid cgroup record {path} line {lineno}: {line!r}", path=path)
        _, controllers, cg_path = tokens
        if not controllers:
            logger.debug("skipping unified hierarchy entry in %s: %r", path, line)
            continue
        for ctrl in controllers.split(","):
            if ctrl.startswith(_NAMED_PREFIX):
                ctrl = ctrl[len(_NAMED_PREFIX):]
            if ctrl:
                paths[ctrl] = cg_path
    return paths


class ProcessCgroupLoader:
    """Reads cgroup membership and parent pid of a process from procfs."""

    def __init__(self, proc_root: Optional[str] = None):
        self.proc_root = proc_root if proc_root is not None else VerifierSettings.from_env().proc_root

    def _proc_path(self, pid: int, name: str) -> str:
        return os.path.join(self.proc_root, str(int(pid)), name)

    def load_controller_paths(self, pid: int) -> Dict[str, str]:
        path = self._proc_path(pid, "cgroup")
        paths = parse_cgroup_record(_read_record(path), path=path)
        logger.debug("pid %s cgroups: %s", pid, paths)
        return paths

    def load_parent_pid(self, pid: int) -> int:
        path = self._proc_path(pid, "status")
        for line in _read_record(path).splitlines():
            if line.startswith("PPid:"):
                fields = line.split()
                if len(fields) != 2:
                    raise MalformedDataError(f"invalid PPid line in {path}: {line!r}", path=path)
                return parse_decimal(fields[1], path)
        raise MalformedDataError(f"no PPid field in {path}", path=path)
