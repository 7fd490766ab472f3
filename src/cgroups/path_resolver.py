from __future__ import annotations

import os
from collections import OrderedDict
from typing import Dict, Iterable, Optional, Union

from shared.config.settings import VerifierSettings
from shared.schemas.cgroup_schema import ControllerName

Controller = Union[ControllerName, str]


def _segment(value: str) -> str:
    # a leading "/" would make os.path.join drop everything before it
    return value.strip("/")


def _reject_dot_components(value: str, what: str) -> None:
    if any(part in (".", "..") for part in value.split("/")):
        raise ValueError(f"{what} must not contain '.' or '..' components: {value!r}")


def join_parent(*segments: str) -> str:
    """Join parent segments, e.g. a parent process's cgroup path and a --cgroup-parent name."""
    return "/".join(s for s in (_segment(x) for x in segments) if s)


class CgroupPathResolver:
    """
    Builds cgroup v1 control directory paths:

        <mount>/<controller>/<parent>/<cgroup_id>

    `parent` defaults to the runtime's own segment ("docker"); pass "" for a
    cgroup directly under the controller root. Paths are never checked for
    existence here, a container's cgroup may not have been created yet.
    "." and ".." components in the id or parent raise ValueError.
    """

    def __init__(self, mount: Optional[str] = None, default_parent: Optional[str] = None):
        settings = VerifierSettings.from_env() if mount is None or default_parent is None else None
        self.mount = mount if mount is not None else settings.cgroup_mount
        self.default_parent = default_parent if default_parent is not None else settings.docker_parent

    def controller_root(self, controller: Controller) -> str:
        return os.path.join(self.mount, _segment(str(controller)))

    def resolve(self, controller: Controller, cgroup_id: str, parent: Optional[str] = None) -> str:
        if not cgroup_id or not _segment(cgroup_id):
            raise ValueError("cgroup_id must be a non-empty path segment")
        if parent is None:
            parent = self.default_parent
        # the result must stay below the controller root
        _reject_dot_components(cgroup_id, "cgroup_id")
        _reject_dot_components(parent, "parent")
        parts = [self.controller_root(controller)]
        parent = join_parent(parent)
        if parent:
            parts.append(parent)
        parts.append(_segment(cgroup_id))
        return os.path.join(*parts)

    def resolve_file(self, controller: Controller, cgroup_id: str, file_name: str,
                     parent: Optional[str] = None) -> str:
        return os.path.join(self.resolve(controller, cgroup_id, parent), file_name)

    def resolve_all(self, controllers: Iterable[Controller], cgroup_id: str,
                    parent: Optional[str] = None) -> Dict[str, str]:
        out: Dict[str, str] = OrderedDict()
        for ctrl in controllers:
            out[str(ctrl)] = self.resolve(ctrl, cgroup_id, parent)
        return out
