import pytest
from pathlib import Path

from src.cgroups.path_resolver import CgroupPathResolver


class FakeCgroupTree:
    """A cgroup v1 mount laid out under a temporary directory."""

    def __init__(self, root):
        self.root = root
        self.resolver = CgroupPathResolver(mount=str(root), default_parent="docker")

    def write(self, controller, cgroup_id, file_name, content, parent=None):
        path = Path(self.resolver.resolve(controller, cgroup_id, parent))
        path.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            (path / file_name).write_bytes(content)
        else:
            (path / file_name).write_text(content)
        return str(path)


@pytest.fixture
def cgroup_tree(tmp_path, monkeypatch):
    root = tmp_path / "cgroup"
    root.mkdir()
    monkeypatch.setenv("CGROUP_MOUNT", str(root))
    monkeypatch.setenv("CGROUP_DOCKER_PARENT", "docker")
    monkeypatch.setenv("PROC_ROOT", str(tmp_path / "proc"))
    return FakeCgroupTree(root)
