#!/usr/bin/env python3
"""
Cgroup checks against a real docker host.

Needs root (to read other processes' /proc records) and a docker daemon
whose containers land in a cgroup v1 hierarchy. Set DOCKER_RUNTIME=runsc to
check a specific runtime.

Usage (from the repository root):
    sudo python3 -m tests.test_scripts.cgroup_checks all
    sudo python3 -m tests.test_scripts.cgroup_checks memory
    sudo python3 -m tests.test_scripts.cgroup_checks attributes
    sudo python3 -m tests.test_scripts.cgroup_checks parent
"""

import logging
import os
import signal
import sys
from datetime import datetime

from src.runtime.docker_runtime import DockerRuntime
from src.verifier.errors import VerificationError
from src.verifier.scenarios import check_cgroup_attributes, check_cgroup_parent, check_memory_usage


def print_header(name):
    print("=" * 60)
    print(f"CHECK: {name}")
    print(f"Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 60)


def check_memory():
    print_header("Memory usage accounting")
    with DockerRuntime() as rt:
        result = check_memory_usage(rt)
    print(f"converged={result.converged} elapsed={result.elapsed:.1f}s usage={result.value}")
    result.raise_for_status("memory.max_usage_in_bytes >= allocation")
    return True


def check_attributes():
    print_header("Cgroup attributes and membership")
    with DockerRuntime() as rt:
        report = check_cgroup_attributes(rt)
    for r in report.attributes:
        print(f"  [{r.status.value:>16}] {r.describe()}")
    for ctrl, r in report.membership.items():
        print(f"  [{'present' if r.present else 'absent':>16}] {ctrl}")
    for failure in report.failures:
        print(f"FAIL: {failure}")
    return report.ok


def check_parent():
    print_header("Cgroup parent")
    with DockerRuntime() as rt:
        result = check_cgroup_parent(rt)
    print(f"  {result.describe()}")
    result.raise_for_status()
    return True


CHECKS = {
    "memory": check_memory,
    "attributes": check_attributes,
    "attrs": check_attributes,
    "parent": check_parent,
}


def main(argv):
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if len(argv) < 2 or (argv[1] != "all" and argv[1] not in CHECKS):
        print("Usage: python3 -m tests.test_scripts.cgroup_checks <check>")
        print("")
        print("Available checks:")
        print("  all        - run every check")
        print("  memory     - memory usage converges under a 2x limit")
        print("  attributes - docker run flags land in cgroup control files")
        print("  parent     - --cgroup-parent places the sandbox correctly")
        return 1

    names = ["memory", "attributes", "parent"] if argv[1] == "all" else [argv[1]]
    failed = []
    for name in names:
        try:
            ok = CHECKS[name]()
        except VerificationError as e:
            print(f"FAIL: {e}")
            ok = False
        if not ok:
            failed.append(name)

    print("\n" + "=" * 60)
    print("ALL CHECKS PASSED" if not failed else f"FAILED: {', '.join(failed)}")
    return 1 if failed else 0


if __name__ == "__main__":
    signal.signal(signal.SIGINT, lambda s, f: sys.exit(130))
    sys.exit(main(sys.argv))
