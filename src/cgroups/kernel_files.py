from __future__ import annotations

import re

from src.verifier.errors import CgroupNotFoundError, MalformedDataError

# what the kernel prints for pids and counters; int() would also take
# "+5", " 12 ", "4_242" and non-ASCII digits
_UNSIGNED = re.compile(r"[0-9]+")
_SIGNED = re.compile(r"-?[0-9]+")


def read_text(path: str) -> str:
    """Read a cgroup or procfs file; missing -> CgroupNotFoundError, undecodable -> MalformedDataError."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except (FileNotFoundError, NotADirectoryError):
        raise CgroupNotFoundError(f"failed to read {path!r}: not found", path=path) from None
    except UnicodeDecodeError as e:
        raise MalformedDataError(f"{path}: not valid UTF-8 ({e.reason} at byte {e.start})", path=path) from None


def parse_decimal(text: str, path: str = "", signed: bool = False) -> int:
    pattern = _SIGNED if signed else _UNSIGNED
    if not pattern.fullmatch(text):
        raise MalformedDataError(f"{path}: expected an integer, got {text!r}", path=path)
    return int(text)


def check_file_name(name: str) -> str:
    """A control file name is a single path component."""
    if not name or "/" in name or "\0" in name or name in (".", ".."):
        raise ValueError(f"invalid control file name: {name!r}")
    return name
