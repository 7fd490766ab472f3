from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from shared.schemas.cgroup_schema import AttributeExpectation
from src.cgroups.kernel_files import check_file_name, parse_decimal, read_text
from src.cgroups.path_resolver import CgroupPathResolver
from src.verifier.errors import AttributeMismatchError, CgroupNotFoundError

logger = logging.getLogger(__name__)


class AttributeStatus(str, Enum):
    MATCH = "match"
    MISMATCH = "mismatch"
    MISSING_OPTIONAL = "missing_optional"
    MISSING_REQUIRED = "missing_required"


@dataclass(frozen=True)
class AttributeResult:
    path: str
    file: str
    want: str
    status: AttributeStatus
    got: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (AttributeStatus.MATCH, AttributeStatus.MISSING_OPTIONAL)

    def describe(self) -> str:
        if self.status == AttributeStatus.MATCH:
            return f"{self.path}/{self.file}: {self.got!r}"
        if self.status == AttributeStatus.MISMATCH:
            return f"{self.path}/{self.file}: got: {self.got!r}, want: {self.want!r}"
        if self.status == AttributeStatus.MISSING_OPTIONAL:
            return f"{self.path}/{self.file}: skipped, not found"
        return f"{self.path}/{self.file}: not found, want: {self.want!r}"

    def raise_for_status(self) -> None:
        if self.status == AttributeStatus.MISMATCH:
            raise AttributeMismatchError(self.describe(), got=self.got or "", want=self.want,
                                         path=os.path.join(self.path, self.file))
        if self.status == AttributeStatus.MISSING_REQUIRED:
            raise CgroupNotFoundError(self.describe(), path=os.path.join(self.path, self.file))


def read_attribute(path: str, file_name: str) -> str:
    file_path = os.path.join(path, check_file_name(file_name))
    value = read_text(file_path).strip()
    logger.debug("read %s = %r", file_path, value)
    return value


def read_int_attribute(path: str, file_name: str) -> int:
    # limits such as cpu.cfs_quota_us report -1 for "unlimited"
    return parse_decimal(read_attribute(path, file_name), os.path.join(path, file_name), signed=True)


class AttributeVerifier:
    """
    Compares a control file's trimmed text with an expected value.

    Values are compared as strings: byte sizes and other numbers must already be
    in canonical decimal form. A missing file is MISSING_OPTIONAL for optional
    attributes and MISSING_REQUIRED otherwise; nothing is retried here.
    """

    def __init__(self, resolver: Optional[CgroupPathResolver] = None):
        self.resolver = resolver or CgroupPathResolver()

    def verify(self, path: str, file_name: str, want: str, optional: bool = False) -> AttributeResult:
        try:
            got = read_attribute(path, file_name)
        except CgroupNotFoundError:
            status = AttributeStatus.MISSING_OPTIONAL if optional else AttributeStatus.MISSING_REQUIRED
            return AttributeResult(path=path, file=file_name, want=want, status=status)

        status = AttributeStatus.MATCH if got == want else AttributeStatus.MISMATCH
        return AttributeResult(path=path, file=file_name, want=want, status=status, got=got)

    def verify_expectation(self, cgroup_id: str, expectation: AttributeExpectation,
                           parent: Optional[str] = None) -> AttributeResult:
        path = self.resolver.resolve(expectation.controller, cgroup_id, parent)
        result = self.verify(path, expectation.file, expectation.want, optional=expectation.optional)
        if result.status == AttributeStatus.MISSING_OPTIONAL:
            logger.warning("skipped %s/%s", expectation.controller, expectation.file)
        elif result.status == AttributeStatus.MISMATCH:
            logger.info("arg: %r, cgroup attribute %s/%s, got: %r, want: %r",
                        expectation.arg, expectation.controller, expectation.file, result.got, result.want)
        return result
