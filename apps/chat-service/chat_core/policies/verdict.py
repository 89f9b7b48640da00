"""Allow/deny decision returned by every policy function."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class VerdictCode(str, Enum):
    OK = "ok"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


_STATUS_CODES: Dict[VerdictCode, int] = {
    VerdictCode.OK: 200,
    VerdictCode.FORBIDDEN: 403,
    VerdictCode.NOT_FOUND: 404,
    VerdictCode.CONFLICT: 409,
}


@dataclass(frozen=True)
class Verdict:
    allowed: bool
    code: VerdictCode
    reason: str

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self.code]

    def __bool__(self) -> bool:
        return self.allowed

    def as_dict(self) -> Dict[str, object]:
        return {"allowed": self.allowed, "code": self.code.value, "reason": self.reason}


def allow(reason: str) -> Verdict:
    return Verdict(True, VerdictCode.OK, reason)


def forbid(reason: str) -> Verdict:
    return Verdict(False, VerdictCode.FORBIDDEN, reason)


def not_found(reason: str = "Chat not found") -> Verdict:
    return Verdict(False, VerdictCode.NOT_FOUND, reason)


def conflict(reason: str) -> Verdict:
    return Verdict(False, VerdictCode.CONFLICT, reason)
