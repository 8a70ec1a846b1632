"""Stage results: a value on success, or a typed failure reason the caller can act on."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class Failure(str, Enum):
    TIMEOUT = "timeout"
    NETWORK = "network"
    HTTP_STATUS = "http_status"
    MALFORMED = "malformed"
    TOO_LARGE = "too_large"
    DECODE = "decode"


@dataclass(frozen=True)
class StageResult(Generic[T]):
    value: Optional[T] = None
    failure: Optional[Failure] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> "StageResult[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, failure: Failure, detail: str = "") -> "StageResult[T]":
        return cls(failure=failure, detail=detail or failure.value)

    def describe(self) -> str:
        if self.ok:
            return "ok"
        return f"{self.failure.value}: {self.detail}"
