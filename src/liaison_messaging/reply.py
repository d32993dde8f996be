"""Reply: transport-agnostic result of a request/reply exchange."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class ReplyStatus(StrEnum):
    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Reply(Generic[T]):
    """Wrapper returned by request clients.

    Carries the handler's value on success, or an error message otherwise.
    """

    status: ReplyStatus
    value: T | None = None
    error: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status is ReplyStatus.SUCCESS
