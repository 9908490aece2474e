"""Handler result contract shared by every intent handler."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    CONSTRAINT = "constraint"
    DEFERRED = "deferred"
    NOT_FOUND = "not_found"
    AUTHORIZATION = "authorization"
    THROTTLED = "throttled"
    PLATFORM = "platform"
    UNHANDLED = "unhandled"


@dataclass(frozen=True)
class HandlerResult:
    success: bool
    deferred: bool = False
    skipped: bool = False
    staged: bool = False
    error: str = ""
    warning: str = ""
    error_kind: ErrorKind | None = None
    preview: dict[str, Any] = field(default_factory=dict)
    payload: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.deferred and self.success:
            raise ValueError("deferred results cannot be successful")
        if self.skipped and not self.success:
            raise ValueError("skipped results must be successful")
        if self.staged and not self.success:
            raise ValueError("staged results must be successful")

    @classmethod
    def ok(cls, **payload: Any) -> "HandlerResult":
        return cls(success=True, payload=payload)

    @classmethod
    def failure(cls, error: str, kind: ErrorKind = ErrorKind.VALIDATION, **payload: Any) -> "HandlerResult":
        return cls(success=False, error=error, error_kind=kind, payload=payload)

    @classmethod
    def defer(cls, error: str, **payload: Any) -> "HandlerResult":
        return cls(
            success=False,
            deferred=True,
            error=error,
            error_kind=ErrorKind.DEFERRED,
            payload=payload,
        )

    @classmethod
    def skip(cls, warning: str = "", kind: ErrorKind | None = None, **payload: Any) -> "HandlerResult":
        return cls(success=True, skipped=True, warning=warning, error_kind=kind, payload=payload)

    @classmethod
    def not_found(cls, message: str, **payload: Any) -> "HandlerResult":
        return cls.skip(f"Target not found: {message}", kind=ErrorKind.NOT_FOUND, **payload)

    @classmethod
    def staged_preview(cls, **preview: Any) -> "HandlerResult":
        return cls(success=True, staged=True, preview=preview)

    @property
    def failed(self) -> bool:
        return not self.success and not self.deferred

    @property
    def outcome(self) -> str:
        if self.deferred:
            return "deferred"
        if self.staged:
            return "staged"
        if self.skipped:
            return "skipped"
        return "success" if self.success else "failed"

    def with_payload(self, **payload: Any) -> "HandlerResult":
        return replace(self, payload={**self.payload, **payload})

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        for flag in ("deferred", "skipped", "staged"):
            if getattr(self, flag):
                data[flag] = True
        if self.error:
            data["error"] = self.error
        if self.warning:
            data["warning"] = self.warning
        if self.error_kind is not None:
            data["error_kind"] = self.error_kind.value
        if self.preview:
            data["preview_info"] = dict(self.preview)
        data.update(self.payload)
        return data
