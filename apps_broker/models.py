"""Request, outcome and upstream response types shared across the gateway."""

import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeAlias


class ErrorCode(StrEnum):
    """Business error taxonomy reported inside tool results."""

    VALIDATION_FAILED = "validation_failed"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    UPSTREAM_ERROR = "upstream_error"
    INTERNAL_ERROR = "internal_error"
    INVALID_ACTION = "invalid_action"


@dataclass(frozen=True, slots=True)
class ToolRequest:
    """A single tool invocation routed through the dispatcher."""

    action: str
    parameters: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def with_parameters(self, parameters: dict[str, Any]) -> "ToolRequest":
        return ToolRequest(action=self.action, parameters=parameters, id=self.id)


@dataclass(frozen=True, slots=True)
class AppError:
    code: ErrorCode
    message: str
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": str(self.code),
            "message": self.message,
            "details": self.details if self.details is not None else {},
        }


@dataclass(frozen=True, slots=True)
class Success:
    id: str
    result: dict[str, Any]


@dataclass(frozen=True, slots=True)
class Failure:
    id: str
    error: AppError

    @classmethod
    def of(
        cls,
        request: ToolRequest,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> "Failure":
        return cls(request.id, AppError(code, message, details))


Outcome: TypeAlias = Success | Failure


@dataclass(frozen=True, slots=True)
class UpstreamResponse:
    """Final status and decoded body of one upstream call."""

    status_code: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    def body_or_empty(self) -> Any:
        return self.body if self.body is not None else {}

    def summary(self) -> dict[str, Any]:
        return {"status_code": self.status_code, "body": self.body_or_empty()}


@dataclass(frozen=True, slots=True)
class LoginResult:
    session_token: str
    body: dict[str, Any]
