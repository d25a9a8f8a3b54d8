"""
Tagged Result Type

DESIGN DECISION: Every public operation of the engine returns a Result
instead of mixing raised exceptions with ad-hoc {success, error} dicts.

    result = await backup_service.backup(uid)
    if result.ok:
        print(result.value.timestamp)
    else:
        print(result.error_kind, result.user_message)

Internal code keeps raising typed errors (household_store.errors);
the returns_result decorator is the single place they are converted.
"""

import functools
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from household_store.errors import (
    AlreadyLinkedError,
    ErrorKind,
    HouseholdStoreError,
    LinkConflictError,
    NotFoundError,
    NotLinkedError,
    SelfLinkError,
    StoreError,
    UnknownTypeError,
    ValidationError,
)

T = TypeVar("T")


class Result(BaseModel, Generic[T]):
    """Ok(value) or Err(error_kind, detail)."""

    ok: bool
    value: Optional[T] = None
    error_kind: Optional[ErrorKind] = None
    detail: Optional[str] = None
    messages: list[str] = Field(default_factory=list)
    user_message: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        detail: str,
        messages: Optional[list[str]] = None,
        user_message: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> "Result":
        return cls(
            ok=False,
            error_kind=kind,
            detail=detail,
            messages=messages or [detail],
            user_message=user_message or detail,
            error_code=error_code,
        )

    @classmethod
    def from_error(cls, error: HouseholdStoreError) -> "Result":
        return cls.failure(
            kind=error.kind,
            detail=str(error),
            messages=error.messages,
            user_message=error.user_message,
            error_code=getattr(error, "code", None),
        )

    def unwrap(self) -> T:
        """Return the value, or raise the typed error this result carries."""
        if self.ok:
            return self.value
        raise _rebuild_error(self)


_ERROR_CLASSES = {
    ErrorKind.UNKNOWN_TYPE: UnknownTypeError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.ALREADY_LINKED: AlreadyLinkedError,
    ErrorKind.SELF_LINK: SelfLinkError,
    ErrorKind.NOT_LINKED: NotLinkedError,
    ErrorKind.LINK_CONFLICT: LinkConflictError,
}


def _rebuild_error(result: Result) -> HouseholdStoreError:
    if result.error_kind == ErrorKind.VALIDATION:
        return ValidationError("record", result.messages)
    if result.error_kind == ErrorKind.STORE or result.error_kind is None:
        return StoreError(result.detail or "store failure", code=result.error_code)
    return _ERROR_CLASSES[result.error_kind](result.detail or result.error_kind.value)


def returns_result(
    func: Callable[..., Awaitable[Any]],
) -> Callable[..., Awaitable[Result]]:
    """
    Wrap an async operation so it always returns a Result.

    Typed engine errors become failures. Anything else is a programming
    error and propagates unchanged.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> Result:
        try:
            value = await func(*args, **kwargs)
        except HouseholdStoreError as e:
            return Result.from_error(e)
        return Result.success(value)

    return wrapper
